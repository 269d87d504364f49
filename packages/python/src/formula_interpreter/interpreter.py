import logging
from dataclasses import dataclass, field
from typing import Callable, Union

from typing_extensions import Self

from formula_interpreter.ast import (
    BoolOperation,
    Bracket,
    Expression,
    FormulaReference,
    Function,
    MathOperation,
    Minus,
    Number,
    Text,
    Variable,
)
from formula_interpreter.errors import CycleError, FormulaNotFound, FunctionNotFound
from formula_interpreter.functions import FORMULA_FUNCTIONS
from formula_interpreter.operators import apply_comparison, apply_math, negate
from formula_interpreter.parser import parse_formula
from formula_interpreter.types import FormulaValue
from formula_interpreter.utils import closest_names


@dataclass
class Environment:
    """Names a formula can refer to. The mappings are used as given, never
    copied, so changes made between two evaluations are picked up."""

    variables: dict[str, FormulaValue] = field(default_factory=dict)
    functions: dict[str, Callable[..., FormulaValue]] = field(
        default_factory=lambda: dict(FORMULA_FUNCTIONS)
    )
    formulas: dict[str, Expression] = field(default_factory=dict)

    def define_formula(self, name: str, formula: str) -> Self:
        self.formulas[name] = parse_formula(formula)
        return self


class EvaluationTrace:
    """One line per evaluated node, parent before children:

        MathOperation: 1+2 --> 3.0
        └─ Number: 1.0 --> 1.0
        └─ Number: 2.0 --> 2.0
    """

    def __init__(self):
        self.lines: list[str] = []

    def open(self) -> int:
        """Reserve the line of a node whose result is not known yet."""
        self.lines.append("")
        return len(self.lines) - 1

    def close(
        self, index: int, node: Expression, depth: int, result: FormulaValue
    ) -> None:
        prefix = "│  " * (depth - 1) + "└─ " if depth > 0 else ""
        self.lines[index] = f"{prefix}{type(node).__name__}: {node} --> {result!r}"

    def flush(self) -> None:
        for line in self.lines:
            logging.debug(line)

    def __str__(self) -> str:
        return "\n".join(self.lines)


class EvaluationStack:
    """Formula names being evaluated, outermost first."""

    def __init__(self):
        self.stack: list[str] = []

    def push(self, name: str) -> None:
        self.stack.append(name)

    def pop(self) -> None:
        self.stack.pop()

    def contains(self, name: str) -> bool:
        return name in self.stack

    def format_cycle_path(self, name: str) -> str:
        return " -> ".join([*self.stack, name])


@dataclass
class EvaluationState:
    """Bookkeeping of a single top-level evaluation."""

    stack: EvaluationStack | None = None
    trace: EvaluationTrace | None = None


class FormulaInterpreter:
    def __init__(
        self,
        environment: Environment | None = None,
        *,
        trace: bool = False,
        detect_cycles: bool = True,
    ):
        self.environment = environment if environment is not None else Environment()
        # Log an EvaluationTrace of every top-level evaluation
        self.trace = trace
        # Without it, a formula referring to itself ends in RecursionError
        self.detect_cycles = detect_cycles

    def evaluate(
        self,
        formula_or_node: Union[str, Expression],
        trace: EvaluationTrace | None = None,
    ) -> FormulaValue:
        """Evaluate a formula or AST node against the environment.

        Strings are parsed on every call; parse once with `parse_formula` to
        evaluate the same formula repeatedly.
        """
        if isinstance(formula_or_node, str):
            node = parse_formula(formula_or_node)
        else:
            node = formula_or_node

        log_trace = trace is None and self.trace
        if log_trace:
            trace = EvaluationTrace()

        state = EvaluationState(
            stack=EvaluationStack() if self.detect_cycles else None, trace=trace
        )
        try:
            return self._evaluate_node(node, state, 0)
        finally:
            if log_trace:
                trace.flush()

    def _evaluate_node(
        self, node: Expression, state: EvaluationState, depth: int
    ) -> FormulaValue:
        if state.trace is None:
            return self._dispatch(node, state, depth)

        index = state.trace.open()
        result = None
        try:
            result = self._dispatch(node, state, depth)
            return result
        finally:
            state.trace.close(index, node, depth, result)

    def _dispatch(
        self, node: Expression, state: EvaluationState, depth: int
    ) -> FormulaValue:
        if isinstance(node, (Number, Text)):
            return node.value

        elif isinstance(node, MathOperation):
            return self._evaluate_math(node, state, depth)

        elif isinstance(node, Variable):
            return self._evaluate_variable(node)

        elif isinstance(node, Bracket):
            return self._evaluate_node(node.expression, state, depth + 1)

        elif isinstance(node, Minus):
            return negate(self._evaluate_node(node.operand, state, depth + 1))

        elif isinstance(node, Function):
            return self._evaluate_function(node, state, depth)

        elif isinstance(node, FormulaReference):
            return self._evaluate_formula(node, state, depth)

        elif isinstance(node, BoolOperation):
            left = self._evaluate_node(node.left, state, depth + 1)
            right = self._evaluate_node(node.right, state, depth + 1)
            return apply_comparison(node.operator, left, right)

        raise ValueError(f"Unknown node type: {type(node)}")

    def _evaluate_math(
        self, node: MathOperation, state: EvaluationState, depth: int
    ) -> FormulaValue:
        """Evaluate a chain such as 1+2*3-4 along its left spine with a loop,
        so that a long flat chain does not exhaust the call stack.

        `node` itself is traced by the caller; the operations below it on the
        spine get their trace lines here, in the same order as if each had
        been evaluated recursively.
        """
        spine = [node]
        while isinstance(spine[-1].left, MathOperation):
            spine.append(spine[-1].left)

        trace = state.trace
        indexes = [trace.open() for _ in spine[1:]] if trace is not None else []
        # Spine levels 1..unfinished still have an empty trace line
        unfinished = len(spine) - 1
        try:
            value = self._evaluate_node(spine[-1].left, state, depth + len(spine))
            for level in range(len(spine) - 1, -1, -1):
                operation = spine[level]
                right = self._evaluate_node(operation.right, state, depth + level + 1)
                value = apply_math(operation.operator, value, right)
                if trace is not None and level > 0:
                    trace.close(indexes[level - 1], operation, depth + level, value)
                    unfinished = level - 1
            return value
        finally:
            if trace is not None:
                for level in range(1, unfinished + 1):
                    trace.close(indexes[level - 1], spine[level], depth + level, None)

    def _evaluate_variable(self, node: Variable) -> FormulaValue:
        """Look up a variable. A range "first:last" collects, in name order,
        every variable whose name sorts between first and last."""
        variables = self.environment.variables
        if not node.is_range:
            return variables.get(node.name)

        name = node.name
        first = name[: name.index(":")]
        last = name[name.rindex(":") + 1 :]
        return [variables[key] for key in sorted(variables) if first <= key <= last]

    def _evaluate_function(
        self, node: Function, state: EvaluationState, depth: int
    ) -> FormulaValue:
        arguments = [
            self._evaluate_node(arg, state, depth + 1) for arg in node.arguments
        ]
        functions = self.environment.functions
        function = functions.get(node.name)
        if function is None:
            raise FunctionNotFound(node.name, closest_names(node.name, functions))
        return function(*arguments)

    def _evaluate_formula(
        self, node: FormulaReference, state: EvaluationState, depth: int
    ) -> FormulaValue:
        """Evaluate a named formula in the current environment. Nothing is
        cached: the formula sees the variables as they are now."""
        formulas = self.environment.formulas
        formula = formulas.get(node.name)
        if formula is None:
            raise FormulaNotFound(node.name, closest_names(node.name, formulas))

        stack = state.stack
        if stack is None:
            return self._evaluate_node(formula, state, depth + 1)

        if stack.contains(node.name):
            raise CycleError(f"Detected cycle: {stack.format_cycle_path(node.name)}")
        stack.push(node.name)
        result = self._evaluate_node(formula, state, depth + 1)
        stack.pop()
        return result


def evaluate(
    node: Union[str, Expression],
    environment: Environment | None = None,
    *,
    trace: EvaluationTrace | None = None,
    detect_cycles: bool = True,
) -> FormulaValue:
    """Evaluate a formula or AST node against an environment."""
    interpreter = FormulaInterpreter(environment, detect_cycles=detect_cycles)
    return interpreter.evaluate(node, trace=trace)
