from enum import Enum
from typing import NamedTuple

from formula_interpreter.utils import format_number


class MathOperator(Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    POW = "^"

    @property
    def precedence(self) -> int:
        return _PRECEDENCE[self]

    def __str__(self) -> str:
        return self.value


_PRECEDENCE = {
    MathOperator.ADD: 1,
    MathOperator.SUB: 1,
    MathOperator.MUL: 2,
    MathOperator.DIV: 2,
    MathOperator.POW: 3,
}


# Comparisons have no precedence among themselves: at most one per expression.
class BoolOperator(Enum):
    G = ">"
    GE = ">="
    E = "="
    L = "<"
    LE = "<="
    NE = "<>"

    def __str__(self) -> str:
        return self.value


class Number(NamedTuple):
    value: float

    def __str__(self) -> str:
        return format_number(self.value)


class Text(NamedTuple):
    value: str

    def __str__(self) -> str:
        escaped = self.value.replace('"', '""')
        return f'"{escaped}"'


class Variable(NamedTuple):
    # "first:last" names a range of variables
    name: str

    @property
    def is_range(self) -> bool:
        return ":" in self.name

    def __str__(self) -> str:
        return self.name


class Bracket(NamedTuple):
    expression: "Expression"

    def __str__(self) -> str:
        return f"({self.expression})"


class Minus(NamedTuple):
    operand: "Expression"

    def __str__(self) -> str:
        return f"-{self.operand}"


class MathOperation(NamedTuple):
    left: "Expression"
    operator: MathOperator
    right: "Expression"

    def __str__(self) -> str:
        # Long chains lean left; render the spine without recursing into it
        parts = []
        node = self
        while isinstance(node, MathOperation):
            parts.append(f"{node.operator}{node.right}")
            node = node.left
        parts.append(str(node))
        return "".join(reversed(parts))


class BoolOperation(NamedTuple):
    left: "Expression"
    operator: BoolOperator
    right: "Expression"

    def __str__(self) -> str:
        # Spaces keep "a < =f" from being read back as "a <= f"
        return f"{self.left} {self.operator} {self.right}"


class Function(NamedTuple):
    name: str
    arguments: "tuple[Expression, ...]"

    def __str__(self) -> str:
        return f"{self.name}({';'.join(str(arg) for arg in self.arguments)})"


class FormulaReference(NamedTuple):
    name: str

    def __str__(self) -> str:
        return f"={self.name}"


# Type alias for all possible AST nodes
Expression = (
    Number
    | Text
    | Variable
    | Bracket
    | Minus
    | MathOperation
    | BoolOperation
    | Function
    | FormulaReference
)


def format_formula(node: Expression) -> str:
    """Render a tree as formula source, including the leading '='.

    Without the marker, a root formula reference such as "=f1" would be read
    back as the formula marker followed by the variable "f1".
    """
    return f"={node}"
