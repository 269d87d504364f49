"""Recursive-descent parser for the formula language.

    expression  = comparison
    comparison  = additive [ ("<" | "<=" | "=" | "<>" | ">" | ">=") additive ]
    additive    = term { ("+" | "-") term }
    term        = power { ("*" | "/") power }
    power       = unary { "^" unary }
    unary       = "-" unary | "+" unary | factor
    factor      = string | number | name | function | "(" expression ")"
                | "=" formula-name
    function    = name "(" [ expression { ";" expression } ] ")"

A leading "=" on the whole input only marks the text as a formula and is
dropped. Every binary operator, "^" included, groups to the left.
"""

import logging
from typing import Callable

from formula_interpreter.ast import (
    BoolOperation,
    BoolOperator,
    Bracket,
    Expression,
    FormulaReference,
    Function,
    MathOperation,
    MathOperator,
    Minus,
    Number,
    Text,
    Variable,
)
from formula_interpreter.errors import ParseError
from formula_interpreter.scanner import FormulaScanner, is_digit, is_letter

ADDITIVE_OPERATORS = {"+": MathOperator.ADD, "-": MathOperator.SUB}
MULTIPLICATIVE_OPERATORS = {"*": MathOperator.MUL, "/": MathOperator.DIV}
POWER_OPERATORS = {"^": MathOperator.POW}


def parse_formula(formula: str) -> Expression:
    """Helper function to parse a formula string into an AST."""
    return ExpressionParser(formula).parse()


def fix_precedence(node: Expression) -> Expression:
    """Rotate right-nested arithmetic into left-associative, precedence
    respecting form.

    `a op1 (b op2 c)` becomes `(a op1 b) op2 c` whenever op2 does not bind
    tighter than op1, so 1-(2-3) turns into (1-2)-3 while 1-(2*3) is kept.
    Bracket nodes are never looked through, and a tree without such
    rotations is returned unchanged.
    """
    if isinstance(node, MathOperation):
        # Walk the left spine with a loop: parser output for 1+1+...+1 is as
        # deep as the chain is long.
        spine = []
        while isinstance(node, MathOperation) and not _needs_rotation(node):
            spine.append(node)
            node = node.left

        if isinstance(node, MathOperation):
            right = node.right
            rotated = MathOperation(node.left, node.operator, right.left)
            # The new root may itself need rotating
            result = fix_precedence(
                MathOperation(
                    fix_precedence(rotated), right.operator, fix_precedence(right.right)
                )
            )
        else:
            result = fix_precedence(node)

        for operation in reversed(spine):
            result = MathOperation(
                result, operation.operator, fix_precedence(operation.right)
            )
        return result

    if isinstance(node, BoolOperation):
        return BoolOperation(
            fix_precedence(node.left), node.operator, fix_precedence(node.right)
        )

    if isinstance(node, Bracket):
        return Bracket(fix_precedence(node.expression))

    if isinstance(node, Minus):
        return Minus(fix_precedence(node.operand))

    if isinstance(node, Function):
        return Function(node.name, tuple(fix_precedence(arg) for arg in node.arguments))

    return node


def _needs_rotation(node: MathOperation) -> bool:
    right = node.right
    return (
        isinstance(right, MathOperation)
        and right.operator.precedence <= node.operator.precedence
    )


class ExpressionParser:
    """Parses one formula source. The parse methods return None when nothing
    at the cursor starts an operand."""

    def __init__(self, formula: str):
        self.scanner = FormulaScanner(formula)

    def parse(self) -> Expression:
        """Parse the source into an AST."""
        scanner = self.scanner
        scanner.pos = 0
        scanner.skip_blanks()

        # Skip leading equals sign if present
        if scanner.peek() == "=":
            scanner.advance()
            scanner.skip_blanks()

        node = self.parse_expression()
        if node is None:
            if scanner.at_end():
                raise ParseError("Empty formula")
            raise self._unexpected()
        if not scanner.at_end():
            raise self._unexpected()

        return fix_precedence(node)

    def _unexpected(self) -> ParseError:
        return ParseError(
            f"Unexpected character '{self.scanner.peek()}'", self.scanner.pos
        )

    def _truncated(self, node: Expression | None) -> Expression | None:
        """An operand is missing after an operator. At the end of the input
        the partial tree is kept; anywhere else this is an error."""
        if not self.scanner.at_end():
            raise self._unexpected()
        logging.debug(
            "Formula %r ends after an operator, keeping partial tree %s",
            self.scanner.formula,
            node,
        )
        return node

    def _parse_binary_operation(
        self,
        parse_operand: Callable[[], Expression | None],
        operators: dict[str, MathOperator],
    ) -> Expression | None:
        """Parse a chain of operands joined by the given operators."""
        left = parse_operand()
        if left is None:
            return None

        while (operator := operators.get(self.scanner.peek())) is not None:
            self.scanner.advance()
            self.scanner.skip_blanks()
            right = parse_operand()
            if right is None:
                return self._truncated(left)
            left = MathOperation(left, operator, right)

        return left

    def parse_expression(self) -> Expression | None:
        """Parse an expression (lowest precedence: a single comparison)."""
        left = self.parse_additive()
        if left is None:
            return None

        operator = self.read_bool_operator()
        if operator is None:
            return left

        self.scanner.skip_blanks()
        right = self.parse_additive()
        if right is None:
            return self._truncated(left)
        return BoolOperation(left, operator, right)

    def read_bool_operator(self) -> BoolOperator | None:
        """Consume a comparison operator, if there's one."""
        scanner = self.scanner
        char = scanner.peek()
        if char == "<":
            scanner.advance()
            if scanner.peek() == "=":
                scanner.advance()
                return BoolOperator.LE
            if scanner.peek() == ">":
                scanner.advance()
                return BoolOperator.NE
            return BoolOperator.L
        if char == ">":
            scanner.advance()
            if scanner.peek() == "=":
                scanner.advance()
                return BoolOperator.GE
            return BoolOperator.G
        if char == "=":
            scanner.advance()
            return BoolOperator.E
        return None

    def parse_additive(self) -> Expression | None:
        """Parse addition/subtraction (+, -)."""
        return self._parse_binary_operation(self.parse_term, ADDITIVE_OPERATORS)

    def parse_term(self) -> Expression | None:
        """Parse multiplication/division (*, /)."""
        return self._parse_binary_operation(
            self.parse_power, MULTIPLICATIVE_OPERATORS
        )

    def parse_power(self) -> Expression | None:
        """Parse exponentiation (^)."""
        return self._parse_binary_operation(self.parse_unary, POWER_OPERATORS)

    def parse_unary(self) -> Expression | None:
        """Parse a signed operand. The sign applies to the operand alone, so
        -2^2 is (-2)^2."""
        scanner = self.scanner
        char = scanner.peek()
        if char == "-":
            scanner.advance()
            scanner.skip_blanks()
            operand = self.parse_unary()
            if operand is None:
                return self._truncated(None)
            return Minus(operand)
        if char == "+":
            scanner.advance()
            scanner.skip_blanks()
            return self.parse_unary()
        return self.parse_factor()

    def parse_factor(self) -> Expression | None:
        """Parse a factor (highest precedence: literals, names, functions)."""
        scanner = self.scanner
        char = scanner.peek()

        if char == "(":
            return self.parse_bracket()

        if char == '"':
            text = scanner.read_string()
            scanner.skip_blanks()
            return Text(text)

        if is_digit(char) or char == ".":
            value = scanner.read_number()
            scanner.skip_blanks()
            return Number(value)

        if is_letter(char):
            name = scanner.read_identifier()
            scanner.skip_blanks()
            if scanner.peek() == "(":
                return self.parse_function_call(name)
            return Variable(name)

        if char == "=":
            scanner.advance()
            scanner.skip_blanks()
            name = scanner.read_formula_name()
            scanner.skip_blanks()
            return FormulaReference(name)

        return None

    def parse_bracket(self) -> Expression | None:
        scanner = self.scanner
        scanner.advance()  # consume '('
        scanner.skip_blanks()

        inner = self.parse_expression()
        if inner is None:
            return self._truncated(None)

        if scanner.peek() == ")":
            scanner.advance()
            scanner.skip_blanks()
        elif not scanner.at_end():
            raise ParseError("Expected closing parenthesis ')'", scanner.pos)
        return Bracket(inner)

    def parse_function_call(self, name: str) -> Function:
        """Parse the ';'-separated arguments of a function call."""
        scanner = self.scanner
        scanner.advance()  # consume '('
        scanner.skip_blanks()

        arguments = []
        while True:
            argument = self.parse_expression()
            # Empty arguments ("f(;1)") are skipped
            if argument is not None:
                arguments.append(argument)
            if scanner.peek() != ";":
                break
            scanner.advance()  # consume ';'
            scanner.skip_blanks()

        if scanner.peek() == ")":
            scanner.advance()
            scanner.skip_blanks()
        elif not scanner.at_end():
            raise ParseError(
                f"Expected ';' or ')' in function call, got '{scanner.peek()}'",
                scanner.pos,
            )
        return Function(name, tuple(arguments))
