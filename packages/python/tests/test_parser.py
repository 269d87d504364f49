import pytest

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
    format_formula,
)
from formula_interpreter.errors import ParseError
from formula_interpreter.parser import fix_precedence, parse_formula

ADD = MathOperator.ADD
SUB = MathOperator.SUB
MUL = MathOperator.MUL
DIV = MathOperator.DIV
POW = MathOperator.POW


def wrap(node: Expression) -> Expression:
    """Bracket every arithmetic node so str() shows the grouping."""
    if isinstance(node, MathOperation):
        return Bracket(MathOperation(wrap(node.left), node.operator, wrap(node.right)))
    if isinstance(node, Bracket):
        # wrap('(2+2)') should be '(2+2)' and not '((2+2))'
        if isinstance(node.expression, MathOperation):
            return wrap(node.expression)
        return Bracket(wrap(node.expression))
    if isinstance(node, Minus):
        return Minus(wrap(node.operand))
    if isinstance(node, BoolOperation):
        return BoolOperation(wrap(node.left), node.operator, wrap(node.right))
    if isinstance(node, Function):
        return Function(node.name, tuple(wrap(arg) for arg in node.arguments))
    return node


class TestFormulaParser:
    def test_simple_arithmetic(self):
        """Test parsing of basic arithmetic expressions."""
        ast = parse_formula("1 + 2")
        assert ast == MathOperation(Number(1.0), ADD, Number(2.0))

        ast = parse_formula("(2 + 3) * 4")
        assert isinstance(ast, MathOperation)
        assert ast.operator == MUL
        assert ast.left == Bracket(MathOperation(Number(2.0), ADD, Number(3.0)))
        assert ast.right == Number(4.0)

    def test_formula_marker(self):
        """A leading '=' only marks the text as a formula."""
        assert parse_formula("=1") == Number(1.0)
        assert parse_formula("  =  1") == Number(1.0)
        assert parse_formula("1") == Number(1.0)

    def test_left_associativity(self):
        assert parse_formula("1-2-3") == MathOperation(
            MathOperation(Number(1.0), SUB, Number(2.0)), SUB, Number(3.0)
        )
        assert parse_formula("4/2*3") == MathOperation(
            MathOperation(Number(4.0), DIV, Number(2.0)), MUL, Number(3.0)
        )
        assert parse_formula("3-2+1") == MathOperation(
            MathOperation(Number(3.0), SUB, Number(2.0)), ADD, Number(1.0)
        )

    def test_power_groups_left(self):
        assert parse_formula("2^3^4") == MathOperation(
            MathOperation(Number(2.0), POW, Number(3.0)), POW, Number(4.0)
        )

    def test_operator_precedence(self):
        """Test that operator precedence is correctly handled."""
        ast = parse_formula("1 + 2 * 3")
        assert ast == MathOperation(
            Number(1.0), ADD, MathOperation(Number(2.0), MUL, Number(3.0))
        )

        ast = parse_formula("1*2+2*3/2")
        assert ast == MathOperation(
            MathOperation(Number(1.0), MUL, Number(2.0)),
            ADD,
            MathOperation(
                MathOperation(Number(2.0), MUL, Number(3.0)), DIV, Number(2.0)
            ),
        )

        ast = parse_formula("2*2^2")
        assert ast == MathOperation(
            Number(2.0), MUL, MathOperation(Number(2.0), POW, Number(2.0))
        )

    def test_unary_operators(self):
        """The sign belongs to the operand alone, so -2^2 is (-2)^2."""
        assert parse_formula("-2^2") == MathOperation(
            Minus(Number(2.0)), POW, Number(2.0)
        )
        assert parse_formula("--2") == Minus(Minus(Number(2.0)))
        assert parse_formula("+5") == Number(5.0)
        assert parse_formula("1--2") == MathOperation(
            Number(1.0), SUB, Minus(Number(2.0))
        )
        assert parse_formula("16^-(1/2)") == MathOperation(
            Number(16.0),
            POW,
            Minus(Bracket(MathOperation(Number(1.0), DIV, Number(2.0)))),
        )

    def test_comparison_operators(self):
        """Test parsing of comparison operators."""
        operators = {
            "=": BoolOperator.E,
            "<>": BoolOperator.NE,
            "<": BoolOperator.L,
            ">": BoolOperator.G,
            "<=": BoolOperator.LE,
            ">=": BoolOperator.GE,
        }

        for symbol, op in operators.items():
            ast = parse_formula(f"a {symbol} b")
            assert ast == BoolOperation(Variable("a"), op, Variable("b"))

    def test_comparison_binds_loosest(self):
        assert parse_formula("1+1<3") == BoolOperation(
            MathOperation(Number(1.0), ADD, Number(1.0)), BoolOperator.L, Number(3.0)
        )

    def test_literals(self):
        assert parse_formula('"xx""x"') == Text('xx"x')
        assert parse_formula("123.45") == Number(123.45)
        assert parse_formula("1.2.3") == Number(1.23)
        # A leading dot is dropped along with any later ones
        assert parse_formula(".5") == Number(5.0)
        assert parse_formula(".1.5") == Number(15.0)

    def test_variables(self):
        assert parse_formula("text1") == Variable("text1")
        assert parse_formula("r1:r4") == Variable("r1:r4")
        assert parse_formula("r1:r4").is_range
        assert not parse_formula("r1").is_range

    def test_functions(self):
        """Test parsing of function calls."""
        ast = parse_formula("sum(1; 2)")
        assert ast == Function("sum", (Number(1.0), Number(2.0)))

        assert parse_formula("f()") == Function("f", ())
        assert parse_formula("f(x())") == Function("f", (Function("x", ()),))
        assert parse_formula("f (1)") == Function("f", (Number(1.0),))
        assert parse_formula("f(;1)") == Function("f", (Number(1.0),))
        assert parse_formula("sum(r1:r4)") == Function("sum", (Variable("r1:r4"),))

    def test_formula_references(self):
        ast = parse_formula("=5 * when(text1=text2;=f1;=f2)")
        assert isinstance(ast, MathOperation)
        assert ast.left == Number(5.0)
        assert ast.right == Function(
            "when",
            (
                BoolOperation(Variable("text1"), BoolOperator.E, Variable("text2")),
                FormulaReference("f1"),
                FormulaReference("f2"),
            ),
        )

        assert parse_formula("==f1") == FormulaReference("f1")
        assert parse_formula("a < =f1") == BoolOperation(
            Variable("a"), BoolOperator.L, FormulaReference("f1")
        )

    def test_truncated_input(self):
        """Input ending after an operator keeps what was parsed so far."""
        assert parse_formula("1 +") == Number(1.0)
        assert parse_formula("1 + 2 *") == MathOperation(
            Number(1.0), ADD, Number(2.0)
        )
        assert parse_formula("1 <") == Number(1.0)
        assert parse_formula("(1+2") == Bracket(
            MathOperation(Number(1.0), ADD, Number(2.0))
        )
        assert parse_formula("sum(1;2") == Function("sum", (Number(1.0), Number(2.0)))

    def test_error_handling(self):
        """Test error handling for invalid formulas."""

        def expect_error(formula, error_msg):
            with pytest.raises(ParseError, match=error_msg):
                parse_formula(formula)

        expect_error("", "Empty formula")
        expect_error("   ", "Empty formula")
        expect_error("=", "Empty formula")
        expect_error('"abc', "Unterminated string")
        expect_error(".", "Invalid number")
        expect_error("1 2", "Unexpected character '2'")
        expect_error("1+)", "Unexpected character '\\)'")
        expect_error("()", "Unexpected character '\\)'")
        expect_error("(1 2)", "Expected closing parenthesis")
        expect_error("sum(1 2)", "Expected ';' or '\\)'")
        expect_error("a + =", "Expected formula name")
        expect_error("#", "Unexpected character '#'")

    def test_error_position(self):
        with pytest.raises(ParseError) as excinfo:
            parse_formula("1 + 2 $")
        assert excinfo.value.position == 6

    def test_character_classes(self):
        """Only ASCII letters and digits, and Unicode space separators, are
        recognized."""
        assert parse_formula("a\u00a0+\u2003b") == MathOperation(
            Variable("a"), ADD, Variable("b")
        )

        for formula, char, position in [
            ("1 +\t2", "\t", 3),
            ("1\n", "\n", 1),
            ("1\u00b2", "\u00b2", 1),
            ("caf\u00e9", "\u00e9", 3),
            ("\u00e9t\u00e9", "\u00e9", 0),
        ]:
            message = f"Unexpected character '{char}'"
            with pytest.raises(ParseError, match=message) as excinfo:
                parse_formula(formula)
            assert excinfo.value.position == position

    def test_complex_shapes(self):
        assert str(wrap(parse_formula("=-2 / 25 / 2 * 3"))) == "(((-2.0/25.0)/2.0)*3.0)"
        assert (
            str(wrap(parse_formula("=-(2+2) / 25 / 2 * 3")))
            == "(((-(2.0+2.0)/25.0)/2.0)*3.0)"
        )
        assert str(
            wrap(parse_formula("=-((2+2+2+2-2-2-2-2-2*5)^2) / 25 / 2 * 3"))
        ) == (
            "(((-(((((((((2.0+2.0)+2.0)+2.0)-2.0)-2.0)-2.0)-2.0)-(2.0*5.0))^2.0)"
            "/25.0)/2.0)*3.0)"
        )


class TestFixPrecedence:
    def test_right_nested_subtraction(self):
        m = MathOperation(
            Number(1.0),
            SUB,
            MathOperation(
                Number(2.0), SUB, MathOperation(Number(3.0), SUB, Number(4.0))
            ),
        )

        result = fix_precedence(m)

        assert isinstance(result, MathOperation)
        left = result.left
        assert isinstance(left, MathOperation)
        left2 = left.left
        assert isinstance(left2, MathOperation)
        assert str(left2.left) == "1.0"
        assert str(left2.right) == "2.0"
        assert str(left.right) == "3.0"
        assert str(result.right) == "4.0"

        assert str(wrap(m)) == "(1.0-(2.0-(3.0-4.0)))"
        assert str(wrap(result)) == "(((1.0-2.0)-3.0)-4.0)"

    def test_tighter_right_operand_is_kept(self):
        node = MathOperation(
            Number(1.0), SUB, MathOperation(Number(2.0), MUL, Number(3.0))
        )
        assert fix_precedence(node) == node

    def test_precedence_blind_tree_is_regrouped(self):
        # 2*(3+4) built without brackets means 2*3+4
        node = MathOperation(
            Number(2.0), MUL, MathOperation(Number(3.0), ADD, Number(4.0))
        )
        assert fix_precedence(node) == MathOperation(
            MathOperation(Number(2.0), MUL, Number(3.0)), ADD, Number(4.0)
        )

    def test_power_is_rotated(self):
        node = MathOperation(
            Number(2.0), POW, MathOperation(Number(3.0), POW, Number(4.0))
        )
        assert fix_precedence(node) == MathOperation(
            MathOperation(Number(2.0), POW, Number(3.0)), POW, Number(4.0)
        )

    def test_brackets_are_not_looked_through(self):
        node = MathOperation(
            Number(1.0),
            SUB,
            Bracket(MathOperation(Number(2.0), SUB, Number(3.0))),
        )
        assert fix_precedence(node) == node

    def test_recurses_into_children(self):
        inner = MathOperation(
            Number(1.0), SUB, MathOperation(Number(2.0), SUB, Number(3.0))
        )
        fixed = MathOperation(
            MathOperation(Number(1.0), SUB, Number(2.0)), SUB, Number(3.0)
        )

        assert fix_precedence(Bracket(inner)) == Bracket(fixed)
        assert fix_precedence(Minus(inner)) == Minus(fixed)
        assert fix_precedence(Function("f", (inner, Number(1.0)))) == Function(
            "f", (fixed, Number(1.0))
        )
        assert fix_precedence(
            BoolOperation(inner, BoolOperator.E, inner)
        ) == BoolOperation(fixed, BoolOperator.E, fixed)

    def test_leaves_are_unchanged(self):
        for leaf in (
            Number(1.0),
            Text("a"),
            Variable("r1:r4"),
            FormulaReference("f1"),
        ):
            assert fix_precedence(leaf) is leaf

    @pytest.mark.parametrize(
        "formula",
        [
            "1-2-3",
            "1--2-----3",
            "1*2+2*3/2",
            "2^3^4",
            "=-((2+2+2+2-2-2-2-2-2*5)^2) / 25 / 2 * 3 + 1 +1+2-3+1+1*15",
            "=6*-4*+9*-8/-5/-6/(-2)^2^2",
            "=5 * when(text1=text2;=f1;=f2)",
        ],
    )
    def test_idempotent(self, formula):
        ast = parse_formula(formula)
        assert fix_precedence(ast) == ast
        assert fix_precedence(fix_precedence(ast)) == fix_precedence(ast)

    def test_idempotent_on_hand_built_tree(self):
        node = MathOperation(
            Number(1.0),
            DIV,
            MathOperation(
                Number(2.0),
                MUL,
                MathOperation(Number(3.0), SUB, MathOperation(Number(4.0), ADD, Number(5.0))),
            ),
        )
        once = fix_precedence(node)
        assert fix_precedence(once) == once

    def test_long_chain(self):
        node = parse_formula("+".join(["1"] * 5000))
        assert str(fix_precedence(node)) == str(node)

    def test_rotation_below_long_chain(self):
        node = MathOperation(
            Number(1.0), SUB, MathOperation(Number(2.0), SUB, Number(3.0))
        )
        for _ in range(5000):
            node = MathOperation(node, ADD, Number(1.0))

        fixed = fix_precedence(node)
        for _ in range(5000):
            assert fixed.operator == ADD
            assert fixed.right == Number(1.0)
            fixed = fixed.left
        assert fixed == MathOperation(
            MathOperation(Number(1.0), SUB, Number(2.0)), SUB, Number(3.0)
        )


class TestFormatting:
    def test_node_text(self):
        assert str(Number(2.0)) == "2.0"
        assert str(Number(1e20)) == "100000000000000000000.0"
        assert str(Text('a"b')) == '"a""b"'
        assert str(Variable("r1:r4")) == "r1:r4"
        assert str(Bracket(Number(1.0))) == "(1.0)"
        assert str(Minus(Number(1.0))) == "-1.0"
        assert str(MathOperation(Number(1.0), POW, Number(2.0))) == "1.0^2.0"
        assert (
            str(BoolOperation(Variable("a"), BoolOperator.NE, Variable("b")))
            == "a <> b"
        )
        assert str(Function("sum", (Number(1.0), Variable("a")))) == "sum(1.0;a)"
        assert str(FormulaReference("f1")) == "=f1"

    def test_format_formula(self):
        assert format_formula(FormulaReference("f1")) == "==f1"
        assert format_formula(Number(1.0)) == "=1.0"

    @pytest.mark.parametrize(
        "formula",
        [
            "1-2-3",
            "1--2-----3",
            "(1+2)*3",
            "-2^2",
            "2^3^4",
            "16^-(1/2)",
            '"say ""hi"""',
            "text1<=text2",
            "a < =f1",
            "=f1",
            "=5 * when(text1=text2;=f1;=f2)",
            "sum(r1:r4; f(); 0.0000001)",
        ],
    )
    def test_round_trip(self, formula):
        ast = parse_formula(formula)
        assert parse_formula(format_formula(ast)) == ast


if __name__ == "__main__":
    pytest.main([__file__])
