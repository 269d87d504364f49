import operator
from typing import Any, Callable

import numpy as np

from formula_interpreter.ast import BoolOperator, MathOperator
from formula_interpreter.errors import CoercionError
from formula_interpreter.types import FormulaType, FormulaValue, formula_type, is_number


def apply_math(
    op: MathOperator, left: FormulaValue, right: FormulaValue
) -> float | None:
    """Apply an arithmetic operator with IEEE-754 double semantics.

    Returns None (no value) when either operand is not a number: a missing
    variable silently cancels the whole arithmetic subtree.
    """
    if not (is_number(left) and is_number(right)):
        return None

    l = np.float64(left)
    r = np.float64(right)
    # Division by zero and overflowing powers give inf/nan, not exceptions
    with np.errstate(all="ignore"):
        match op:
            case MathOperator.ADD:
                result = l + r
            case MathOperator.SUB:
                result = l - r
            case MathOperator.MUL:
                result = l * r
            case MathOperator.DIV:
                result = l / r
            case MathOperator.POW:
                result = np.power(l, r)
            case _:
                raise ValueError(f"Unknown operator: {op}")
    return float(result)


def negate(value: FormulaValue) -> float | None:
    if value is None:
        return None
    if not is_number(value):
        raise CoercionError(
            f"Cannot negate {formula_type(value).name.lower()} value {value!r}"
        )
    return -float(value)


_ORDERINGS: dict[BoolOperator, Callable[[Any, Any], bool]] = {
    BoolOperator.G: operator.gt,
    BoolOperator.GE: operator.ge,
    BoolOperator.E: operator.eq,
    BoolOperator.L: operator.lt,
    BoolOperator.LE: operator.le,
}


def apply_comparison(
    op: BoolOperator, left: FormulaValue, right: FormulaValue
) -> bool | None:
    """Compare two values. Numbers compare as floats, text lexicographically
    and booleans with False < True.

    Ranges cannot be compared at all. Among the other values, NE is plain
    inequality and accepts any pair, while the ordering operators raise
    CoercionError for values of different types.
    """
    if left is None or right is None:
        return None

    ltype = formula_type(left)
    rtype = formula_type(right)

    if FormulaType.SEQUENCE in (ltype, rtype):
        raise _incomparable(op, left, right)

    if op is BoolOperator.NE:
        if ltype != rtype:
            return True
        if ltype == FormulaType.NUMBER:
            return float(left) != float(right)
        return left != right

    if ltype != rtype:
        raise _incomparable(op, left, right)

    if ltype == FormulaType.NUMBER:
        left, right = float(left), float(right)
    return _ORDERINGS[op](left, right)


def _incomparable(op: BoolOperator, left: FormulaValue, right: FormulaValue):
    return CoercionError(
        f"Cannot compare {formula_type(left).name.lower()} {left!r} "
        f"with {formula_type(right).name.lower()} {right!r} using '{op}'"
    )
