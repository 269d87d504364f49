from enum import IntEnum, auto
from typing import Union

from formula_interpreter.errors import CoercionError


class FormulaType(IntEnum):
    EMPTY = auto()
    NUMBER = auto()
    TEXT = auto()
    BOOLEAN = auto()
    SEQUENCE = auto()


ScalarFormulaValue = None | int | float | str | bool
# Sequences are only produced by range variables
FormulaValue = Union[ScalarFormulaValue, "list[FormulaValue]"]


def formula_type(value: FormulaValue) -> FormulaType:
    """Return the FormulaType for a given value."""
    if value is None:
        return FormulaType.EMPTY
    # bool before int: booleans are not numbers here
    if isinstance(value, bool):
        return FormulaType.BOOLEAN
    if isinstance(value, (int, float)):
        return FormulaType.NUMBER
    if isinstance(value, str):
        return FormulaType.TEXT
    if isinstance(value, (list, tuple)):
        return FormulaType.SEQUENCE
    raise CoercionError(f"Unsupported formula value: {value!r}")


def is_number(value: FormulaValue) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def flatten_values(*values: FormulaValue) -> list[ScalarFormulaValue]:
    """Flatten function arguments into a single list of non-sequence values."""
    result: list[ScalarFormulaValue] = []
    for value in values:
        if isinstance(value, (list, tuple)):
            result.extend(flatten_values(*value))
        else:
            result.append(value)
    return result
