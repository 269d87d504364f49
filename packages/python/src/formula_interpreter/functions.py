from typing import Any, Callable, Optional, ParamSpec, overload

import numpy as np

from formula_interpreter.errors import FunctionError
from formula_interpreter.types import FormulaValue, flatten_values, is_number

P = ParamSpec("P")

FORMULA_FUNCTIONS: dict[str, Callable[..., FormulaValue]] = {}


@overload
def formula_fn(
    fn: Callable[P, FormulaValue], *, name: Optional[str] = None
) -> Callable[P, FormulaValue]: ...
@overload
def formula_fn(
    fn: None = None, *, name: Optional[str] = None
) -> Callable[[Callable[P, FormulaValue]], Callable[P, FormulaValue]]: ...


def formula_fn(
    fn: Callable[P, FormulaValue] | None = None,
    *,
    name: Optional[str] = None,
) -> Any:
    """Decorator to register a function under the name formulas call it by."""

    def decorator(fn: Callable[P, FormulaValue]) -> Callable[P, FormulaValue]:
        # If used on a staticmethod, unwrap for registration but return the
        # original descriptor to preserve method semantics.
        underlying = fn.__func__ if isinstance(fn, staticmethod) else fn
        reg_name = name or underlying.__name__.lower()
        FORMULA_FUNCTIONS[reg_name] = underlying
        setattr(underlying, "_formula_fn_name", reg_name)
        return fn

    if fn:
        return decorator(fn)
    else:
        return decorator


def _check_arity(name: str, args: tuple, expected: int) -> None:
    if len(args) != expected:
        raise FunctionError(
            f"{name}() takes {expected} argument{'s' if expected != 1 else ''}, "
            f"got {len(args)}"
        )


class FormulaFunctions:
    """Standard functions available to every environment by default.

    Each receives the evaluated arguments positionally, a range variable
    arriving as a single list argument.
    """

    @formula_fn
    @staticmethod
    def SQRT(*args: FormulaValue) -> FormulaValue:
        """Square root. Negative numbers give nan."""
        _check_arity("sqrt", args, 1)
        (value,) = args
        if not is_number(value):
            raise FunctionError(f"sqrt() expects a number, got {value!r}")
        with np.errstate(invalid="ignore"):
            return float(np.sqrt(np.float64(value)))

    @formula_fn
    @staticmethod
    def SUM(*args: FormulaValue) -> FormulaValue:
        """Sum of the numeric arguments, including those inside ranges.
        Anything else is skipped."""
        return float(sum(value for value in flatten_values(*args) if is_number(value)))

    @formula_fn
    @staticmethod
    def WHEN(*args: FormulaValue) -> FormulaValue:
        """when(condition; value_if_true; value_if_false)"""
        _check_arity("when", args, 3)
        condition, true_value, false_value = args
        if not isinstance(condition, bool):
            raise FunctionError(f"when() expects a boolean condition, got {condition!r}")
        return true_value if condition else false_value

    @formula_fn(name="und")
    @staticmethod
    def AND(*args: FormulaValue) -> FormulaValue:
        """True if every argument is True. Non-boolean arguments count as False."""
        return all(value is True for value in args)

    @formula_fn(name="oder")
    @staticmethod
    def OR(*args: FormulaValue) -> FormulaValue:
        """True if any argument is True."""
        return any(value is True for value in args)
