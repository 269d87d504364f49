class FormulaError(Exception):
    """Base class for all errors raised while parsing or evaluating formulas."""


class ParseError(FormulaError, ValueError):
    def __init__(self, message: str, position: int | None = None):
        self.position = position
        if position is not None:
            message = f"{message} at position {position}"
        super().__init__(message)


class NameNotFound(FormulaError, LookupError):
    """A name could not be resolved in the environment.

    `suggestions` holds the closest known names, best match first.
    """

    kind = "name"

    def __init__(self, name: str, suggestions: list[str] | None = None):
        self.name = name
        self.suggestions = suggestions or []
        message = f"Undefined {self.kind}: {name}"
        if self.suggestions:
            message += f" (did you mean {', '.join(self.suggestions)}?)"
        super().__init__(message)


class FunctionNotFound(NameNotFound):
    kind = "function"


class FormulaNotFound(NameNotFound):
    kind = "formula"


class CoercionError(FormulaError, TypeError):
    pass


class FunctionError(FormulaError):
    pass


class CycleError(FormulaError, RecursionError):
    pass
