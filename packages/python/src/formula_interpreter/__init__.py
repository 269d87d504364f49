from formula_interpreter.ast import Expression, format_formula
from formula_interpreter.errors import (
    CoercionError,
    CycleError,
    FormulaError,
    FormulaNotFound,
    FunctionError,
    FunctionNotFound,
    NameNotFound,
    ParseError,
)
from formula_interpreter.functions import FORMULA_FUNCTIONS, formula_fn
from formula_interpreter.interpreter import (
    Environment,
    EvaluationTrace,
    FormulaInterpreter,
    evaluate,
)
from formula_interpreter.parser import fix_precedence, parse_formula

parse = parse_formula

__all__ = [
    "CoercionError",
    "CycleError",
    "Environment",
    "EvaluationTrace",
    "Expression",
    "FORMULA_FUNCTIONS",
    "FormulaError",
    "FormulaInterpreter",
    "FormulaNotFound",
    "FunctionError",
    "FunctionNotFound",
    "NameNotFound",
    "ParseError",
    "evaluate",
    "fix_precedence",
    "format_formula",
    "formula_fn",
    "parse",
    "parse_formula",
]
