import unicodedata

from formula_interpreter.errors import ParseError

# Returned by peek() past the end of the input. Compare with sets or `==`,
# never with `in "<chars>"`, since the empty string is a substring of anything.
EOF = ""

# Space, line and paragraph separators. Tabs and newlines are not blanks.
BLANK_CATEGORIES = {"Zs", "Zl", "Zp"}


def is_blank(char: str) -> bool:
    return char != EOF and unicodedata.category(char) in BLANK_CATEGORIES


def is_digit(char: str) -> bool:
    return "0" <= char <= "9"


def is_letter(char: str) -> bool:
    """ASCII letters only."""
    return char.isascii() and char.isalpha()


class FormulaScanner:
    """Character cursor over a formula source.

    There is no token stream: the parser asks for the character at an offset
    from the cursor and moves the cursor itself.
    """

    def __init__(self, formula: str):
        self.formula = formula
        self.pos = 0
        self.length = len(formula)

    def peek(self, offset: int = 0) -> str:
        """Character at cursor + offset, or EOF."""
        index = self.pos + offset
        if index >= self.length:
            return EOF
        return self.formula[index]

    def advance(self) -> None:
        self.pos += 1

    def at_end(self) -> bool:
        return self.pos >= self.length

    def skip_blanks(self) -> None:
        while is_blank(self.peek()):
            self.pos += 1

    def read_number(self) -> float:
        """Read digits and dots. Dots after the first one are dropped, so
        "1.2.3" reads as 1.23. A leading dot counts as that first dot but is
        dropped as well: ".5" reads as 5 and ".1.5" as 15."""
        start = self.pos
        digits = []
        seen_decimal = False
        if self.peek() == ".":
            seen_decimal = True
            self.pos += 1
        while is_digit(char := self.peek()) or char == ".":
            self.pos += 1
            if char == ".":
                if seen_decimal:
                    continue
                seen_decimal = True
            digits.append(char)

        value = "".join(digits)
        try:
            return float(value)
        except ValueError:
            raise ParseError(f"Invalid number '{value}'", start)

    def read_string(self) -> str:
        """Read a double-quoted string literal.
        Rules:
        1. Strings start and end with double quotes
        2. Double quotes inside strings are escaped by doubling them
        """
        start = self.pos
        self.pos += 1  # Skip opening quote
        value = []
        while self.pos < self.length:
            char = self.formula[self.pos]
            if char == '"':
                self.pos += 1
                if self.pos < self.length and self.formula[self.pos] == '"':
                    value.append('"')
                    self.pos += 1
                else:
                    break
            else:
                value.append(char)
                self.pos += 1
        else:
            raise ParseError(f"Unterminated string literal '{''.join(value)}'", start)

        return "".join(value)

    def read_identifier(self) -> str:
        """Read a variable or function name. The first character must be a
        letter; ':' is allowed afterwards so that ranges like r1:r4 are a
        single name."""
        start = self.pos
        if not is_letter(self.peek()):
            raise ParseError("Expected a name", start)
        self.pos += 1
        while is_letter(char := self.peek()) or is_digit(char) or char == ":":
            self.pos += 1
        return self.formula[start : self.pos]

    def read_formula_name(self) -> str:
        start = self.pos
        while is_letter(char := self.peek()) or is_digit(char):
            self.pos += 1
        if start == self.pos:
            raise ParseError("Expected formula name after '='", start)
        return self.formula[start : self.pos]
