import math
from decimal import Decimal
from typing import Iterable

from rapidfuzz import fuzz, process


def format_number(value: float) -> str:
    """Render a number the way it can be read back by the parser.

    The scanner has no exponent notation, so 1e+20 is written out in full.
    """
    text = repr(float(value))
    if not math.isfinite(value):
        return text
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
        if "." not in text:
            text += ".0"
    return text


def closest_names(
    name: str, candidates: Iterable[str], limit: int = 3, similarity: float = 0.6
) -> list[str]:
    """Known names resembling `name`, best match first."""
    matches = process.extract(
        name,
        list(candidates),
        scorer=fuzz.ratio,
        limit=limit,
        score_cutoff=similarity * 100,
    )
    return [match[0] for match in sorted(matches, key=lambda m: -m[1])]
