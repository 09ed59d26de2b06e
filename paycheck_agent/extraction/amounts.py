"""
Dollar amount heuristics.

Spoken amounts arrive as "$130,000", "130k", "about 1.2 million dollars"
and so on. Everything here is best effort and returns None (or the input
unchanged) instead of raising.
"""

import re
from typing import Optional, Union

Number = Union[int, float]

_MULTIPLIERS = {
    "k": 1_000,
    "thousand": 1_000,
    "grand": 1_000,
    "m": 1_000_000,
    "mm": 1_000_000,
    "mil": 1_000_000,
    "million": 1_000_000,
    "b": 1_000_000_000,
    "billion": 1_000_000_000,
}

_AMOUNT_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(k|thousand|grand|mm|mil|million|m|billion|b)?\b",
    re.IGNORECASE,
)

# "401k" / "401(k)" / "403b" are account names, not amounts
_ACCOUNT_NAME_RE = re.compile(r"\b40[13]\s*\(?[kb]\)?", re.IGNORECASE)


def parse_amount(value: Union[str, Number, None]) -> Optional[int]:
    """
    Parse a whole-dollar amount from free text.

    Examples:
        "$130,000" -> 130000
        "130k" -> 130000
        "1.2 million" -> 1200000
        "none" -> None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(round(value))

    text = _ACCOUNT_NAME_RE.sub(" ", str(value))
    text = text.replace(",", "").replace("$", " ")

    match = _AMOUNT_RE.search(text)
    if not match:
        return None

    amount = float(match.group(1))
    unit = (match.group(2) or "").lower()
    amount *= _MULTIPLIERS.get(unit, 1)
    return int(round(amount))


def digits_only(value: Union[str, Number, None]) -> str:
    """Strip everything except digits ("$130,000" -> "130000")."""
    if value is None:
        return ""
    if isinstance(value, float):
        value = int(round(value))
    return re.sub(r"[^0-9]", "", str(value))


def format_currency(value: Union[str, Number, None]) -> str:
    """Format as whole US dollars; non-numeric strings pass through."""
    if value is None or value == "":
        return "N/A"
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"${value:,.0f}"

    cleaned = re.sub(r"[^\d.-]", "", str(value))
    try:
        return f"${float(cleaned):,.0f}"
    except ValueError:
        return str(value)
