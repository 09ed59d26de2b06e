"""
Regex extraction of intake facts from conversational text.

Runs before the language model on every turn, and is the only extractor
when no model is configured. Only the required fields (plus first name)
are looked for; later mentions override earlier ones.
"""

import re
from typing import Any, Iterable, Optional

from .amounts import parse_amount
from .dates import format_us_date, parse_date_text
from .intake import IntakeData

MONTH = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
ORDINAL = r"(?:st|nd|rd|th)?"

DATE = (
    r"(?:\d{1,2}/\d{1,2}/\d{4}"
    r"|\d{4}-\d{2}-\d{2}"
    rf"|{MONTH}\.?\s+\d{{1,2}}{ORDINAL},?\s+\d{{4}}"
    rf"|\d{{1,2}}{ORDINAL}\s+(?:of\s+)?{MONTH},?\s+\d{{4}}"
    rf"|\d{{4}}\s+{MONTH}\s+\d{{1,2}}{ORDINAL})"
)

_BIRTHDAY_PATTERNS = [
    re.compile(
        rf"(?:born(?:\s+on)?|birth\s*day\s+is|date\s+of\s+birth\s+is|date\s+of\s+birth|dob(?:\s+is)?:?)\s+({DATE})",
        re.IGNORECASE,
    ),
    re.compile(r"born\s+(?:in\s+)?((?:19|20)\d{2})\b", re.IGNORECASE),
]

_RETIREMENT_PATTERNS = [
    re.compile(
        rf"retirement\s+date\s+(?:is|would\s+be|will\s+be)\s+({DATE}|{MONTH}\s+\d{{4}}|\d{{4}})",
        re.IGNORECASE,
    ),
    re.compile(r"retire\w*\s+(?:at\s+)?(?:the\s+)?age\s+(?:of\s+)?(\d{2,3})\b", re.IGNORECASE),
    re.compile(r"retire\w*\s+at\s+(\d{2,3})\b", re.IGNORECASE),
    re.compile(r"retire\w*\s+(in\s+\d+\s+years?)", re.IGNORECASE),
    re.compile(rf"retire\w*\s+(?:in|by|around|on)\s+({MONTH}\s+(?:of\s+)?\d{{4}})", re.IGNORECASE),
    re.compile(r"retire\w*\s+(?:in|by|around|on)\s+(?:the\s+year\s+)?((?:19|20)\d{2})\b", re.IGNORECASE),
]

AMOUNT = r"\$?\s?\d[\d,]*(?:\.\d+)?\s*(?:k|thousand|grand|million|mil|m)?\b"
SAVINGS_WORDS = (
    r"\b(?:saved|savings|save|nest\s+egg|401\s*\(?k\)?|403\s*\(?b\)?|ira|"
    r"retirement\s+(?:account|fund|savings)|put\s+away)"
)

_SAVINGS_PATTERNS = [
    re.compile(rf"({AMOUNT})\s+(?:dollars\s+)?(?:saved|put\s+away|in\s+(?:my\s+|our\s+)?{SAVINGS_WORDS})", re.IGNORECASE),
    re.compile(rf"{SAVINGS_WORDS}[^.$\d]{{0,40}}({AMOUNT})", re.IGNORECASE),
]

_NAME_RE = re.compile(r"(?i:\bmy\s+name\s+is|\bi'?m|\bi\s+am|\bthis\s+is|\bcall\s+me)\s+([A-Z][a-z]+)\b")
_NOT_NAMES = {
    "About", "Currently", "Fine", "Going", "Good", "Here", "Hoping", "Just",
    "Looking", "Married", "Not", "Planning", "Ready", "Really", "Retired",
    "Single", "So", "Still", "Sure", "Thinking", "Trying", "Very", "Worried",
}


def _normalise_date(fragment: str) -> str:
    """MM/DD/YYYY when the fragment is a full date, else the fragment as spoken."""
    fragment = fragment.strip().rstrip(".,")
    if re.fullmatch(r"\d{4}", fragment):
        return fragment
    parsed = parse_date_text(fragment)
    return format_us_date(parsed) if parsed else fragment


def _last_match(patterns, text: str) -> Optional[str]:
    """Group 1 of the match that appears last in the text (ties go to earlier patterns)."""
    best = None
    best_pos = -1
    for pattern in patterns:
        for match in pattern.finditer(text):
            if match.start() > best_pos:
                best_pos = match.start()
                best = match.group(1)
    return best


def _looks_like_money(fragment: str, amount: Optional[int]) -> bool:
    if amount is None:
        return False
    if "$" in fragment or re.search(r"[a-z]", fragment, re.IGNORECASE):
        return True
    return amount >= 1000


def extract_birthday(text: str) -> Optional[str]:
    match = _last_match(_BIRTHDAY_PATTERNS, text)
    return _normalise_date(match) if match else None


def extract_retirement_date(text: str) -> Optional[str]:
    match = _last_match(_RETIREMENT_PATTERNS, text)
    if not match:
        return None
    return re.sub(r"\s+of\s+", " ", match.strip()).rstrip(".,")


def extract_savings(text: str) -> Optional[int]:
    candidates = []
    for pattern in _SAVINGS_PATTERNS:
        for match in pattern.finditer(text):
            fragment = match.group(1)
            amount = parse_amount(fragment)
            if _looks_like_money(fragment, amount):
                candidates.append((match.start(1), amount))
    if not candidates:
        return None
    candidates.sort()
    return candidates[-1][1]


def extract_first_name(text: str) -> Optional[str]:
    names = [m.group(1) for m in _NAME_RE.finditer(text) if m.group(1) not in _NOT_NAMES]
    return names[-1] if names else None


def extract_from_text(text: Optional[str]) -> IntakeData:
    """Pull whatever required facts a single utterance mentions."""
    if not text or not text.strip():
        return IntakeData()
    return IntakeData(
        first_name=extract_first_name(text),
        date_of_birth=extract_birthday(text),
        retirement_date=extract_retirement_date(text),
        current_savings=extract_savings(text),
    )


def _message_parts(message: Any):
    if isinstance(message, dict):
        speaker = message.get("type") or message.get("role") or "user"
        return speaker, message.get("content") or ""
    return getattr(message, "type", "user"), getattr(message, "content", "") or ""


def extract_from_conversation(messages: Iterable[Any]) -> IntakeData:
    """Fold the user's turns in order so later answers win."""
    intake = IntakeData()
    for message in messages or []:
        speaker, content = _message_parts(message)
        if speaker != "user":
            continue
        intake = intake.merge(extract_from_text(content))
    return intake
