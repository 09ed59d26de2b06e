"""
Date heuristics for spoken birthdays and retirement dates.

Callers say things like "2004 March 6th", "04/06/1964", "65", "at age 62",
"in 5 years" or "June 2031". Each helper tries the known shapes in order
and falls back to a fixed default; none of them raise on bad input.
"""

import calendar
import re
from datetime import date, datetime
from typing import Optional, Tuple, Union

from dateutil import parser as date_parser

DateLike = Union[date, str, None]

DEFAULT_BIRTHDAY = date(1970, 1, 1)
DEFAULT_RETIREMENT_DATE = date(2030, 1, 1)
DEFAULT_RETIREMENT_AGE = 62
DEFAULT_RETIREMENT_MONTH = "1"
DEFAULT_RETIREMENT_YEAR = "2030"

MIN_RETIREMENT_AGE = 50
MAX_RETIREMENT_AGE = 100

_MONTHS = {name.lower(): index for index, name in enumerate(calendar.month_name) if name}
_MONTHS.update({name.lower(): index for index, name in enumerate(calendar.month_abbr) if name})
_MONTHS["sept"] = 9

_YEAR_MONTH_DAY_RE = re.compile(r"^(\d{4})\s+([A-Za-z]+)\s+(\d{1,2})(?:st|nd|rd|th)?$")
_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_US_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_YEAR_RE = re.compile(r"^\d{4}$")
_MONTH_SLASH_YEAR_RE = re.compile(r"^(\d{1,2})/(\d{4})$")
_BARE_AGE_RE = re.compile(r"^\d{1,2}$")
_AGE_PHRASE_RE = re.compile(r"(?:age|at age)\s*(\d{1,2})", re.IGNORECASE)
_IN_YEARS_RE = re.compile(r"in\s*(\d+)\s*years?", re.IGNORECASE)
_MONTH_YEAR_RE = re.compile(r"^([A-Za-z]+)\s+(\d{4})$")
_ORDINAL_RE = re.compile(r"(\d{1,2})(?:st|nd|rd|th)\b", re.IGNORECASE)
_LOOSE_AGE_RE = re.compile(r"(\d{2,3})")


def _today(today: Optional[date]) -> date:
    return today or date.today()


def _in_retirement_range(age: int) -> bool:
    return MIN_RETIREMENT_AGE <= age <= MAX_RETIREMENT_AGE


def _year_start(text: str) -> Optional[date]:
    """January 1st of a bare four-digit year, or None outside 1901..2099."""
    if not _YEAR_RE.match(text):
        return None
    year = int(text)
    if not 1900 < year < 2100:
        return None
    return date(year, 1, 1)


def _general_parse(text: str) -> Optional[date]:
    """Last-resort parse through dateutil; missing parts default to Jan 1."""
    cleaned = _ORDINAL_RE.sub(r"\1", text.strip())
    # Short bare numbers are ages or days, never a full date
    if not cleaned or re.fullmatch(r"\d{1,3}", cleaned):
        return None
    try:
        parsed = date_parser.parse(cleaned, default=datetime(2000, 1, 1))
    except (ValueError, OverflowError):
        return None
    if not 1900 < parsed.year < 2100:
        return None
    return parsed.date()


def parse_date_text(value: DateLike) -> Optional[date]:
    """
    Parse a birthday-style date, returning None when nothing matches.

    Tried in order: "YYYY Month D(th)", ISO "YYYY-MM-DD", US "MM/DD/YYYY",
    then a general dateutil parse.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    match = _YEAR_MONTH_DAY_RE.match(text)
    if match:
        year, month_name, day = match.groups()
        month = _MONTHS.get(month_name.lower())
        if month:
            try:
                return date(int(year), month, int(day))
            except ValueError:
                return None

    if _ISO_RE.match(text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None

    match = _US_DATE_RE.match(text)
    if match:
        month, day, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    return _general_parse(text)


def parse_birthday(value: DateLike, default: date = DEFAULT_BIRTHDAY) -> date:
    """Parse a spoken date of birth, falling back to `default`."""
    return parse_date_text(value) or default


def parse_retirement_date(value: DateLike, default: date = DEFAULT_RETIREMENT_DATE) -> date:
    """Parse a retirement date; a bare year means January 1st of that year."""
    if isinstance(value, date):
        return value.date() if isinstance(value, datetime) else value
    text = str(value or "").strip()
    if not text:
        return default

    if _YEAR_RE.match(text):
        return _year_start(text) or default

    if _ISO_RE.match(text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            return default

    return _general_parse(text) or default


def age_at(birthday: date, on_date: date) -> int:
    """Whole years between `birthday` and `on_date`."""
    years = on_date.year - birthday.year
    if (on_date.month, on_date.day) < (birthday.month, birthday.day):
        years -= 1
    return years


def calculate_age(birthday: DateLike, today: Optional[date] = None) -> int:
    """Current age in whole years, 0 when the birthday can't be parsed."""
    birth = parse_date_text(birthday)
    if birth is None:
        return 0
    return age_at(birth, _today(today))


def format_us_date(value: date) -> str:
    return value.strftime("%m/%d/%Y")


def extract_retirement_month_year(
    retirement_text: Optional[str],
    birthday: DateLike = None,
    today: Optional[date] = None,
) -> Tuple[str, str]:
    """
    Turn a spoken retirement target into the (month, year) the planning
    site's dropdowns use. Month is unpadded ("6", not "06").
    """
    fallback = (DEFAULT_RETIREMENT_MONTH, DEFAULT_RETIREMENT_YEAR)
    text = str(retirement_text or "").strip()
    if not text:
        return fallback

    current_year = _today(today).year
    birth = parse_date_text(birthday)

    if _YEAR_RE.match(text):
        return ("1", text) if _year_start(text) else fallback

    match = _MONTH_SLASH_YEAR_RE.match(text)
    if match:
        month, year = match.groups()
        if 1 <= int(month) <= 12:
            return str(int(month)), year
        return fallback

    if _BARE_AGE_RE.match(text) and _in_retirement_range(int(text)):
        target_age = int(text)
        if birth:
            return "1", str(birth.year + target_age)
        # No birthday: assume the caller is about 30 years from that age
        return "1", str(current_year + target_age - 30)

    match = _AGE_PHRASE_RE.search(text)
    if match and birth:
        return "1", str(birth.year + int(match.group(1)))

    match = _IN_YEARS_RE.search(text)
    if match:
        return "1", str(current_year + int(match.group(1)))

    parsed = _general_parse(text)
    if parsed:
        return str(parsed.month), str(parsed.year)

    return fallback


def calculate_retirement_age(
    birthday: DateLike,
    retirement_text: Optional[str],
    today: Optional[date] = None,
) -> int:
    """
    Retirement age implied by a birthday and a spoken retirement target.

    Returns 0 when nothing sensible (50..100) can be derived.
    """
    text = str(retirement_text or "").strip()
    if not birthday or not text:
        return 0

    if _BARE_AGE_RE.match(text) and _in_retirement_range(int(text)):
        return int(text)

    match = _AGE_PHRASE_RE.search(text)
    if match:
        return int(match.group(1))

    birth = parse_date_text(birthday)

    match = re.search(r"in\s+(\d+)\s+years?", text, re.IGNORECASE)
    if match and birth:
        return age_at(birth, _today(today)) + int(match.group(1))

    if _YEAR_RE.match(text):
        retire = _year_start(text)
    else:
        retire = _general_parse(text)

    if retire and birth:
        years = retire.year - birth.year
        if _in_retirement_range(years):
            return years

    match = _LOOSE_AGE_RE.search(text)
    if match and _in_retirement_range(int(match.group(1))):
        return int(match.group(1))

    return 0


def resolve_retirement_age(birthday: DateLike, retirement_text: Optional[str]) -> int:
    """Retirement age for the automation form, defaulting to 62."""
    text = str(retirement_text or "").strip()
    age = 0

    if birthday:
        age = calculate_retirement_age(birthday, text)
    elif _BARE_AGE_RE.match(text) and _in_retirement_range(int(text)):
        age = int(text)
    else:
        match = _AGE_PHRASE_RE.search(text)
        if match:
            age = int(match.group(1))

    if not _in_retirement_range(age):
        return DEFAULT_RETIREMENT_AGE
    return age


def format_retirement_date(
    retirement_text: Optional[str],
    current_age: Optional[int] = None,
    today: Optional[date] = None,
) -> str:
    """Human readable retirement date for confirmation screens."""
    text = str(retirement_text or "").strip()
    if not text:
        return ""

    current_year = _today(today).year
    estimated_age = current_age or 50

    if _YEAR_RE.match(text):
        return f"January 1, {text}"

    if _BARE_AGE_RE.match(text) and _in_retirement_range(int(text)):
        age = int(text)
        return f"January 1, {current_year + age - estimated_age} (at age {age})"

    match = _AGE_PHRASE_RE.search(text)
    if match:
        age = int(match.group(1))
        return f"January 1, {current_year + age - estimated_age} (at age {age})"

    match = _MONTH_YEAR_RE.match(text)
    if match:
        month, year = match.groups()
        return f"{month.capitalize()} 1, {year}"

    match = re.search(r"in\s+(\d+)\s+years?", text, re.IGNORECASE)
    if match:
        years = int(match.group(1))
        return f"January 1, {current_year + years} (in {years} years)"

    parsed = _general_parse(text)
    if parsed:
        return f"{calendar.month_name[parsed.month]} {parsed.day}, {parsed.year}"

    return text
