"""
Automation form data.

Turns intake facts into the exact strings typed into the Income Conductor
client profile and plan screens. Two entry points exist:

- build_form_data(): the browser path, fed by the conversation's IntakeData
- form_data_from_webhook(): the voice-agent webhook path, fed by three raw
  strings (savedmoney, retirementdate, birthday)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .amounts import digits_only, parse_amount
from .dates import (
    age_at,
    calculate_age,
    extract_retirement_month_year,
    format_retirement_date,
    format_us_date,
    parse_birthday,
    parse_date_text,
    parse_retirement_date,
    resolve_retirement_age,
)
from .intake import IntakeData, is_empty

DEFAULT_INVESTMENT_AMOUNT = "130000"
DEFAULT_BIRTHDAY = "07/01/1967"
DEFAULT_RETIREMENT_AGE = "62"
DEFAULT_LONGEVITY = "100"
DEFAULT_RETIREMENT_MONTH = "1"
DEFAULT_RETIREMENT_YEAR = "2030"

_WIRE = {
    "session_id": "sessionId",
    "description": "description",
    "notes": "notes",
    "investment_amount": "investmentAmount",
    "birthday": "birthday",
    "retirement_age": "retirementAge",
    "longevity_estimate": "longevityEstimate",
    "retirement_month": "retirementMonth",
    "retirement_year": "retirementYear",
}


@dataclass
class AutomationFormData:
    """Values entered into the planning site for one automation session."""
    session_id: Optional[str] = None
    description: str = "Income Conductor automation workflow"
    notes: Optional[str] = None
    investment_amount: str = DEFAULT_INVESTMENT_AMOUNT
    birthday: str = DEFAULT_BIRTHDAY
    retirement_age: str = DEFAULT_RETIREMENT_AGE
    longevity_estimate: str = DEFAULT_LONGEVITY
    retirement_month: str = DEFAULT_RETIREMENT_MONTH
    retirement_year: str = DEFAULT_RETIREMENT_YEAR

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AutomationFormData":
        """Read camelCase request data; blanks keep the defaults."""
        form = cls()
        if not isinstance(data, dict):
            data = {}
        for attr, key in _WIRE.items():
            value = data.get(key)
            if value is None:
                value = data.get(attr)
            if not is_empty(value):
                setattr(form, attr, str(value).strip())
        form.investment_amount = digits_only(form.investment_amount) or DEFAULT_INVESTMENT_AMOUNT
        return form

    def to_dict(self) -> Dict[str, Any]:
        result = {key: getattr(self, attr) for attr, key in _WIRE.items()}
        return {k: v for k, v in result.items() if v is not None}


def _savings_to_amount(savings: Any) -> str:
    amount = parse_amount(savings)
    if amount is not None:
        return str(amount)
    return digits_only(savings)


def build_form_data(intake: IntakeData, session_id: Optional[str] = None) -> AutomationFormData:
    """Map conversation facts onto the automation form, keeping defaults for gaps."""
    form = AutomationFormData(session_id=session_id)

    if not is_empty(intake.date_of_birth):
        birth = parse_date_text(intake.date_of_birth)
        form.birthday = format_us_date(birth) if birth else str(intake.date_of_birth)

    if not is_empty(intake.retirement_date):
        retirement_text = str(intake.retirement_date)
        form.retirement_age = str(resolve_retirement_age(intake.date_of_birth, retirement_text))
        month, year = extract_retirement_month_year(retirement_text, intake.date_of_birth)
        form.retirement_month = month
        form.retirement_year = year
    elif not is_empty(intake.retirement_age):
        form.retirement_age = str(resolve_retirement_age(None, str(intake.retirement_age)))

    if not is_empty(intake.current_savings):
        form.investment_amount = _savings_to_amount(intake.current_savings) or DEFAULT_INVESTMENT_AMOUNT

    if not is_empty(intake.longevity_estimate):
        longevity = digits_only(intake.longevity_estimate)
        if longevity and 60 <= int(longevity) <= 120:
            form.longevity_estimate = longevity

    return form


def form_data_from_webhook(
    savedmoney: Any,
    retirementdate: Any,
    birthday: Any,
    session_id: Optional[str] = None,
) -> AutomationFormData:
    """
    Build form data from the voice agent's webhook fields.

    Unparseable dates fall back to 1970-01-01 (birthday) and 2030-01-01
    (retirement). Retirement age is the exact age on the retirement date.
    """
    birth = parse_birthday(birthday)
    retire = parse_retirement_date(retirementdate)

    amount = _savings_to_amount(savedmoney) if not is_empty(savedmoney) else ""

    return AutomationFormData(
        session_id=session_id,
        investment_amount=amount or DEFAULT_INVESTMENT_AMOUNT,
        birthday=format_us_date(birth),
        retirement_age=str(age_at(birth, retire)),
        retirement_year=str(retire.year),
        retirement_month=str(retire.month),
        longevity_estimate=DEFAULT_LONGEVITY,
    )


def describe_form_data(intake: IntakeData, form: AutomationFormData) -> Dict[str, Any]:
    """Display helpers shown next to the form before the user confirms."""
    current_age = calculate_age(intake.date_of_birth) if not is_empty(intake.date_of_birth) else None
    return {
        "currentAge": current_age,
        "retirementAge": int(form.retirement_age),
        "displayRetirementDate": format_retirement_date(
            str(intake.retirement_date or ""), current_age=current_age
        ),
        "completion": intake.completion_percentage(),
        "missingFields": intake.missing_fields(),
    }
