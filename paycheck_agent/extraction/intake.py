"""
Intake data gathered from the conversation.

Wire format is camelCase (what the browser and the language model speak);
attributes are snake_case. Three fields are required before the planning
automation can run: date of birth, retirement date and current savings.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

# attribute -> accepted wire names (first one is what to_dict emits)
WIRE_NAMES: Dict[str, List[str]] = {
    "first_name": ["firstName", "first_name", "name"],
    "date_of_birth": ["dateOfBirth", "date_of_birth", "birthday", "dob"],
    "retirement_date": ["retirementDate", "retirement_date", "retirementdate"],
    "current_savings": [
        "currentRetirementSavings",
        "currentSavings",
        "current_savings",
        "savedmoney",
    ],
    "age": ["age"],
    "retirement_age": ["retirementAge", "retirement_age"],
    "longevity_estimate": ["longevityEstimate", "longevity_estimate"],
    "current_income": ["currentIncome", "current_income"],
    "monthly_expenses": ["monthlyExpenses", "monthly_expenses"],
    "investment_goals": ["investmentGoals", "investment_goals"],
    "risk_tolerance": ["riskTolerance", "risk_tolerance"],
    "family_status": ["familyStatus", "family_status"],
    "dependents": ["dependents"],
    "health_factors": ["healthFactors", "health_factors"],
}

REQUIRED_FIELDS = ["date_of_birth", "retirement_date", "current_savings"]

FIELD_LABELS = {
    "date_of_birth": "date of birth",
    "retirement_date": "retirement date",
    "current_savings": "current retirement savings",
}


def is_empty(value: Any) -> bool:
    """True for None, blank strings and empty containers."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == "" or value.strip().lower() in ("null", "none", "n/a", "unknown")
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0
    return False


@dataclass
class IntakeData:
    """Financial facts collected so far."""
    first_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    retirement_date: Optional[str] = None
    current_savings: Optional[Any] = None
    age: Optional[Any] = None
    retirement_age: Optional[Any] = None
    longevity_estimate: Optional[Any] = None
    current_income: Optional[Any] = None
    monthly_expenses: Optional[Any] = None
    investment_goals: Optional[str] = None
    risk_tolerance: Optional[str] = None
    family_status: Optional[str] = None
    dependents: Optional[Any] = None
    health_factors: Optional[str] = None
    additional_info: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "IntakeData":
        """Build from a camelCase (or snake_case) dict; unknown keys go to additional_info."""
        if not isinstance(data, dict) or not data:
            return cls()

        lookup = {}
        for attr, names in WIRE_NAMES.items():
            for name in names:
                lookup[name] = attr

        intake = cls()
        for key, value in data.items():
            if key in ("additionalInfo", "additional_info"):
                if isinstance(value, dict):
                    intake.additional_info.update(
                        {k: v for k, v in value.items() if not is_empty(v)}
                    )
                elif not is_empty(value):
                    intake.additional_info["notes"] = value
                continue

            attr = lookup.get(key)
            if attr is None:
                if not is_empty(value):
                    intake.additional_info[key] = value
                continue

            if not is_empty(value) and is_empty(getattr(intake, attr)):
                setattr(intake, attr, value.strip() if isinstance(value, str) else value)

        return intake

    def to_dict(self) -> Dict[str, Any]:
        """camelCase dict without empty fields."""
        result: Dict[str, Any] = {}
        for attr, names in WIRE_NAMES.items():
            value = getattr(self, attr)
            if not is_empty(value):
                result[names[0]] = value
        if self.additional_info:
            result["additionalInfo"] = dict(self.additional_info)
        return result

    def merge(self, other: Optional["IntakeData"]) -> "IntakeData":
        """
        Return a new IntakeData where non-empty values from `other` win.

        Empty values in `other` never erase what is already known.
        """
        merged = IntakeData(additional_info=dict(self.additional_info))
        for f in fields(self):
            if f.name == "additional_info":
                continue
            setattr(merged, f.name, getattr(self, f.name))

        if other is None:
            return merged

        for f in fields(other):
            value = getattr(other, f.name)
            if f.name == "additional_info":
                merged.additional_info.update(
                    {k: v for k, v in value.items() if not is_empty(v)}
                )
            elif not is_empty(value):
                setattr(merged, f.name, value)
        return merged

    def missing_fields(self) -> List[str]:
        return [name for name in REQUIRED_FIELDS if is_empty(getattr(self, name))]

    def completion_percentage(self) -> int:
        filled = len(REQUIRED_FIELDS) - len(self.missing_fields())
        return round(filled / len(REQUIRED_FIELDS) * 100)

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    @property
    def has_any(self) -> bool:
        return any(not is_empty(getattr(self, name)) for name in REQUIRED_FIELDS)
