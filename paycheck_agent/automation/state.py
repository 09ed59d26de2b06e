"""
Automation run state.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class StepStatus(Enum):
    """Status of an automation step."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


# (step id, label, fatal on failure)
AUTOMATION_STEPS = [
    ("navigation", "Open Income Conductor", True),
    ("login", "Sign in", True),
    ("plan-selection", "Open the Plan card", False),
    ("client-selection", "Select the client", False),
    ("profile-update", "Update date of birth", False),
    ("plan-edit", "Open the plan editor", False),
    ("investment-input", "Enter investment amount", False),
    ("client-data", "Enter retirement age, longevity and date", False),
    ("plan-update", "Recalculate the plan", False),
    ("data-extraction", "Read the plan results", True),
]


@dataclass
class AutomationStep:
    """A single step of the planning-site workflow."""
    step_id: str
    name: str
    fatal: bool = False
    status: StepStatus = StepStatus.PENDING
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    error_message: Optional[str] = None
    logs: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "step_id": self.step_id,
            "name": self.name,
            "status": self.status.value,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "error_message": self.error_message,
            "logs": self.logs[-10:],
        }


@dataclass
class PlanResult:
    """Figures read off the plan summary."""
    monthly_income_net: Optional[str] = None
    segment1: Optional[str] = None
    segment2: Optional[str] = None
    total: Optional[str] = None
    page_title: Optional[str] = None
    current_url: Optional[str] = None
    screenshot_path: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def has_figures(self) -> bool:
        return any([self.monthly_income_net, self.segment1, self.segment2, self.total])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan1": self.segment1,
            "plan2": self.segment2,
            "total": self.total,
            "monthlyIncomeNet": self.monthly_income_net,
            "pageTitle": self.page_title,
            "currentUrl": self.current_url,
            "screenshotPath": self.screenshot_path,
            "timestamp": self.timestamp,
        }

    def to_webhook_dict(self) -> Dict[str, Any]:
        """Response shape expected by the voice agent's webhook tool."""
        return {
            "success": True,
            "Segment1": self.segment1,
            "Segment2": self.segment2,
            "Total": self.total,
            "monthlyIncomeNet": self.monthly_income_net,
        }


@dataclass
class AutomationState:
    """Overall automation run state."""
    session_id: str
    status: StepStatus = StepStatus.PENDING
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    steps: List[AutomationStep] = field(default_factory=list)
    result: Optional[PlanResult] = None
    error_message: Optional[str] = None

    @classmethod
    def create(cls, session_id: str) -> "AutomationState":
        return cls(
            session_id=session_id,
            steps=[AutomationStep(step_id=sid, name=name, fatal=fatal)
                   for sid, name, fatal in AUTOMATION_STEPS],
        )

    def get_step(self, step_id: str) -> Optional[AutomationStep]:
        for step in self.steps:
            if step.step_id == step_id:
                return step
        return None

    def get_current_step(self) -> Optional[AutomationStep]:
        for step in self.steps:
            if step.status == StepStatus.IN_PROGRESS:
                return step
        return None

    def get_overall_progress(self) -> int:
        """Finished steps (completed or skipped) as a 0-100 percentage."""
        if not self.steps:
            return 0
        done = sum(1 for s in self.steps if s.status in (StepStatus.COMPLETED, StepStatus.SKIPPED))
        return int((done / len(self.steps)) * 100)

    @property
    def is_active(self) -> bool:
        return self.status in (StepStatus.PENDING, StepStatus.IN_PROGRESS)

    def to_dict(self) -> dict:
        current = self.get_current_step()
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "overall_progress": self.get_overall_progress(),
            "current_step": current.to_dict() if current else None,
            "steps": [s.to_dict() for s in self.steps],
            "result": self.result.to_dict() if self.result else None,
            "error_message": self.error_message,
        }


def _clean(text: Any) -> str:
    return re.sub(r"\s+", " ", str(text or "")).strip()


def parse_monthly_income(items: List[Dict[str, Any]]) -> Optional[str]:
    """
    Find the "Income /mo (Net)" badge among plan-summary list items.

    Each item is {"label": <span text>, "badge": <badge text or None>}.
    """
    for item in items or []:
        if _clean(item.get("label")) == "Income /mo (Net)":
            badge = _clean(item.get("badge"))
            if badge:
                return badge
    return None


def parse_start_of_plan(rows: List[List[str]]) -> Optional[Dict[str, str]]:
    """
    Read the two segment balances and the total from the "Start of Plan" row.

    Each row is [first cell text, right-aligned cell texts...].
    """
    for row in rows or []:
        if not row or _clean(row[0]) != "Start of Plan":
            continue
        values = [_clean(cell) for cell in row[1:]]
        if len(values) >= 3:
            return {"plan1": values[0], "plan2": values[1], "total": values[2]}
    return None
