"""
Income Conductor automation: run state, the Playwright workflow and the run registry.
"""

from .state import (
    AutomationState,
    AutomationStep,
    PlanResult,
    StepStatus,
    parse_monthly_income,
    parse_start_of_plan,
)
from .income_conductor import AutomationError, IncomeConductorAutomation
from .registry import AutomationBusyError, AutomationRegistry

__all__ = [
    "AutomationState",
    "AutomationStep",
    "PlanResult",
    "StepStatus",
    "parse_monthly_income",
    "parse_start_of_plan",
    "AutomationError",
    "IncomeConductorAutomation",
    "AutomationBusyError",
    "AutomationRegistry",
]
