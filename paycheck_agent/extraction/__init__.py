"""
Heuristic extraction of retirement-planning facts.

- intake: the IntakeData record and its merge rules
- text_extractor: regex pass over what the caller said
- dates / amounts: best-effort parsing with fixed fallbacks
- form_builder: the strings typed into the planning site
"""

from .intake import IntakeData, REQUIRED_FIELDS, FIELD_LABELS, is_empty
from .text_extractor import extract_from_text, extract_from_conversation
from .form_builder import (
    AutomationFormData,
    build_form_data,
    form_data_from_webhook,
    describe_form_data,
)

__all__ = [
    "IntakeData",
    "REQUIRED_FIELDS",
    "FIELD_LABELS",
    "is_empty",
    "extract_from_text",
    "extract_from_conversation",
    "AutomationFormData",
    "build_form_data",
    "form_data_from_webhook",
    "describe_form_data",
]
