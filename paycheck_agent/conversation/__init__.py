"""
Retirement intake conversation.
"""

from .advisor import (
    ConversationError,
    ConversationMessage,
    ConversationTurn,
    RetirementAdvisor,
    parse_history,
)

__all__ = [
    "ConversationError",
    "ConversationMessage",
    "ConversationTurn",
    "RetirementAdvisor",
    "parse_history",
]
