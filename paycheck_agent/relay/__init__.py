"""
Automation progress relay (Socket.IO rooms + polling history).
"""

from .progress import (
    ProgressRelay,
    ProgressUpdate,
    PROGRESS_EVENT,
    RESULT_EVENT,
    START_EVENT,
)

__all__ = [
    "ProgressRelay",
    "ProgressUpdate",
    "PROGRESS_EVENT",
    "RESULT_EVENT",
    "START_EVENT",
]
