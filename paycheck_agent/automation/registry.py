"""
Registry of automation runs.

The planning site is driven through a single shared account, so only one
run may be active at a time. Finished runs stay queryable for an hour.
"""

import threading
from datetime import datetime
from typing import Dict, List, Optional

from .income_conductor import IncomeConductorAutomation
from .state import StepStatus

RUN_TTL_SECONDS = 3600  # Prune finished runs after 1 hour
RUN_IN_PROGRESS_TIMEOUT_SECONDS = 15 * 60


def _is_busy(automation: IncomeConductorAutomation) -> bool:
    """A run holds the slot until it is finished and its browser is closed."""
    return automation.state.is_active or automation.is_running


class AutomationBusyError(Exception):
    """Another automation run is still active."""


class AutomationRegistry:
    """Thread-safe map of session id to automation run."""

    def __init__(
        self,
        ttl_seconds: int = RUN_TTL_SECONDS,
        timeout_seconds: int = RUN_IN_PROGRESS_TIMEOUT_SECONDS,
    ):
        self.ttl_seconds = ttl_seconds
        self.timeout_seconds = timeout_seconds
        self._runs: Dict[str, IncomeConductorAutomation] = {}
        self._lock = threading.Lock()

    def _prune(self, now: Optional[datetime] = None):
        """Time out stuck runs and drop finished ones past the TTL. Caller holds the lock."""
        now = now or datetime.now()
        to_remove = []
        for sid, automation in self._runs.items():
            state = automation.state

            if state.status == StepStatus.IN_PROGRESS and state.started_at:
                try:
                    started = datetime.fromisoformat(state.started_at)
                except (ValueError, TypeError):
                    started = None
                if started and (now - started).total_seconds() > self.timeout_seconds:
                    message = "Automation timed out after 15 minutes"
                    automation.stop(message)
                    state.status = StepStatus.FAILED
                    state.error_message = message
                    state.completed_at = now.isoformat()

            if state.completed_at:
                try:
                    completed = datetime.fromisoformat(state.completed_at)
                except (ValueError, TypeError):
                    continue
                if (now - completed).total_seconds() > self.ttl_seconds:
                    to_remove.append(sid)

        for sid in to_remove:
            del self._runs[sid]

    def register(self, automation: IncomeConductorAutomation) -> str:
        """
        Add a run, refusing while another one is active.

        Raises:
            AutomationBusyError: If a run is pending or in progress
        """
        with self._lock:
            self._prune()
            active = [a for a in self._runs.values() if _is_busy(a)]
            if active:
                raise AutomationBusyError("An automation is already running")
            self._runs[automation.session_id] = automation
            return automation.session_id

    def get(self, session_id: str) -> Optional[IncomeConductorAutomation]:
        with self._lock:
            return self._runs.get(session_id)

    def active(self) -> List[IncomeConductorAutomation]:
        with self._lock:
            self._prune()
            return [a for a in self._runs.values() if _is_busy(a)]

    def stop(self, session_id: str) -> bool:
        with self._lock:
            automation = self._runs.get(session_id)
        if automation is None:
            return False
        automation.stop()
        return True

    def prune(self, now: Optional[datetime] = None):
        with self._lock:
            self._prune(now)

    def clear(self):
        with self._lock:
            self._runs.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)
