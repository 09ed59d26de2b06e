"""
Progress relay between the automation thread and connected browsers.

Every update is recorded per session (so a browser that lost its socket can
poll) and pushed through an `emit` callable, normally `SocketIO.emit`.
Updates for a session go to the Socket.IO room named after the session id;
updates without a session id are broadcast.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

PROGRESS_EVENT = "automation-progress"
RESULT_EVENT = "automation-result"
START_EVENT = "automation-start"

EmitFn = Callable[..., Any]


@dataclass
class ProgressUpdate:
    """One step of automation progress."""
    step: str
    message: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload = {"step": self.step, "message": self.message, "timestamp": self.timestamp}
        for key, value in self.details.items():
            payload.setdefault(key, value)
        payload["details"] = dict(self.details)
        return payload


@dataclass
class _SessionLog:
    updates: List[ProgressUpdate] = field(default_factory=list)
    dropped: int = 0
    result: Optional[Dict[str, Any]] = None
    last_activity: datetime = field(default_factory=datetime.now)


class ProgressRelay:
    """
    Thread-safe fan-out of automation progress.

    Args:
        emit: Called as emit(event, payload, to=room) or emit(event, payload)
        ttl_seconds: Sessions idle longer than this are pruned
        max_events: History kept per session
    """

    def __init__(
        self,
        emit: Optional[EmitFn] = None,
        ttl_seconds: int = 3600,
        max_events: int = 500,
    ):
        self._emit = emit
        self.ttl_seconds = ttl_seconds
        self.max_events = max_events
        self._sessions: Dict[str, _SessionLog] = {}
        self._lock = threading.Lock()

    def attach(self, emit: Optional[EmitFn]):
        """Swap the transport (the web app attaches SocketIO.emit at startup)."""
        self._emit = emit

    def _send(self, event: str, payload: Dict[str, Any], session_id: Optional[str]):
        if self._emit is None:
            return
        try:
            if session_id:
                self._emit(event, payload, to=session_id)
            else:
                self._emit(event, payload)
        except Exception as e:
            print(f"  [Relay] ⚠️ Failed to emit {event}: {e}")

    def _log_for(self, session_id: str) -> _SessionLog:
        log = self._sessions.get(session_id)
        if log is None:
            log = _SessionLog()
            self._sessions[session_id] = log
        log.last_activity = datetime.now()
        return log

    def publish(self, session_id: Optional[str], step: str, message: str, **details) -> ProgressUpdate:
        update = ProgressUpdate(step=step, message=message, details=details)
        print(f"  [Relay] {step} - {message}")

        if session_id:
            with self._lock:
                log = self._log_for(session_id)
                log.updates.append(update)
                overflow = len(log.updates) - self.max_events
                if overflow > 0:
                    del log.updates[:overflow]
                    log.dropped += overflow

        self._send(PROGRESS_EVENT, update.to_dict(), session_id)
        return update

    def publish_start(self, session_id: Optional[str], **details):
        self.prune()
        if session_id:
            with self._lock:
                self._log_for(session_id)
        self._send(START_EVENT, {"sessionId": session_id, **details}, session_id)

    def publish_result(self, session_id: Optional[str], payload: Dict[str, Any]):
        if session_id:
            with self._lock:
                self._log_for(session_id).result = dict(payload)
        self._send(RESULT_EVENT, payload, session_id)

    def history(self, session_id: str, since: int = 0) -> List[Dict[str, Any]]:
        """
        Updates from index `since` onwards, for polling clients.

        Indices count every update ever published for the session, so they
        stay stable after old updates fall off the capped history.
        """
        with self._lock:
            log = self._sessions.get(session_id)
            if log is None:
                return []
            start = max(since - log.dropped, 0)
            return [u.to_dict() for u in log.updates[start:]]

    def result(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            log = self._sessions.get(session_id)
            return dict(log.result) if log and log.result is not None else None

    def sessions(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())

    def clear(self, session_id: str):
        with self._lock:
            self._sessions.pop(session_id, None)

    def prune(self, now: Optional[datetime] = None) -> int:
        """Drop sessions idle longer than the TTL. Returns how many went."""
        now = now or datetime.now()
        with self._lock:
            stale = [
                sid for sid, log in self._sessions.items()
                if (now - log.last_activity).total_seconds() > self.ttl_seconds
            ]
            for sid in stale:
                del self._sessions[sid]
        return len(stale)
