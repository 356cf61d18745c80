"""
Recent log ring exposed through the debug endpoint.

A logging.Handler that keeps the last MAX_ENTRIES records of the
``gatekeeper`` logger tree in memory, tagged with the session whose
pipeline emitted them (taken from the ``current_session`` context var,
which asyncio copies into every task).
"""

import logging
from collections import deque
from contextvars import ContextVar
from typing import Deque, Dict, List, Optional

MAX_ENTRIES = 200

current_session: ContextVar[Optional[str]] = ContextVar("current_session", default=None)


class RecentLogHandler(logging.Handler):
    """Bounded in-memory log handler."""

    def __init__(self, capacity: int = MAX_ENTRIES, level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self._records: Deque[Dict[str, str]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._records.append({
                "t": f"{record.created * 1000:.0f}",
                "cat": record.name.rsplit(".", 1)[-1],
                "level": record.levelname,
                "session": current_session.get() or "",
                "message": record.getMessage(),
            })
        except Exception:
            self.handleError(record)

    def entries(self, session_id: Optional[str] = None) -> List[Dict[str, str]]:
        """Recorded entries, optionally only those emitted for ``session_id``."""
        if session_id is None:
            return list(self._records)
        return [r for r in self._records if r["session"] == session_id]

    def clear(self) -> None:
        self._records.clear()


recent_logs = RecentLogHandler()


def install(logger_name: str = "gatekeeper") -> RecentLogHandler:
    """Attach the shared ring to ``logger_name`` once and return it."""
    target = logging.getLogger(logger_name)
    if recent_logs not in target.handlers:
        target.addHandler(recent_logs)
    return recent_logs
