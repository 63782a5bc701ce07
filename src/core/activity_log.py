"""Bounded in-memory event log exposed by the control surface."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_CAPACITY = 500


@dataclass(frozen=True)
class LogEntry:
    ts: float
    event: str
    context: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"ts": int(self.ts * 1000), "event": self.event, **self.context}


class ActivityLog:
    """Append-only ring that drops the oldest entry beyond ``capacity``.

    Every entry is mirrored to the standard logger so file and console sinks
    see the same events as ``GET /logs``.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._entries: Deque[LogEntry] = deque(maxlen=max(1, capacity))

    def record(self, event: str, **context: Any) -> LogEntry:
        entry = LogEntry(ts=time.time(), event=event, context=context)
        self._entries.append(entry)
        LOGGER.info("%s %s", event, context)
        return entry

    def recent(self, limit: Optional[int] = None) -> List[LogEntry]:
        """Return entries newest first, optionally capped at ``limit``."""

        entries = list(reversed(self._entries))
        if limit is not None:
            entries = entries[: max(0, limit)]
        return entries

    def events(self) -> List[str]:
        """Return event names oldest first."""

        return [entry.event for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
