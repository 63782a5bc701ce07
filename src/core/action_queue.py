"""FIFO buffer of pending reactions."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, Iterator, Optional

from core.models import ChatMessage


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class QueueItem:
    """One pending action, created by the router and consumed once."""

    conversation_id: str
    text: str
    message: Optional[ChatMessage]
    emoji: str
    client_name: str
    source: str = "live"
    enqueued_at: datetime = field(default_factory=_utcnow)


class ActionQueue:
    """Ordered queue drained by a single dispatcher.

    Live and backfill items share this queue; insertion order is the only
    ordering guarantee.
    """

    def __init__(self) -> None:
        self._items: Deque[QueueItem] = deque()

    def push(self, item: QueueItem) -> None:
        self._items.append(item)

    def peek(self) -> Optional[QueueItem]:
        return self._items[0] if self._items else None

    def pop(self) -> Optional[QueueItem]:
        return self._items.popleft() if self._items else None

    def flush(self) -> int:
        """Drop every pending item and return how many were removed."""

        cleared = len(self._items)
        self._items.clear()
        return cleared

    def __iter__(self) -> Iterator[QueueItem]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)
