"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class ChatMessage:
    """Minimal inbound message used by the triage pipeline.

    ``raw`` keeps the transport's own message object so adapters can react,
    reply or download media without the core knowing its type.
    """

    conversation_id: str
    message_id: int
    date: datetime
    text: str
    is_group: bool
    has_image: bool = False
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ConversationInfo:
    """A joinable group conversation as listed by the transport."""

    id: str
    name: str
    participants: int


@dataclass(frozen=True)
class RouteResult:
    """Outcome of routing one message, including the skip reason if any."""

    outcome: str
    reason: Optional[str] = None
    client_name: Optional[str] = None

    @property
    def enqueued(self) -> bool:
        return self.outcome == "enqueued"
