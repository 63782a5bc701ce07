"""History backfill ("archive scan") through the live routing logic."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from core.activity_log import ActivityLog
from core.config import DEFAULT_HISTORY_LIMIT, clamp_history_limit, parse_timestamp
from core.controller import RunStateController
from core.errors import ConfigurationError, TransportNotReadyError
from core.models import ChatMessage
from core.ports import TransportPort
from core.router import MessageRouter

LOGGER = logging.getLogger(__name__)

PAGE_SIZE = 100
# Upper bound on fetches per conversation, in case history never runs out.
MAX_PAGES = 10


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@dataclass
class ScanResult:
    enqueued: int = 0
    scanned: int = 0
    conversations: int = 0
    failed: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "enqueued": self.enqueued,
            "scanned": self.scanned,
            "conversations": self.conversations,
            "failed": list(self.failed),
        }


class HistoryScanner:
    """Replays recent history of each target conversation, oldest first.

    Conversations are scanned one after another so the fetches stay well
    behind the live pipeline. A failure in one conversation is logged and the
    scan moves on to the next.
    """

    def __init__(
        self,
        controller: RunStateController,
        router: MessageRouter,
        transport: TransportPort,
        activity: ActivityLog,
    ) -> None:
        self._controller = controller
        self._router = router
        self._transport = transport
        self._activity = activity

    async def _targets(self, groups: Optional[Iterable[str]]) -> List[str]:
        if groups:
            return [str(group) for group in groups]
        selection = self._controller.selection
        if selection.ids:
            return sorted(selection.ids)
        if selection.empty_policy == "all":
            return [conversation.id for conversation in await self._transport.get_conversations()]
        return []

    async def _scan_conversation(
        self,
        conversation_id: str,
        start_at: datetime,
        cap: int,
        result: ScanResult,
    ) -> None:
        fetched = 0
        before: Optional[int] = None
        for _ in range(MAX_PAGES):
            if fetched >= cap:
                break
            page_size = min(PAGE_SIZE, cap - fetched)
            page: List[ChatMessage] = await self._transport.fetch_history(
                conversation_id, limit=page_size, before=before
            )
            if not page:
                break
            fetched += len(page)

            ordered = sorted(page, key=lambda item: _aware(item.date))
            for message in ordered:
                if _aware(message.date) < start_at:
                    continue
                if message.conversation_id != conversation_id:
                    continue
                result.scanned += 1
                routed = await self._router.route(message, source="backfill")
                if routed.enqueued:
                    result.enqueued += 1

            oldest = ordered[0]
            if _aware(oldest.date) <= start_at or len(page) < page_size:
                break
            before = oldest.message_id

    async def scan(
        self,
        start_at: Any,
        limit: Any = DEFAULT_HISTORY_LIMIT,
        groups: Optional[Iterable[str]] = None,
    ) -> ScanResult:
        """Scan history since ``start_at`` and return how much was enqueued."""

        start = parse_timestamp(start_at)
        if start is None:
            raise ConfigurationError("startAt is required")
        if not self._transport.is_ready():
            raise TransportNotReadyError("Transport not ready")
        if not self._controller.running:
            self._activity.record("history_scan", note="running is false (still scanning)")

        cap = clamp_history_limit(limit)
        result = ScanResult()
        for conversation_id in await self._targets(groups):
            result.conversations += 1
            try:
                await self._scan_conversation(conversation_id, start, cap, result)
            except Exception as exc:
                LOGGER.warning("History scan failed for %s", conversation_id, exc_info=True)
                self._activity.record("history_error", gid=conversation_id, err=str(exc))
                result.failed.append(conversation_id)

        self._activity.record("history_done", **result.as_dict())
        return result
