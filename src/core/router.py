"""Inbound message routing: filters, enrichment, matching, enqueue.

Checks run in a fixed order and the first failing one decides the skip
reason. Reasons from step 4 on are also recorded in the activity log; the
conversation gates fire for every unrelated chat and would flood it.

1) run state (live only)
2) group-only conversations
3) selected conversations (live only)
4) empty body after optional OCR enrichment
5) required terms, then excluded terms
6) client matching
"""

from __future__ import annotations

import logging
from typing import Optional

from core.action_queue import ActionQueue, QueueItem
from core.activity_log import ActivityLog
from core.controller import RunStateController
from core.matcher import match_client
from core.models import ChatMessage, RouteResult
from core.normalizer import contains_term, normalize_text
from core.ports import TextExtractorPort, TransportPort

LOGGER = logging.getLogger(__name__)

PREVIEW_CHARS = 80


class MessageRouter:
    """Decides whether a message mentions a client and enqueues the action."""

    def __init__(
        self,
        controller: RunStateController,
        queue: ActionQueue,
        activity: ActivityLog,
        transport: TransportPort,
        extractor: Optional[TextExtractorPort] = None,
    ) -> None:
        self._controller = controller
        self._queue = queue
        self._activity = activity
        self._transport = transport
        self._extractor = extractor

    def _skip(self, message: ChatMessage, reason: str, source: str) -> RouteResult:
        self._activity.record(
            "skip",
            reason=reason,
            jid=message.conversation_id,
            messageId=message.message_id,
            source=source,
        )
        return RouteResult(outcome="skipped", reason=reason)

    async def _enrich(self, message: ChatMessage) -> str:
        """Append OCR text for image messages; failures keep the original body."""

        content = message.text or ""
        if self._extractor is None:
            return content
        try:
            image = await self._transport.download_image(message)
            if not image:
                return content
            extracted = (await self._extractor.extract_text(image) or "").strip()
        except Exception as exc:
            LOGGER.debug("OCR failed for %s/%s", message.conversation_id, message.message_id, exc_info=True)
            self._activity.record("ocr_error", jid=message.conversation_id, err=str(exc))
            return content
        if not extracted:
            return content
        return f"{content} {extracted}".strip()

    async def route(self, message: ChatMessage, source: str = "live") -> RouteResult:
        """Run one message through the filters and matcher."""

        controller = self._controller
        backfill = source == "backfill"

        if not backfill and not controller.running:
            return RouteResult(outcome="skipped", reason="not_running")
        if not message.is_group:
            return RouteResult(outcome="skipped", reason="not_group")
        if not backfill and not controller.selection.allows(message.conversation_id):
            return RouteResult(outcome="skipped", reason="not_selected")

        # Snapshot once so a concurrent start() cannot mix two configurations
        # within a single message.
        settings = controller.settings
        roster = controller.roster

        content = message.text or ""
        if settings.enable_ocr and message.has_image:
            content = await self._enrich(message)
        if not content.strip():
            return self._skip(message, "empty", source)

        arabic = settings.normalize_arabic
        normalized = normalize_text(content, arabic=arabic)
        for term in settings.required_terms:
            if not contains_term(normalized, normalize_text(term, arabic=arabic)):
                return self._skip(message, "missing_required_term", source)
        for term in settings.excluded_terms:
            if contains_term(normalized, normalize_text(term, arabic=arabic)):
                return self._skip(message, "excluded_term", source)

        matched = match_client(roster, content, settings.threshold, settings.emoji, arabic=arabic)
        if matched is None:
            return self._skip(message, "no_match", source)

        preview = content[:PREVIEW_CHARS]
        if settings.dry_run:
            self._activity.record(
                "dry_run_match",
                jid=message.conversation_id,
                client=matched.client.name,
                score=round(matched.score, 3),
                preview=preview,
            )
            return RouteResult(outcome="dry_run", client_name=matched.client.name)

        self._queue.push(
            QueueItem(
                conversation_id=message.conversation_id,
                text=content,
                message=message,
                emoji=matched.emoji,
                client_name=matched.client.name,
                source=source,
            )
        )
        self._activity.record(
            "enqueue",
            jid=message.conversation_id,
            client=matched.client.name,
            source=source,
            preview=preview,
        )
        return RouteResult(outcome="enqueued", client_name=matched.client.name)
