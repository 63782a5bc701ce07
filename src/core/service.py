"""Service object that owns all mutable triage state.

One instance is built at process start and shared by the Telethon handlers
and the HTTP control surface, which keeps every piece of state reachable from
a single place and lets tests swap the transport for a fake.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Mapping, Optional

from core.action_queue import ActionQueue
from core.activity_log import DEFAULT_CAPACITY, ActivityLog
from core.config import BotSettings
from core.controller import RunStateController
from core.dispatcher import DEFAULT_TICK_SECONDS, ActionDispatcher
from core.history import HistoryScanner, ScanResult
from core.models import ChatMessage, RouteResult
from core.ports import TextExtractorPort, TransportPort
from core.rate_limiter import RateLimiter
from core.router import MessageRouter
from core.selection import ConversationSelection

LOGGER = logging.getLogger(__name__)


class TriageService:
    """Wires the pipeline: inbound -> router -> queue -> dispatcher -> transport."""

    def __init__(
        self,
        transport: TransportPort,
        extractor: Optional[TextExtractorPort] = None,
        *,
        limiter: Optional[RateLimiter] = None,
        empty_selection: str = "all",
        log_capacity: int = DEFAULT_CAPACITY,
        tick_interval: float = DEFAULT_TICK_SECONDS,
    ) -> None:
        self.transport = transport
        self.activity = ActivityLog(log_capacity)
        self.queue = ActionQueue()
        self.limiter = limiter or RateLimiter()
        self.controller = RunStateController(self.activity, empty_selection=empty_selection)
        self.router = MessageRouter(self.controller, self.queue, self.activity, transport, extractor)
        self.dispatcher = ActionDispatcher(self.controller, self.queue, self.limiter, transport, self.activity)
        self.scanner = HistoryScanner(self.controller, self.router, transport, self.activity)
        self._tick_interval = tick_interval
        self._inbound: "asyncio.Queue[ChatMessage]" = asyncio.Queue()
        self._background: set[asyncio.Task] = set()

    # Control surface -----------------------------------------------------

    @property
    def settings(self) -> BotSettings:
        return self.controller.settings

    def start(self, settings: Optional[Mapping[str, Any]], clients: Optional[Iterable[dict]]) -> BotSettings:
        """Start the bot and kick off a backfill if the settings ask for one."""

        installed = self.controller.start(settings, clients)
        archive = installed.archive
        if archive.enabled and archive.start_at is not None:
            self._spawn(self._backfill_on_start(archive.start_at, archive.limit))
        return installed

    def stop(self) -> None:
        self.controller.stop()

    def select_groups(self, ids: Iterable[str]) -> ConversationSelection:
        return self.controller.select(ids)

    async def scan_history(
        self,
        start_at: Any,
        limit: Any = None,
        groups: Optional[Iterable[str]] = None,
    ) -> ScanResult:
        kwargs = {} if limit is None else {"limit": limit}
        return await self.scanner.scan(start_at, groups=groups, **kwargs)

    def flush_queue(self) -> int:
        cleared = self.queue.flush()
        self.activity.record("queue_flushed", cleared=cleared)
        return cleared

    def health(self) -> dict:
        return {
            "status": "ok",
            "isReady": self.transport.is_ready(),
            "running": self.controller.running,
            "selectedGroupIds": sorted(self.controller.selection.ids),
            "emptySelection": self.controller.selection.empty_policy,
            "clients": len(self.controller.roster),
            "queued": len(self.queue),
            "sending": self.dispatcher.inflight,
            "rate": self.limiter.snapshot(),
            "settings": self.controller.settings.as_dict(),
        }

    # Transport events ------------------------------------------------------

    def submit(self, message: ChatMessage) -> None:
        """Hand an inbound message to the single routing consumer."""

        self._inbound.put_nowait(message)

    def on_connected(self) -> None:
        self.activity.record("ready")

    def on_disconnected(self, reason: str = "") -> None:
        # Losing the session also stops the bot; it must be started again.
        self.controller.running = False
        self.activity.record("disconnected", reason=reason)

    # Background loops ------------------------------------------------------

    async def handle(self, message: ChatMessage) -> Optional[RouteResult]:
        try:
            return await self.router.route(message)
        except Exception as exc:
            LOGGER.exception("Error while routing message")
            self.activity.record("message_error", err=str(exc))
            return None

    async def run_inbound(self) -> None:
        while True:
            message = await self._inbound.get()
            try:
                await self.handle(message)
            finally:
                self._inbound.task_done()

    async def run_dispatcher(self) -> None:
        await self.dispatcher.run(self._tick_interval)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _backfill_on_start(self, start_at, limit: int) -> None:
        try:
            await self.scanner.scan(start_at, limit=limit)
        except Exception as exc:
            LOGGER.warning("Backfill on start failed: %s", exc)
            self.activity.record("history_trigger_error", err=str(exc))

    async def wait_background(self) -> None:
        """Wait for spawned background work such as start-time backfills."""

        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
