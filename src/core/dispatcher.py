"""Timed drain loop that turns queued items into reactions or replies."""

from __future__ import annotations

import asyncio
import logging

from core.action_queue import ActionQueue, QueueItem
from core.activity_log import ActivityLog
from core.config import BotSettings
from core.controller import RunStateController
from core.ports import TransportPort
from core.rate_limiter import RateLimiter, Reservation

LOGGER = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 0.25


class ActionDispatcher:
    """Single consumer of the action queue.

    Each tick handles at most one item, and only the head of the queue. When
    the gate is closed the head stays put, so items are never reordered.
    The send itself runs in its own task: the slot is reserved in the limiter
    first and handed back if the send fails. A transport call that never
    returns holds one slot and that conversation's cooldown, and the loop
    keeps ticking. Failed sends are dropped rather than retried to keep the
    backlog bounded.
    """

    def __init__(
        self,
        controller: RunStateController,
        queue: ActionQueue,
        limiter: RateLimiter,
        transport: TransportPort,
        activity: ActivityLog,
    ) -> None:
        self._controller = controller
        self._queue = queue
        self._limiter = limiter
        self._transport = transport
        self._activity = activity
        self._inflight: set[asyncio.Task] = set()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def _perform(self, item: QueueItem, mode: str, reply_text: str) -> str:
        if mode == "reply":
            if item.message is not None:
                await self._transport.reply(item.message, reply_text)
            else:
                await self._transport.send_message(item.conversation_id, reply_text)
            return "reply"
        await self._transport.react(item.message, item.emoji)
        return "react"

    async def _send(self, item: QueueItem, settings: BotSettings, reservation: Reservation) -> None:
        try:
            action = await self._perform(item, settings.mode, settings.reply_text)
        except asyncio.CancelledError:
            self._limiter.release(reservation)
            raise
        except Exception as exc:
            LOGGER.warning("Action failed for %s", item.conversation_id, exc_info=True)
            self._limiter.release(reservation)
            self._activity.record("send_error", jid=item.conversation_id, err=str(exc))
            return

        self._activity.record(
            action,
            jid=item.conversation_id,
            client=item.client_name,
            source=item.source,
            preview=item.text[:80],
        )

    async def tick(self) -> bool:
        """Dispatch the action at the head of the queue if the gate allows it.

        Returns True when an item was consumed (handed to a send task or
        skipped). The send is not awaited; use ``settle`` to wait for it.
        """

        if not self._controller.running or not self._transport.is_ready():
            return False
        head = self._queue.peek()
        if head is None:
            return False

        settings = self._controller.settings
        gate = self._limiter.check(head.conversation_id, settings.rate_limit, settings.cooldown_seconds)
        if not gate.allowed:
            return False

        item = self._queue.pop()
        if settings.mode == "react" and item.message is None:
            self._activity.record("send_skipped", jid=item.conversation_id, reason="no_message_handle")
            return True

        reservation = self._limiter.mark(item.conversation_id)
        task = asyncio.get_running_loop().create_task(self._send(item, settings, reservation))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return True

    async def settle(self) -> None:
        """Wait for every send started so far to finish."""

        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def run(self, interval: float = DEFAULT_TICK_SECONDS) -> None:
        """Drain forever at a fixed period until cancelled."""

        LOGGER.info("Dispatcher started (tick=%.2fs)", interval)
        try:
            while True:
                try:
                    await self.tick()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    LOGGER.exception("Dispatcher tick failed")
                await asyncio.sleep(interval)
        finally:
            for task in list(self._inflight):
                task.cancel()
