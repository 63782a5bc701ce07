"""Global per-minute cap plus per-conversation cooldown."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional

WINDOW_SECONDS = 60.0


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class Reservation:
    """Slot taken by ``mark``; hand it back to ``release`` if the send fails."""

    conversation_id: str
    stamp: float
    previous: Optional[float]


class RateLimiter:
    """Sliding-window limiter.

    ``check`` only reads state. ``mark`` takes a slot in the window and starts
    the conversation's cooldown before the send is attempted, so an in-flight
    send counts against the cap. ``release`` gives the slot back when the send
    fails, which leaves the quota as if nothing had been sent.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._window: Deque[float] = deque()
        self._last_action: Dict[str, float] = {}
        self._longest_cooldown = 0.0

    def _active(self, now: float) -> int:
        return sum(1 for ts in self._window if now - ts < WINDOW_SECONDS)

    def _trim(self, now: float) -> None:
        while self._window and now - self._window[0] >= WINDOW_SECONDS:
            self._window.popleft()
        horizon = max(WINDOW_SECONDS, self._longest_cooldown)
        stale = [conv for conv, ts in self._last_action.items() if now - ts >= horizon]
        for conv in stale:
            del self._last_action[conv]

    def check(self, conversation_id: str, per_minute: int, cooldown_seconds: float) -> GateDecision:
        """Return whether an action on the conversation may run right now."""

        self._longest_cooldown = max(self._longest_cooldown, cooldown_seconds)
        now = self._clock()
        if self._active(now) >= per_minute:
            return GateDecision(False, "rate_limited")
        last = self._last_action.get(conversation_id)
        if last is not None and now - last < cooldown_seconds:
            return GateDecision(False, "cooldown")
        return GateDecision(True)

    def mark(self, conversation_id: str) -> Reservation:
        """Record an action in both the window and the cooldown map."""

        now = self._clock()
        self._trim(now)
        previous = self._last_action.get(conversation_id)
        self._window.append(now)
        self._last_action[conversation_id] = now
        return Reservation(conversation_id, now, previous)

    def release(self, reservation: Reservation) -> None:
        """Undo a ``mark`` whose action did not go through."""

        try:
            self._window.remove(reservation.stamp)
        except ValueError:
            pass  # already aged out of the window
        conv = reservation.conversation_id
        if self._last_action.get(conv) == reservation.stamp:
            if reservation.previous is None:
                del self._last_action[conv]
            else:
                self._last_action[conv] = reservation.previous

    def snapshot(self) -> dict:
        now = self._clock()
        return {
            "actionsLastMinute": self._active(now),
            "trackedConversations": len(self._last_action),
        }
