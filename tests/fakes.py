from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

from core.models import ChatMessage, ConversationInfo

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_message(
    text: str,
    *,
    conversation_id: str = "g1",
    message_id: int = 1,
    date: Optional[datetime] = None,
    is_group: bool = True,
    has_image: bool = False,
) -> ChatMessage:
    return ChatMessage(
        conversation_id=conversation_id,
        message_id=message_id,
        date=date or BASE_TIME,
        text=text,
        is_group=is_group,
        has_image=has_image,
    )


def make_history(conversation_id: str, texts_and_offsets: list[tuple[str, int]]) -> list[ChatMessage]:
    """Build ascending history; offsets are minutes relative to BASE_TIME."""

    return [
        make_message(
            text,
            conversation_id=conversation_id,
            message_id=index,
            date=BASE_TIME + timedelta(minutes=offset),
        )
        for index, (text, offset) in enumerate(texts_and_offsets, start=1)
    ]


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    def __init__(self, ready: bool = True) -> None:
        self.ready = ready
        self.qr: Optional[str] = None
        self.reactions: list[tuple[str, int, str]] = []
        self.replies: list[tuple[str, int, str]] = []
        self.sent: list[tuple[str, str]] = []
        self.fail_sends = False
        self.conversations: list[ConversationInfo] = []
        self.history: dict[str, list[ChatMessage]] = {}
        self.failing_history: set[str] = set()
        self.fetch_calls: list[tuple[str, int, Optional[int]]] = []
        self.images: dict[int, bytes] = {}
        self.hang_on: set[str] = set()
        self.unhang = asyncio.Event()
        self.ready_errors = 0

    def is_ready(self) -> bool:
        if self.ready_errors:
            self.ready_errors -= 1
            raise RuntimeError("session state unavailable")
        return self.ready

    def pairing_qr(self) -> Optional[str]:
        return self.qr

    async def react(self, message: ChatMessage, emoji: str) -> None:
        if message.conversation_id in self.hang_on:
            await self.unhang.wait()
        if self.fail_sends:
            raise RuntimeError("send failed")
        self.reactions.append((message.conversation_id, message.message_id, emoji))

    async def reply(self, message: ChatMessage, text: str) -> None:
        if self.fail_sends:
            raise RuntimeError("send failed")
        self.replies.append((message.conversation_id, message.message_id, text))

    async def send_message(self, conversation_id: str, text: str) -> None:
        if self.fail_sends:
            raise RuntimeError("send failed")
        self.sent.append((conversation_id, text))

    async def get_conversations(self) -> list[ConversationInfo]:
        return list(self.conversations)

    async def fetch_history(
        self, conversation_id: str, limit: int, before: Optional[int] = None
    ) -> list[ChatMessage]:
        self.fetch_calls.append((conversation_id, limit, before))
        if conversation_id in self.failing_history:
            raise RuntimeError("history unavailable")
        messages = self.history.get(conversation_id, [])
        if before is not None:
            messages = [message for message in messages if message.message_id < before]
        return list(reversed(messages[-limit:]))

    async def download_image(self, message: ChatMessage) -> Optional[bytes]:
        return self.images.get(message.message_id)


class FakeExtractor:
    def __init__(self, text: str = "", error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error
        self.calls = 0

    async def extract_text(self, image: bytes) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text
