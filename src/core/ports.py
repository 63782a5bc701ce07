"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the chat transport and the optional
image-to-text service so the core can run against Telethon in production and
plain fakes in tests.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from core.models import ChatMessage, ConversationInfo


class TransportPort(Protocol):
    """Chat platform operations required by the core pipeline."""

    def is_ready(self) -> bool:
        ...

    async def react(self, message: ChatMessage, emoji: str) -> None:
        ...

    async def reply(self, message: ChatMessage, text: str) -> None:
        ...

    async def send_message(self, conversation_id: str, text: str) -> None:
        ...

    async def get_conversations(self) -> List[ConversationInfo]:
        ...

    async def fetch_history(
        self,
        conversation_id: str,
        limit: int,
        before: Optional[int] = None,
    ) -> List[ChatMessage]:
        """Return up to ``limit`` messages older than ``before``, newest first."""
        ...

    async def download_image(self, message: ChatMessage) -> Optional[bytes]:
        ...

    def pairing_qr(self) -> Optional[str]:
        """Return a QR data URL while waiting for pairing, else None."""
        ...


class TextExtractorPort(Protocol):
    """Best-effort image-to-text enrichment."""

    async def extract_text(self, image: bytes) -> str:
        ...
