"""Telethon transport adapter.

Implements the core TransportPort on top of a user-account TelegramClient:
reactions, replies, group listing, history paging and media download.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from telethon import TelegramClient, functions, types

from adapters.telegram_mapper import to_chat_message, to_conversation_info
from core.models import ChatMessage, ConversationInfo
from get_session import pair_with_qr, qr_data_url

LOGGER = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 5


class TelegramTransport:
    """TransportPort implementation for a Telethon client."""

    def __init__(self, client: TelegramClient) -> None:
        self._client = client
        self._authorized = False
        self._qr_url: Optional[str] = None

    # Session state ---------------------------------------------------------

    def is_ready(self) -> bool:
        return self._authorized and self._client.is_connected()

    def pairing_qr(self) -> Optional[str]:
        return None if self._authorized else self._qr_url

    def mark_authorized(self) -> None:
        self._authorized = True
        self._qr_url = None

    async def ensure_authorized(self) -> None:
        """Authorize the session, exposing QR codes through ``pairing_qr``."""

        if not self._client.is_connected():
            await self._client.connect()
        if await self._client.is_user_authorized():
            self.mark_authorized()
            return

        def _publish(url: str) -> None:
            self._qr_url = qr_data_url(url)
            LOGGER.info("QR code ready, waiting for pairing")

        await pair_with_qr(self._client, _publish)
        self.mark_authorized()

    async def supervise(
        self,
        on_connected: Callable[[], None],
        on_disconnected: Callable[[str], None],
    ) -> None:
        """Report connection transitions and reconnect after drops."""

        on_connected()
        while True:
            await self._client.disconnected
            self._authorized = False
            on_disconnected("connection lost")
            while not self._client.is_connected():
                await asyncio.sleep(RECONNECT_DELAY_SECONDS)
                try:
                    await self._client.connect()
                except (OSError, ConnectionError):
                    LOGGER.warning("Reconnect failed, retrying", exc_info=True)
            if await self._client.is_user_authorized():
                self.mark_authorized()
                on_connected()

    # Actions ---------------------------------------------------------------

    async def react(self, message: ChatMessage, emoji: str) -> None:
        await self._client(
            functions.messages.SendReactionRequest(
                peer=int(message.conversation_id),
                msg_id=message.message_id,
                reaction=[types.ReactionEmoji(emoticon=emoji)],
            )
        )

    async def reply(self, message: ChatMessage, text: str) -> None:
        await self._client.send_message(int(message.conversation_id), text, reply_to=message.message_id)

    async def send_message(self, conversation_id: str, text: str) -> None:
        await self._client.send_message(int(conversation_id), text)

    # Reads -----------------------------------------------------------------

    async def get_conversations(self) -> List[ConversationInfo]:
        conversations: List[ConversationInfo] = []
        async for dialog in self._client.iter_dialogs():
            if not dialog.is_group:
                continue
            conversations.append(to_conversation_info(dialog))
        return conversations

    async def fetch_history(
        self,
        conversation_id: str,
        limit: int,
        before: Optional[int] = None,
    ) -> List[ChatMessage]:
        # get_messages returns newest first; offset_id excludes itself.
        messages = await self._client.get_messages(int(conversation_id), limit=limit, offset_id=before or 0)
        return [to_chat_message(message) for message in messages if message is not None]

    async def download_image(self, message: ChatMessage) -> Optional[bytes]:
        if message.raw is None:
            return None
        return await self._client.download_media(message.raw, file=bytes)
