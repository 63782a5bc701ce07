"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core pipeline.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from telethon.tl.custom import Message

from core.models import ChatMessage, ConversationInfo


def conversation_id_from_message(message: Message) -> str:
    """Return the marked chat id as a string, the key used by group selection."""

    return str(message.chat_id)


def _is_group(message: Message) -> bool:
    # Telethon reports basic groups and megagroups as groups; broadcast
    # channels and private chats are not.
    return bool(getattr(message, "is_group", False))


def _has_image(message: Message) -> bool:
    if getattr(message, "photo", None) is not None:
        return True
    document = getattr(message, "document", None)
    mime_type = getattr(document, "mime_type", None) or ""
    return mime_type.startswith("image/")


def to_chat_message(message: Message) -> ChatMessage:
    """Build a core ChatMessage from a Telethon Message."""

    date = message.date or datetime.now(timezone.utc)
    return ChatMessage(
        conversation_id=conversation_id_from_message(message),
        message_id=message.id,
        date=date,
        text=message.raw_text or "",
        is_group=_is_group(message),
        has_image=_has_image(message),
        raw=message,
    )


def to_conversation_info(dialog: Any) -> ConversationInfo:
    """Build a ConversationInfo from a Telethon Dialog."""

    entity = getattr(dialog, "entity", None)
    participants = getattr(entity, "participants_count", None) or 0
    name = getattr(dialog, "name", None) or getattr(entity, "title", None) or str(dialog.id)
    return ConversationInfo(id=str(dialog.id), name=str(name), participants=int(participants))
