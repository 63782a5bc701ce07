"""Telegram client factory for mentionwatch.

The session file doubles as the persisted pairing, so restarting the server
does not require scanning a new QR code.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient


def build_client() -> TelegramClient:
    """Create a Telethon client from environment variables.

    API_ID/API_HASH are read via python-dotenv to keep secrets out of the
    repo. SESSION_NAME may be a bare name or a path on a persistent disk.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "mentionwatch")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    session_dir = os.path.dirname(session_name)
    if session_dir:
        os.makedirs(session_dir, exist_ok=True)

    logging.getLogger(__name__).info("Initializing Telegram client (session=%s)", session_name)

    return TelegramClient(session_name, int(api_id), api_hash)
