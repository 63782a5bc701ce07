"""Application entry point for the mentionwatch server."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn
from art import tprint
from telethon import events

import settings
from adapters.ocr import TesseractTextExtractor
from adapters.telegram_mapper import to_chat_message
from adapters.telegram_transport import TelegramTransport
from api.server import create_app
from client import build_client
from core.service import TriageService
from get_session import authorize_interactive

NAME = "MENTIONWATCH"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Masks configured secret values (API keys, hashes) in every record."""

    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {"enabled": True, "patterns": ["API_KEY", "API_HASH", "2FA"]})
    if not redact_cfg.get("enabled", False):
        return []
    values = {os.getenv(name) for name in redact_cfg.get("patterns", [])}
    # Longest first so a secret containing another is masked whole.
    return sorted((value for value in values if value), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    formatter = _RedactingFormatter(
        _redaction_values(config),
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/mentionwatch.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
                backupCount=int(file_cfg.get("backup_count", 5)),
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    if handlers:
        logging.basicConfig(level=level, handlers=handlers, force=True)

    # Telethon is chatty at INFO about every reconnect and update gap.
    logging.getLogger("telethon").setLevel(logging.WARNING)


async def _connect_transport(transport: TelegramTransport, service: TriageService) -> None:
    await transport.ensure_authorized()
    LOGGER.info("Telegram session authorized")
    await transport.supervise(service.on_connected, service.on_disconnected)


async def _serve() -> None:
    client = build_client()
    transport = TelegramTransport(client)
    service = TriageService(
        transport,
        TesseractTextExtractor(settings.OCR_LANGUAGES),
        empty_selection=settings.EMPTY_SELECTION,
        log_capacity=settings.LOG_CAPACITY,
        tick_interval=settings.TICK_INTERVAL,
    )

    # All filtering happens in the router; the handler only maps and hands off.
    async def handler(event) -> None:
        try:
            service.submit(to_chat_message(event.message))
        except Exception:
            LOGGER.exception("Error while receiving message")

    client.add_event_handler(handler, events.NewMessage(incoming=True))

    app = create_app(service, settings.API_KEY, settings.CORS_ORIGINS)
    server = uvicorn.Server(uvicorn.Config(app, host=settings.HOST, port=settings.PORT, log_config=None))

    # Everything shares this event loop: Telethon updates, the drain tick,
    # the inbound consumer and the HTTP server.
    workers = [
        asyncio.create_task(_connect_transport(transport, service), name="transport"),
        asyncio.create_task(service.run_inbound(), name="inbound"),
        asyncio.create_task(service.run_dispatcher(), name="dispatcher"),
    ]
    LOGGER.info("Control surface listening on http://%s:%s", settings.HOST, settings.PORT)
    try:
        await server.serve()
    finally:
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        await client.disconnect()
        LOGGER.info("Shutdown complete")


def _run() -> None:
    _print_banner()
    _configure_logging()
    LOGGER.info("Starting mentionwatch")
    asyncio.run(_serve())


def _login() -> None:
    _print_banner()

    async def _run_login() -> None:
        client = build_client()
        await client.connect()
        await authorize_interactive(client)
        me = await client.get_me()
        print(f"Logged in as: {me.first_name}")
        await client.disconnect()

    asyncio.run(_run_login())


def _groups() -> None:
    _print_banner()

    async def _run_groups() -> None:
        client = build_client()
        await client.connect()
        if not await client.is_user_authorized():
            print("Authorization required. Run `mentionwatch login` first.")
            await client.disconnect()
            return
        transport = TelegramTransport(client)
        transport.mark_authorized()
        conversations = await transport.get_conversations()
        if not conversations:
            print("No group conversations found.")
        for index, item in enumerate(conversations, start=1):
            print(f"{index}. {item.name} | {item.id} | {item.participants} members")
        await client.disconnect()

    asyncio.run(_run_groups())


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="mentionwatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot and its HTTP control surface")
    subparsers.add_parser("login", help="Authorize the Telegram session from the terminal")
    subparsers.add_parser("groups", help="List group conversations and their ids")

    args = parser.parse_args(argv)
    if args.command == "login":
        _login()
        return
    if args.command == "groups":
        _groups()
        return
    _run()


if __name__ == "__main__":
    main()
