"""Session authorisation helpers.

The server pairs through QR codes served over ``GET /session/qr``; the
``login`` command keeps an interactive terminal flow (QR or phone code) for
first-time setup on a machine with a console.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import os
from getpass import getpass
from typing import Callable, Optional

import qrcode
from telethon import TelegramClient, errors

LOGGER = logging.getLogger(__name__)

QR_TIMEOUT_SECONDS = 120


def qr_data_url(url: str) -> str:
    """Render a login URL as a PNG data URL for browser display."""

    image = qrcode.make(url)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def _print_qr(url: str) -> None:
    qr = qrcode.QRCode(border=1)
    qr.add_data(url)
    qr.make(fit=True)
    qr.print_ascii(invert=True)


def _env_password() -> Optional[str]:
    return os.getenv("2FA") or None


def _resolve_2fa_password() -> str:
    return _env_password() or getpass("2FA password: ")


async def pair_with_qr(
    client: TelegramClient,
    publish: Callable[[str], None],
    password_provider: Callable[[], Optional[str]] = _env_password,
) -> None:
    """Keep issuing QR login tokens until one is scanned.

    Tokens expire, so each timeout simply publishes a fresh code. Accounts
    with two-step verification get their password from ``password_provider``,
    which reads the 2FA env variable by default.
    """

    while True:
        qr = await client.qr_login()
        publish(qr.url)
        try:
            await qr.wait(timeout=QR_TIMEOUT_SECONDS)
            return
        except asyncio.TimeoutError:
            LOGGER.info("QR code expired, issuing a new one")
        except errors.SessionPasswordNeededError:
            secret = password_provider()
            if not secret:
                raise RuntimeError("Account has 2FA enabled; set the 2FA environment variable")
            await client.sign_in(password=secret)
            return


async def _authorize_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    code = input("Login code: ").strip()
    try:
        await client.sign_in(phone=phone, code=code)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=_resolve_2fa_password())


def _pick_login_method() -> str:
    method = (os.getenv("LOGIN_METHOD") or "").strip().lower()
    if method in {"qr", "phone"}:
        return method
    while True:
        print("")
        print("[1] QR code")
        print("[2] Phone code")
        print("[3] Exit")
        choice = input("mentionwatch login > ").strip()
        if choice == "1":
            return "qr"
        if choice == "2":
            return "phone"
        if choice == "3":
            raise SystemExit(0)
        print("Invalid option. Please choose 1, 2, or 3.")


async def authorize_interactive(client: TelegramClient) -> None:
    """Terminal login used by the ``login`` command."""

    if await client.is_user_authorized():
        return
    if _pick_login_method() == "phone":
        await _authorize_with_phone(client)
    else:
        await pair_with_qr(client, _print_qr, password_provider=_resolve_2fa_password)
