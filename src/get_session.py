"""Telegram user login for the Saved Messages delivery mode.

Bot delivery needs no interactive step: the session signs in with BOT_API.
The user session logs in once by scanning a QR code from the Telegram app.
"""

import logging
import os
from getpass import getpass

import qrcode
from telethon import TelegramClient, errors

LOGGER = logging.getLogger(__name__)

QR_TIMEOUT_SECONDS = 120


def _render_qr(url: str) -> None:
    code = qrcode.QRCode(border=1)
    code.add_data(url)
    code.make(fit=True)
    code.print_ascii(invert=True)


async def authorize(client: TelegramClient) -> None:
    """Log the user session in unless it is already authorized."""

    if await client.is_user_authorized():
        return

    login = await client.qr_login()
    print("Scan this code in Telegram: Settings > Devices > Link Desktop Device")
    _render_qr(login.url)
    try:
        await login.wait(timeout=QR_TIMEOUT_SECONDS)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=os.getenv("2FA") or getpass("2FA password: "))

    me = await client.get_me()
    LOGGER.info("Saved Messages alerts will go to %s", me.first_name)
