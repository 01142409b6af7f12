"""
Alert transports exposed as monitor callbacks.

Each notifier offers `on_fail(monitor)` and `on_recover(monitor)`; failures to
deliver raise NotifierError, which the monitor logs without stopping.
"""

from __future__ import annotations

import asyncio
import html
import logging
import smtplib
import socket
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import format_datetime
from typing import List, Optional, Protocol

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from .config import MailConfig, TelegramConfig
from .monitor import AlertFunc, Monitor, MonliteError
from .utils import async_retry

logger = logging.getLogger(__name__)


class NotifierError(MonliteError):
    """Raised when an alert could not be delivered."""


class Notifier(Protocol):
    async def on_fail(self, monitor: Monitor) -> None: ...

    async def on_recover(self, monitor: Monitor) -> None: ...


def _hostname() -> str:
    try:
        return socket.gethostname() or "your system"
    except OSError:
        return "your system"


class TelegramNotifier:
    """Send alerts to one Telegram chat through aiogram."""

    def __init__(self, bot: Bot, chat_id: int, hostname: Optional[str] = None) -> None:
        self.bot = bot
        self.chat_id = chat_id
        self.hostname = hostname or _hostname()

    @classmethod
    def from_config(cls, cfg: TelegramConfig) -> "TelegramNotifier":
        bot = Bot(cfg.token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
        return cls(bot, cfg.chat_id)

    async def on_fail(self, monitor: Monitor) -> None:
        await self._send(
            f"🔴 <b>[{html.escape(self.hostname)}] Monitor fail for {html.escape(monitor.name)}</b>\n"
            f"{html.escape(monitor.target)}"
        )

    async def on_recover(self, monitor: Monitor) -> None:
        await self._send(
            f"🟢 <b>[{html.escape(self.hostname)}] Monitor ok for {html.escape(monitor.name)}</b>\n"
            f"{html.escape(monitor.target)}"
        )

    @async_retry(attempts=3, exceptions=(NotifierError,))
    async def _send(self, text: str) -> None:
        try:
            await self.bot.send_message(chat_id=self.chat_id, text=text)
        except Exception as e:  # noqa: BLE001
            raise NotifierError(f"telegram delivery failed: {e}") from e

    async def close(self) -> None:
        await self.bot.session.close()


class MailNotifier:
    """Send plain-text alert mails over SMTP."""

    def __init__(self, cfg: MailConfig, hostname: Optional[str] = None) -> None:
        self.cfg = cfg
        self.hostname = hostname or _hostname()

    async def on_fail(self, monitor: Monitor) -> None:
        await self._send(self.compose(monitor, "fail"))

    async def on_recover(self, monitor: Monitor) -> None:
        await self._send(self.compose(monitor, "ok"))

    def compose(self, monitor: Monitor, event: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.cfg.sender
        msg["To"] = ", ".join(self.cfg.to)
        msg["Subject"] = f"[{self.hostname}] Monitor {event} for {monitor.name}"
        msg.set_content(
            f"Hi! This is {self.hostname}.\n\n"
            f"Monitor {event} for {monitor.name} {monitor.target}\n\n"
            f"{format_datetime(datetime.now(timezone.utc))}\n"
        )
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(
            self.cfg.host,
            self.cfg.port,
            local_hostname=self.cfg.helo,
            timeout=self.cfg.timeout,
        ) as smtp:
            smtp.ehlo()
            if smtp.has_extn("starttls"):
                smtp.starttls()
                smtp.ehlo()
            if self.cfg.account:
                smtp.login(self.cfg.account, self.cfg.password)
            smtp.send_message(msg)

    @async_retry(attempts=3, exceptions=(NotifierError,))
    async def _send(self, msg: EmailMessage) -> None:
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotifierError(f"mail delivery failed: {e}") from e
        logger.info("Mail sent: %s", msg["Subject"])


def fan_out(*callbacks: AlertFunc) -> AlertFunc:
    """
    Combine callbacks into one.

    Every callback runs even if an earlier one failed; failures are then
    reported together as a single NotifierError.
    """

    async def combined(monitor: Monitor) -> None:
        errors: List[str] = []
        for callback in callbacks:
            try:
                await callback(monitor)
            except Exception as e:  # noqa: BLE001
                errors.append(str(e) or repr(e))
        if errors:
            raise NotifierError("; ".join(errors))

    return combined


__all__ = ["MailNotifier", "Notifier", "NotifierError", "TelegramNotifier", "fan_out"]
