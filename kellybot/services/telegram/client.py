"""Telegram client for operator alerts."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from telegram import Bot
from telegram.error import TelegramError

from .config import TelegramConfig
from .exceptions import TelegramAuthError, TelegramConfigError
from .models import NotificationResult

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


class TelegramClient:
    """Async client that pushes alert messages to a chat, retrying once."""

    def __init__(self, config: TelegramConfig):
        if not config.bot_token:
            raise TelegramConfigError("bot_token is required for Telegram alerts.")
        self.config = config
        self._bot: Bot | None = None

    async def __aenter__(self) -> TelegramClient:
        try:
            self._bot = Bot(token=self.config.bot_token)
            me = await self._bot.get_me()
            logger.info(f"Connected to Telegram bot: @{me.username}")
        except TelegramError as e:
            logger.error(f"Failed to initialize Telegram bot: {e}")
            raise TelegramAuthError(f"Invalid bot token: {e}") from e
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: Any) -> None:
        if self._bot is not None:
            await self._bot.shutdown()
            self._bot = None

    @property
    def bot(self) -> Bot:
        if self._bot is None:
            raise RuntimeError("TelegramClient must be used as async context manager")
        return self._bot

    async def send(self, text: str, chat_id: str | None = None) -> NotificationResult:
        """Send ``text``; a failed first attempt is retried once after a delay."""
        target = chat_id or self.config.default_chat_id
        if not target:
            raise TelegramConfigError("chat_id is required. Set TELEGRAM_CHAT_ID.")

        last_error = "Message send failed"
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                message = await self.bot.send_message(
                    chat_id=target,
                    text=text,
                    parse_mode=self.config.parse_mode,
                )
                logger.info(f"Alert sent to {target} (message_id: {message.message_id})")
                return NotificationResult(
                    success=True,
                    recipient=target,
                    message_id=message.message_id,
                    attempts=attempt,
                )
            except TelegramError as e:
                last_error = e.message or "Telegram error"
                logger.warning(f"Telegram send failed (attempt {attempt}/{MAX_ATTEMPTS}): {last_error}")

            if attempt < MAX_ATTEMPTS:
                await asyncio.sleep(self.config.retry_delay_seconds)

        return NotificationResult(
            success=False,
            recipient=target,
            attempts=MAX_ATTEMPTS,
            error=last_error,
        )
