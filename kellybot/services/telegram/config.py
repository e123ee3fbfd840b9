"""Telegram alert config."""

from pydantic import BaseModel

from kellybot.config import Settings


class TelegramConfig(BaseModel):
    """Telegram config."""

    bot_token: str = ""
    default_chat_id: str = ""
    parse_mode: str = "HTML"
    retry_delay_seconds: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "TelegramConfig":
        return cls(
            bot_token=settings.telegram_bot_token,
            default_chat_id=settings.telegram_chat_id,
        )
