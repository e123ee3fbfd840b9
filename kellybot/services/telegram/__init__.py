"""Telegram alert service."""

from .alerts import deliver_critical_alert, format_critical_alert, send_critical_alert
from .client import TelegramClient
from .config import TelegramConfig
from .exceptions import TelegramAuthError, TelegramConfigError, TelegramError
from .models import NotificationResult

__all__ = [
    "TelegramClient",
    "TelegramConfig",
    "NotificationResult",
    "TelegramError",
    "TelegramAuthError",
    "TelegramConfigError",
    "deliver_critical_alert",
    "format_critical_alert",
    "send_critical_alert",
]
