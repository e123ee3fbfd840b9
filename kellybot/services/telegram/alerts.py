"""Critical inconsistency alerts to the operator chat."""

import asyncio
import html
import logging

from kellybot.config import Settings
from kellybot.exceptions import CriticalInconsistencyError

from .client import TelegramClient
from .config import TelegramConfig
from .exceptions import TelegramError
from .models import NotificationResult

logger = logging.getLogger(__name__)

# Strong references to alert tasks scheduled on a running loop
_pending: set[asyncio.Task] = set()


def format_critical_alert(error: CriticalInconsistencyError) -> str:
    """HTML alert text with what an operator needs to reconcile by hand."""
    return (
        "🚨 <b>kellybot: bankroll out of sync</b>\n\n"
        f"<b>Bet:</b> {html.escape(error.bet_id)}\n"
        f"<b>Operation:</b> {html.escape(error.operation)}\n"
        f"<b>Unapplied bankroll adjustment:</b> {error.delta:+.2f}\n"
        f"<b>Original error:</b> {html.escape(str(error.original_error))}\n"
        f"<b>Compensation error:</b> {html.escape(str(error.compensation_error))}"
    )


async def deliver_critical_alert(
    config: TelegramConfig, error: CriticalInconsistencyError
) -> NotificationResult:
    """Send the alert; delivery problems are logged and reported, not raised."""
    try:
        async with TelegramClient(config) as client:
            result = await client.send(format_critical_alert(error))
    except TelegramError as e:
        result = NotificationResult(success=False, recipient=config.default_chat_id, error=str(e))

    if not result.success:
        logger.error(f"Critical alert not sent: {result}")
    return result


def send_critical_alert(settings: Settings, error: CriticalInconsistencyError) -> NotificationResult | None:
    """Engine alert hook. Returns None when alerts are disabled or scheduled.

    Inside a running event loop the delivery is scheduled as a task;
    otherwise (the CLI, or a bot handler's worker thread) it runs to
    completion.
    """
    config = TelegramConfig.from_settings(settings)
    if not settings.bot.send_critical_alerts or not config.bot_token or not config.default_chat_id:
        logger.warning("Critical alert not sent: Telegram alerts are not configured")
        return None

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(deliver_critical_alert(config, error))

    task = loop.create_task(deliver_critical_alert(config, error))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return None
