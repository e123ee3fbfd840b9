"""Critical inconsistency alerts over Telegram (no network)."""

import asyncio
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.error import TelegramError as BotApiError

from kellybot.config import Settings
from kellybot.exceptions import CriticalInconsistencyError, PersistenceError
from kellybot.services.telegram import (
    TelegramClient,
    TelegramConfig,
    TelegramConfigError,
    format_critical_alert,
    send_critical_alert,
)


@pytest.fixture
def error():
    return CriticalInconsistencyError(
        bet_id="AB<1>",
        operation="settle",
        delta=Decimal("-190"),
        original_error=PersistenceError("bets.json locked"),
        compensation_error=PersistenceError("bankroll.yaml locked"),
    )


@pytest.fixture
def fake_bot(monkeypatch):
    bot = MagicMock()
    bot.get_me = AsyncMock(return_value=SimpleNamespace(username="kellybot"))
    bot.send_message = AsyncMock(return_value=SimpleNamespace(message_id=5))
    bot.shutdown = AsyncMock()
    monkeypatch.setattr("kellybot.services.telegram.client.Bot", lambda token: bot)
    return bot


@pytest.fixture
def alert_settings(data_dir):
    return Settings(
        _env_file=None,
        data_dir=data_dir,
        telegram_bot_token="123456:TEST",
        telegram_chat_id="42",
    )


def test_alert_text_is_escaped(error):
    text = format_critical_alert(error)

    assert "AB&lt;1&gt;" in text
    assert "-190.00" in text
    assert "bankroll.yaml locked" in text


def test_alert_is_sent(alert_settings, error, fake_bot):
    result = send_critical_alert(alert_settings, error)

    assert result.success
    assert result.message_id == 5
    fake_bot.send_message.assert_awaited_once()
    assert fake_bot.send_message.await_args.kwargs["chat_id"] == "42"
    fake_bot.shutdown.assert_awaited_once()


def test_alert_skipped_when_not_configured(settings, error, fake_bot):
    assert send_critical_alert(settings, error) is None
    fake_bot.send_message.assert_not_awaited()


def test_alert_is_scheduled_inside_running_loop(alert_settings, error, fake_bot):
    async def scenario():
        assert send_critical_alert(alert_settings, error) is None
        for _ in range(5):
            await asyncio.sleep(0)

    asyncio.run(scenario())
    fake_bot.send_message.assert_awaited_once()


def test_client_retries_once(fake_bot):
    fake_bot.send_message.side_effect = [BotApiError("flood"), SimpleNamespace(message_id=6)]
    config = TelegramConfig(bot_token="x", default_chat_id="42", retry_delay_seconds=0)

    async def scenario():
        async with TelegramClient(config) as client:
            return await client.send("hello")

    result = asyncio.run(scenario())

    assert result.success
    assert result.attempts == 2
    assert result.message_id == 6


def test_client_reports_failure_after_retry(fake_bot):
    fake_bot.send_message.side_effect = BotApiError("down")
    config = TelegramConfig(bot_token="x", default_chat_id="42", retry_delay_seconds=0)

    async def scenario():
        async with TelegramClient(config) as client:
            return await client.send("hello")

    result = asyncio.run(scenario())

    assert not result.success
    assert result.attempts == 2
    assert result.error == "down"
    assert fake_bot.send_message.await_count == 2


def test_bad_token_is_reported(alert_settings, error, fake_bot):
    fake_bot.get_me.side_effect = BotApiError("Unauthorized")

    result = send_critical_alert(alert_settings, error)

    assert not result.success
    assert "Invalid bot token" in result.error


def test_client_requires_token():
    with pytest.raises(TelegramConfigError):
        TelegramClient(TelegramConfig())
