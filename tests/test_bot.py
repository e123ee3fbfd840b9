"""Telegram command handlers, driven with mocked updates."""

import asyncio
import threading
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from kellybot.bot import KellyBot, build_application, split_options
from kellybot.storage import BetStatus


def make_update(chat_id=1, user_id=7):
    update = MagicMock()
    update.effective_chat.id = chat_id
    update.effective_user.id = user_id
    update.effective_message.reply_text = AsyncMock()
    return update


def run(handler, *args, update=None):
    update = update or make_update()
    asyncio.run(handler(update, SimpleNamespace(args=list(args))))
    return [call.args[0] for call in update.effective_message.reply_text.call_args_list]


@pytest.fixture
def bot(settings, engine):
    return KellyBot(settings, engine)


NEWBET = "Bet365 - Football - Arsenal - 2.2 / 2.0".split()


def test_split_options():
    positional, options = split_options(["today", "details", "bookmaker=Paddy", "Power", "sport=Golf"])

    assert positional == ["today", "details"]
    assert options == {"bookmaker": "Paddy Power", "sport": "Golf"}


def test_newbet_then_confirm(bot, engine):
    [reply] = run(bot.newbet, *NEWBET, "commission=2")
    assert "Kelly recommends: £10.00" in reply
    assert "Commission: 2%" in reply

    [reply] = run(bot.confirm)
    assert "✅ Bet B0001 placed" in reply
    assert engine.get_bankroll() == Decimal("990")
    assert engine.get_bet("B0001").commission == Decimal("2")


def test_confirm_with_custom_stake(bot, engine):
    run(bot.newbet, *NEWBET)
    run(bot.confirm, "25")

    assert engine.get_bet("B0001").stake == Decimal("25")


def test_confirm_without_draft(bot):
    [reply] = run(bot.confirm)
    assert reply.startswith("❌ No active bet calculation")


def test_invalid_confirm_keeps_draft(bot, engine):
    run(bot.newbet, *NEWBET)

    [reply] = run(bot.confirm, "abc")
    assert reply.startswith("❌")

    run(bot.confirm)
    assert engine.get_bet("B0001").stake == Decimal("10")


def test_drafts_are_per_user(bot):
    run(bot.newbet, *NEWBET, update=make_update(user_id=1))

    [reply] = run(bot.confirm, update=make_update(user_id=2))
    assert reply.startswith("❌")


def test_calc_and_cancel(bot):
    run(bot.newbet, *NEWBET)

    [calc] = run(bot.calc)
    assert "EV = (Back / Fair) - 1" in calc
    assert "£10.00" in calc

    assert run(bot.cancel) == ["Bet calculation cancelled."]
    assert run(bot.cancel) == ["Nothing to cancel."]
    assert run(bot.calc) == ["No active bet calculation. Use /newbet first."]


def test_newbet_without_edge_opens_no_draft(bot):
    [reply] = run(bot.newbet, *"Bet365 - Football - Arsenal - 1.9 / 2.0".split())
    assert "Kelly stake £0.00" in reply

    [reply] = run(bot.confirm)
    assert reply.startswith("❌")


def test_newbet_parse_error(bot):
    [reply] = run(bot.newbet, "Arsenal", "to", "win")
    assert reply.startswith("❌ Could not find odds")


def test_settle_unsettle_edit_pending(bot, engine):
    run(bot.newbet, *NEWBET)
    run(bot.confirm)

    [pending] = run(bot.pending, "bookmaker=bet365")
    assert "B0001" in pending

    [edited] = run(bot.edit, "b0001", "betName", "Arsenal", "draw")
    assert "updated" in edited
    assert engine.get_bet("B0001").bet_name == "Arsenal draw"

    [settled] = run(bot.settle, "B0001", "part-win", "12")
    assert "PARTIAL-WIN" in settled
    assert engine.get_bankroll() == Decimal("1002")

    [unsettled] = run(bot.unsettle, "B0001")
    assert "was partial-win" in unsettled
    assert engine.get_bet("B0001").status is BetStatus.PENDING
    assert engine.get_bankroll() == Decimal("990")


def test_engine_errors_are_answered(bot):
    assert run(bot.settle, "NOPE1", "win") == ["❌ Bet ID 'NOPE1' not found."]
    assert run(bot.settle, "NOPE1")[0].startswith("❌ Usage")
    assert run(bot.unsettle)[0].startswith("❌ Usage")


def test_stats(bot):
    run(bot.newbet, *NEWBET)
    run(bot.confirm)
    run(bot.settle, "B0001", "loss")

    [reply] = run(bot.stats, "today", "details", "sport=football")
    assert "Losses: 1" in reply
    assert "sport=football" in reply
    assert "B0001" in reply

    [reply] = run(bot.stats, "fortnight")
    assert reply.startswith("❌ Unknown time range")


def test_bankroll_and_help(bot):
    assert run(bot.bankroll) == ["💰 Current bankroll: £1,000.00"]
    assert "/newbet" in run(bot.start)[0]


def test_engine_calls_run_off_the_event_loop_thread(bot, engine, monkeypatch):
    threads = []
    get_bankroll = engine.get_bankroll

    def recording_get_bankroll():
        threads.append(threading.get_ident())
        return get_bankroll()

    monkeypatch.setattr(engine, "get_bankroll", recording_get_bankroll)

    assert run(bot.bankroll) == ["💰 Current bankroll: £1,000.00"]
    assert threads and threads[0] != threading.get_ident()


def test_alias_commands(bot):
    [reply] = run(bot.alias, "pp", "Paddy", "Power")
    assert "PP -> Paddy Power" in reply
    run(bot.sportalias, "fb", "Football")

    [reply] = run(bot.newbet, *"pp - fb - Liverpool - 2.2 / 2.0".split())
    assert "Bookmaker: Paddy Power" in reply
    assert "Sport: Football" in reply


def test_disallowed_chat_is_ignored(bot):
    bot.settings.bot.allowed_chat_ids = [99]

    assert run(bot.bankroll, update=make_update(chat_id=1)) == []
    assert len(run(bot.bankroll, update=make_update(chat_id=99))) == 1


def test_build_application_registers_commands(settings, engine):
    settings.telegram_bot_token = "123456:TEST-TOKEN"

    application = build_application(settings, engine)

    commands = {command for handler in application.handlers[0] for command in handler.commands}
    assert {"start", "newbet", "confirm", "settle", "unsettle", "stats", "sportalias"} <= commands
