"""Telegram command surface for the bet lifecycle engine."""

from __future__ import annotations

import asyncio
import functools
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable

from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes

from kellybot.config import Settings
from kellybot.engine import BetLifecycleEngine, create_engine
from kellybot.exceptions import InvalidValueError, KellyBotError, ValidationFailure
from kellybot.formatting import (
    format_bankroll,
    format_breakdown,
    format_initiation,
    format_pending,
    format_settled,
    format_stats,
    format_unsettled,
)
from kellybot.parsing import parse_bet_string
from kellybot.services.telegram import send_critical_alert
from kellybot.sessions import DraftBook
from kellybot.staking import explain_stake
from kellybot.storage import load_aliases, save_aliases

logger = logging.getLogger(__name__)

Handler = Callable[[Update, ContextTypes.DEFAULT_TYPE], Awaitable[None]]

HELP_TEXT = """Kelly staking bot

/bankroll - current bankroll
/newbet Bookie - Sport - Name - Back / Fair [commission=N] - calculate a stake
/calc - show the working for the current calculation
/confirm [stake] - place the calculated bet
/cancel - drop the current calculation
/pending [bookmaker=X] [sport=Y] - list pending bets
/edit <id> <field> <value> - edit a pending bet
/settle <id> <win|loss|push|part-win> [return] - settle a bet
/unsettle <id> - return a settled bet to pending
/stats [today|yesterday|7days|lastmonth] [sport=X] [bookmaker=Y] [details]
/alias <alias> <full name> - add a bookmaker alias
/sportalias <alias> <full name> - add a sport alias"""


def split_options(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """Split command words into positionals and ``key=value`` options.

    Words after an option continue its value, so ``bookmaker=Paddy Power``
    works without quoting.
    """
    positional: list[str] = []
    options: dict[str, str] = {}
    current: str | None = None
    for word in args:
        key, sep, value = word.partition("=")
        if sep and key:
            current = key.lower()
            options[current] = value
        elif current is not None:
            options[current] = f"{options[current]} {word}".strip()
        else:
            positional.append(word)
    return positional, options


def guarded(handler: Handler) -> Handler:
    """Ignore chats that are not allowed and answer engine errors in-chat."""

    @functools.wraps(handler)
    async def wrapper(self: KellyBot, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat = update.effective_chat
        allowed = self.settings.bot.allowed_chat_ids
        if allowed and (chat is None or chat.id not in allowed):
            logger.warning(f"Ignoring command from chat {chat.id if chat else '?'}")
            return
        try:
            await handler(self, update, context)
        except KellyBotError as e:
            logger.info(f"{handler.__name__} rejected: {e.message}")
            await update.effective_message.reply_text(f"❌ {e.message}")

    return wrapper


class KellyBot:
    """Command handlers bound to one engine and one draft book."""

    def __init__(self, settings: Settings, engine: BetLifecycleEngine, drafts: DraftBook | None = None):
        self.settings = settings
        self.engine = engine
        self.drafts = drafts or DraftBook(timedelta(minutes=settings.sessions.draft_ttl_minutes))

    async def _reply(self, update: Update, text: str) -> None:
        await update.effective_message.reply_text(text)

    async def _call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking engine call in a worker thread so polling keeps going."""
        return await asyncio.to_thread(func, *args, **kwargs)

    @staticmethod
    def _owner(update: Update) -> Any:
        user = update.effective_user
        return user.id if user else update.effective_chat.id

    @guarded
    async def start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._reply(update, HELP_TEXT)

    @guarded
    async def bankroll(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._reply(update, format_bankroll(await self._call(self.engine.get_bankroll)))

    @guarded
    async def newbet(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        positional, options = split_options(context.args or [])
        if not positional:
            raise InvalidValueError("Usage: /newbet Bookie - Sport - Name - Back / Fair [commission=N]")

        bet = parse_bet_string(" ".join(positional), load_aliases(self.settings.aliases_path))
        initiation = await self._call(self.engine.initiate, bet, commission=options.get("commission"))

        if initiation.recommended_stake > 0:
            self.drafts.open(self._owner(update), initiation)
        await self._reply(
            update, format_initiation(initiation, self.settings.sessions.draft_ttl_minutes)
        )

    @guarded
    async def calc(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        draft = self.drafts.get(self._owner(update))
        if draft is None:
            await self._reply(update, "No active bet calculation. Use /newbet first.")
            return
        prepared = draft.initiation.prepared
        breakdown = explain_stake(
            await self._call(self.engine.get_bankroll), prepared.back_odds, prepared.fair_odds, self.settings.staking
        )
        await self._reply(update, format_breakdown(breakdown, self.settings.staking.kelly_fraction))

    @guarded
    async def confirm(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        owner = self._owner(update)
        draft = self.drafts.take(owner)
        stake = context.args[0] if context.args else draft.initiation.recommended_stake

        try:
            bet = await self._call(self.engine.finalize, draft.initiation.prepared, stake)
        except ValidationFailure:
            self.drafts.open(owner, draft.initiation)
            raise

        bankroll = await self._call(self.engine.get_bankroll)
        await self._reply(
            update,
            f"✅ Bet {bet.id} placed: {bet.bet_name} for £{bet.stake:.2f}\n{format_bankroll(bankroll)}",
        )

    @guarded
    async def cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if self.drafts.discard(self._owner(update)):
            await self._reply(update, "Bet calculation cancelled.")
        else:
            await self._reply(update, "Nothing to cancel.")

    @guarded
    async def pending(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        _, options = split_options(context.args or [])
        bets = await self._call(
            self.engine.pending_bets,
            bookmaker=options.get("bookmaker"),
            sport=options.get("sport"),
        )
        await self._reply(update, format_pending(bets, self.settings.bot.max_list_items))

    @guarded
    async def edit(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        args = context.args or []
        if len(args) < 2:
            raise InvalidValueError("Usage: /edit <id> <field> <value>")
        bet_id, field, value = args[0].upper(), args[1], " ".join(args[2:])
        await self._call(self.engine.edit, bet_id, {field: value})
        await self._reply(update, f"✅ Bet {bet_id} updated: {field} = {value or '(removed)'}")

    @guarded
    async def settle(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        args = context.args or []
        if len(args) < 2:
            raise InvalidValueError("Usage: /settle <id> <win|loss|push|part-win> [return]")
        user_return = args[2] if len(args) > 2 else None
        bet = await self._call(self.engine.settle, args[0].upper(), args[1], user_return)
        await self._reply(update, format_settled(bet, await self._call(self.engine.get_bankroll)))

    @guarded
    async def unsettle(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not context.args:
            raise InvalidValueError("Usage: /unsettle <id>")
        bet_id = context.args[0].upper()
        previous = (await self._call(self.engine.get_bet, bet_id)).status
        bet = await self._call(self.engine.unsettle, bet_id)
        await self._reply(update, format_unsettled(bet, previous, await self._call(self.engine.get_bankroll)))

    @guarded
    async def stats(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        positional, options = split_options(context.args or [])
        words = [w.lower() for w in positional]
        details = "details" in words
        ranges = [w for w in words if w != "details"]

        summary = await self._call(
            self.engine.stats,
            time_range=ranges[0] if ranges else None,
            sport=options.get("sport"),
            bookmaker=options.get("bookmaker"),
            include_bets=details,
        )
        await self._reply(update, format_stats(summary, self.settings.bot.max_list_items))

    async def _add_alias(self, update: Update, context: ContextTypes.DEFAULT_TYPE, kind: str) -> None:
        args = context.args or []
        if len(args) < 2:
            raise InvalidValueError(f"Usage: /{'alias' if kind == 'bookmaker' else 'sportalias'} <alias> <full name>")

        book = load_aliases(self.settings.aliases_path)
        alias, full_name = args[0], " ".join(args[1:])
        try:
            previous = book.add(kind, alias, full_name)
        except ValueError as e:
            raise InvalidValueError(str(e)) from e
        save_aliases(self.settings.aliases_path, book)

        note = f" (was {previous})" if previous else ""
        await self._reply(update, f"✅ {kind.capitalize()} alias {alias.upper()} -> {full_name}{note}")

    @guarded
    async def alias(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._add_alias(update, context, "bookmaker")

    @guarded
    async def sportalias(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._add_alias(update, context, "sport")

    async def on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error(f"Unhandled error in bot handler: {context.error}", exc_info=context.error)
        if isinstance(update, Update) and update.effective_message:
            await update.effective_message.reply_text("❌ Something went wrong. Check the logs.")

    def commands(self) -> dict[str, Handler]:
        return {
            "start": self.start,
            "help": self.start,
            "bankroll": self.bankroll,
            "newbet": self.newbet,
            "calc": self.calc,
            "confirm": self.confirm,
            "cancel": self.cancel,
            "pending": self.pending,
            "edit": self.edit,
            "settle": self.settle,
            "unsettle": self.unsettle,
            "stats": self.stats,
            "alias": self.alias,
            "sportalias": self.sportalias,
        }


def build_application(settings: Settings, engine: BetLifecycleEngine | None = None) -> Application:
    """Build the python-telegram-bot Application with every command registered."""
    if engine is None:
        engine = create_engine(settings, alert=functools.partial(send_critical_alert, settings))

    kelly = KellyBot(settings, engine)
    application = Application.builder().token(settings.telegram_bot_token).build()
    for name, handler in kelly.commands().items():
        application.add_handler(CommandHandler(name, handler))
    application.add_error_handler(kelly.on_error)
    return application


def run_bot(settings: Settings) -> None:
    """Run the bot with long polling until interrupted."""
    if not settings.telegram_bot_token:
        raise InvalidValueError("TELEGRAM_BOT_TOKEN is not set.")
    application = build_application(settings)
    logger.info("Starting Telegram bot (polling)")
    application.run_polling(allowed_updates=Update.ALL_TYPES)
