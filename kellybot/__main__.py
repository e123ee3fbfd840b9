"""kellybot CLI entry point."""

import argparse
import functools
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

load_dotenv(Path.cwd() / ".env")

from kellybot import __version__
from kellybot.config import get_settings
from kellybot.engine import BetInput, BetLifecycleEngine, create_engine
from kellybot.exceptions import KellyBotError
from kellybot.formatting import (
    format_bankroll,
    format_breakdown,
    format_initiation,
    format_pending,
    format_settled,
    format_stats,
    format_unsettled,
    money,
)
from kellybot.parsing import parse_bet_string
from kellybot.services.telegram import send_critical_alert
from kellybot.staking import explain_stake
from kellybot.storage import load_aliases, save_aliases

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE = """# kellybot configuration
# Operational parameters. Secrets (bot token, chat id, Logfire token)
# belong in .env, not here.

staking:
  kelly_fraction: 0.25
  max_stake_pct: 0.01
  stake_increment: 0.50
  min_stake: 0.50

bankroll:
  default_bankroll: 3000

sessions:
  draft_ttl_minutes: 15

bot:
  allowed_chat_ids: []
  send_critical_alerts: true
  max_list_items: 25
"""


def _init_logfire() -> None:
    """Initialize Logfire if available, without failing commands."""
    try:
        from kellybot.observability import initialize_logfire

        initialize_logfire(get_settings())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def _engine() -> BetLifecycleEngine:
    settings = get_settings()
    return create_engine(settings, alert=functools.partial(send_critical_alert, settings))


def _fail(action: str, error: Exception) -> int:
    if isinstance(error, KellyBotError):
        print(f"\n❌ {action} failed: {error.message}\n")
    else:
        logger.error(f"{action} failed: {error}", exc_info=True)
        print(f"\n❌ {action} failed: {error}\n")
    return 1


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize the data directory and config template."""
    data_dir = Path(args.data_dir).resolve()

    try:
        data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created data directory: {data_dir}")

        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_path.write_text(CONFIG_TEMPLATE)
            logger.info(f"Created config template: {config_path}")
        else:
            logger.info(f"Config file already exists: {config_path}")

        print(f"\n✓ Data directory initialized at {data_dir}")
        print("\nNext steps:")
        print("1. Add TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID to .env")
        print("2. Review data/config.yaml (starting bankroll, stake limits)")
        print("3. Run 'python -m kellybot config' to verify configuration")
        print("4. Run 'python -m kellybot bot' to start the Telegram bot\n")
        return 0

    except OSError as e:
        logger.error(f"Failed to initialize: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== kellybot Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}\n")

        print("Staking:")
        print(f"  Kelly Fraction: {settings.staking.kelly_fraction}")
        print(f"  Max Stake: {settings.staking.max_stake_pct:.0%} of bankroll")
        print(f"  Stake Increment: £{settings.staking.stake_increment}")
        print(f"  Min Stake: £{settings.staking.min_stake}\n")

        print("Bankroll:")
        print(f"  Default Bankroll: £{settings.bankroll.default_bankroll:,.2f}\n")

        print("Sessions:")
        print(f"  Draft TTL: {settings.sessions.draft_ttl_minutes} min\n")

        print("Bot:")
        allowed = ", ".join(str(c) for c in settings.bot.allowed_chat_ids) or "any"
        print(f"  Allowed Chats: {allowed}")
        print(f"  Critical Alerts: {settings.bot.send_critical_alerts}")
        print(f"  Max List Items: {settings.bot.max_list_items}\n")

        print("Secrets:")
        print(f"  Telegram Bot Token: {'✓ Set' if settings.telegram_bot_token else '✗ Not set'}")
        print(f"  Telegram Chat ID: {'✓ Set' if settings.telegram_chat_id else '✗ Not set'}")
        print(f"  Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")
        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        print(f"\n❌ Failed to load configuration: {e}\n")
        return 1


def cmd_bankroll(args: argparse.Namespace) -> int:
    """Show the current bankroll."""
    try:
        print(f"\n{format_bankroll(_engine().get_bankroll())}\n")
        return 0
    except Exception as e:
        return _fail("Bankroll", e)


def cmd_newbet(args: argparse.Namespace) -> int:
    """Calculate a stake for a bet and optionally place it."""
    _init_logfire()

    try:
        settings = get_settings()
        engine = _engine()

        if args.bet_string:
            bet = parse_bet_string(" ".join(args.bet_string), load_aliases(settings.aliases_path))
        else:
            missing = [
                name
                for name in ("bookmaker", "sport", "name", "back", "fair")
                if getattr(args, name) is None
            ]
            if missing:
                print(f"\n❌ Provide a bet string or all of: --{', --'.join(missing)}\n")
                return 1
            bet = BetInput(
                bookmaker=args.bookmaker,
                sport=args.sport,
                bet_name=args.name,
                back_odds=args.back,
                fair_odds=args.fair,
            )

        initiation = engine.initiate(bet, commission=args.commission)
        print(f"\n{format_initiation(initiation)}\n")

        if args.explain:
            prepared = initiation.prepared
            breakdown = explain_stake(
                engine.get_bankroll(), prepared.back_odds, prepared.fair_odds, settings.staking
            )
            print(f"{format_breakdown(breakdown, settings.staking.kelly_fraction)}\n")

        stake = args.stake if args.stake is not None else initiation.recommended_stake
        if args.stake is None and initiation.recommended_stake <= 0:
            print("Bet not placed.\n")
            return 1

        if not args.yes:
            answer = input(f"Place this bet for {money(stake)}? [y/N] ").strip().lower()
            if answer not in ("y", "yes"):
                print("Bet not placed.\n")
                return 0

        placed = engine.finalize(initiation.prepared, stake)
        print(f"\n✓ Bet {placed.id} placed for {money(placed.stake)}")
        print(f"{format_bankroll(engine.get_bankroll())}\n")
        return 0

    except Exception as e:
        return _fail("New bet", e)


def cmd_pending(args: argparse.Namespace) -> int:
    """List pending bets."""
    try:
        bets = _engine().pending_bets(bookmaker=args.bookmaker, sport=args.sport)
        print(f"\n{format_pending(bets)}\n")
        return 0
    except Exception as e:
        return _fail("Listing pending bets", e)


def cmd_edit(args: argparse.Namespace) -> int:
    """Edit one field of a pending bet."""
    _init_logfire()

    try:
        value = " ".join(args.value)
        bet = _engine().edit(args.bet_id.upper(), {args.field: value})
        print(f"\n✓ Bet {bet.id} updated: {args.field} = {value or '(removed)'}\n")
        return 0
    except Exception as e:
        return _fail(f"Editing bet {args.bet_id}", e)


def cmd_settle(args: argparse.Namespace) -> int:
    """Settle a pending bet."""
    _init_logfire()

    try:
        engine = _engine()
        bet = engine.settle(args.bet_id.upper(), args.outcome, args.user_return)
        print(f"\n{format_settled(bet, engine.get_bankroll())}\n")
        return 0
    except Exception as e:
        return _fail(f"Settling bet {args.bet_id}", e)


def cmd_unsettle(args: argparse.Namespace) -> int:
    """Return a settled bet to pending."""
    _init_logfire()

    try:
        engine = _engine()
        bet_id = args.bet_id.upper()
        previous = engine.get_bet(bet_id).status
        bet = engine.unsettle(bet_id)
        print(f"\n{format_unsettled(bet, previous, engine.get_bankroll())}\n")
        return 0
    except Exception as e:
        return _fail(f"Unsettling bet {args.bet_id}", e)


def cmd_stats(args: argparse.Namespace) -> int:
    """Display statistics."""
    try:
        summary = _engine().stats(
            time_range=args.range,
            sport=args.sport,
            bookmaker=args.bookmaker,
            include_bets=args.details,
        )
        print(f"\n{format_stats(summary)}\n")
        return 0
    except Exception as e:
        return _fail("Stats", e)


def cmd_alias(args: argparse.Namespace) -> int:
    """Add a bookmaker or sport alias."""
    try:
        settings = get_settings()
        book = load_aliases(settings.aliases_path)
        full_name = " ".join(args.full_name)
        previous = book.add(args.kind, args.alias, full_name)
        save_aliases(settings.aliases_path, book)

        note = f" (was {previous})" if previous else ""
        print(f"\n✓ {args.kind.capitalize()} alias {args.alias.upper()} -> {full_name}{note}\n")
        return 0
    except Exception as e:
        return _fail("Saving alias", e)


def cmd_bot(args: argparse.Namespace) -> int:
    """Start the Telegram bot."""
    try:
        _init_logfire()

        if args.debug:
            logging.getLogger().setLevel(logging.DEBUG)

        from kellybot.bot import run_bot

        settings = get_settings()
        print("\n=== kellybot Telegram bot ===\n")
        print(f"Version: {__version__}")
        print(f"Data Directory: {settings.data_dir}\n")

        run_bot(settings)
        return 0

    except KeyboardInterrupt:
        print("\n\nReceived interrupt signal. Shutting down...\n")
        return 0
    except Exception as e:
        return _fail("Bot", e)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="kellybot: Kelly-staked bet tracker with bankroll ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"kellybot {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser("init", help="Initialize data directory and config file")
    parser_init.add_argument("--data-dir", default="data", help="Data directory to create")
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser("config", help="Display merged configuration")
    parser_config.set_defaults(func=cmd_config)

    parser_bankroll = subparsers.add_parser("bankroll", help="Show the current bankroll")
    parser_bankroll.set_defaults(func=cmd_bankroll)

    parser_newbet = subparsers.add_parser(
        "newbet",
        help="Calculate a Kelly stake and place a bet",
        description="Pass 'Bookie - Sport - Name - Back / Fair' or the explicit field options.",
    )
    parser_newbet.add_argument("bet_string", nargs="*", help="Bet string")
    parser_newbet.add_argument("--bookmaker", help="Bookmaker name")
    parser_newbet.add_argument("--sport", help="Sport name")
    parser_newbet.add_argument("--name", help="Bet name")
    parser_newbet.add_argument("--back", help="Back odds (decimal)")
    parser_newbet.add_argument("--fair", help="Fair odds (decimal)")
    parser_newbet.add_argument("--commission", help="Commission on winnings, percent")
    parser_newbet.add_argument("--stake", help="Stake to place instead of the recommendation")
    parser_newbet.add_argument("--explain", action="store_true", help="Show the stake calculation")
    parser_newbet.add_argument("-y", "--yes", action="store_true", help="Place without asking")
    parser_newbet.set_defaults(func=cmd_newbet)

    parser_pending = subparsers.add_parser("pending", help="List pending bets")
    parser_pending.add_argument("--bookmaker", help="Filter by bookmaker")
    parser_pending.add_argument("--sport", help="Filter by sport")
    parser_pending.set_defaults(func=cmd_pending)

    parser_edit = subparsers.add_parser("edit", help="Edit a pending bet")
    parser_edit.add_argument("bet_id", help="Bet ID")
    parser_edit.add_argument("field", help="bookmaker, sport, betName, backOdds, fairOdds, stake, commission")
    parser_edit.add_argument("value", nargs="*", help="New value (empty commission removes it)")
    parser_edit.set_defaults(func=cmd_edit)

    parser_settle = subparsers.add_parser("settle", help="Settle a pending bet")
    parser_settle.add_argument("bet_id", help="Bet ID")
    parser_settle.add_argument("outcome", help="win, loss, push or part-win")
    parser_settle.add_argument("--return", dest="user_return", help="Total returned, for part-win")
    parser_settle.set_defaults(func=cmd_settle)

    parser_unsettle = subparsers.add_parser("unsettle", help="Return a settled bet to pending")
    parser_unsettle.add_argument("bet_id", help="Bet ID")
    parser_unsettle.set_defaults(func=cmd_unsettle)

    parser_stats = subparsers.add_parser("stats", help="Display statistics")
    parser_stats.add_argument("--range", help="today, yesterday, 7days or lastmonth")
    parser_stats.add_argument("--sport", help="Filter by sport")
    parser_stats.add_argument("--bookmaker", help="Filter by bookmaker")
    parser_stats.add_argument("--details", action="store_true", help="List the matching bets")
    parser_stats.set_defaults(func=cmd_stats)

    parser_alias = subparsers.add_parser("alias", help="Add a bookmaker or sport alias")
    parser_alias.add_argument("kind", choices=["bookmaker", "sport"], help="Alias type")
    parser_alias.add_argument("alias", help="Shorthand, e.g. PP")
    parser_alias.add_argument("full_name", nargs="+", help="Full name, e.g. Paddy Power")
    parser_alias.set_defaults(func=cmd_alias)

    parser_bot = subparsers.add_parser("bot", help="Start the Telegram bot")
    parser_bot.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser_bot.set_defaults(func=cmd_bot)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
