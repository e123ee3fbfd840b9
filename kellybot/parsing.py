"""Free-text bet strings: ``Bookmaker - Sport - Bet name - Back / Fair``."""

import logging
import re
from collections.abc import Iterable, Mapping
from decimal import Decimal

from kellybot.engine import BetInput
from kellybot.exceptions import BetStringError
from kellybot.storage.aliases import AliasBook
from kellybot.storage.models import to_decimal

logger = logging.getLogger(__name__)

COMMON_BOOKMAKERS = (
    "Bet365",
    "Betfair",
    "Betfair Sportsbook",
    "Paddy Power",
    "William Hill",
    "Sky Bet",
    "Betfred",
    "Coral",
    "Ladbrokes",
    "Unibet",
    "BetVictor",
    "Betway",
    "Smarkets",
    "Matchbook",
    "Betdaq",
    "Boylesports",
    "888sport",
    "Spreadex",
)

COMMON_SPORTS = (
    "Football",
    "Basketball",
    "NFL",
    "NBA",
    "Horse Racing",
    "Tennis",
    "Darts",
    "Golf",
    "Cricket",
    "Boxing",
    "MMA",
    "F1",
    "NHL",
    "Politics",
    "Rugby",
    "Snooker",
    "Super-Sub",
    "Mixed Sports",
)

# "10 / 9.4" or "10-9.4" at the very end, optionally followed by one word
ODDS_AT_END = re.compile(r"(\d+(?:\.\d+)?)\s*[-/]\s*(\d+(?:\.\d+)?)(?:\s+[a-zA-Z]*)?$")
# A hyphen with whitespace on at least one side; "Super-Sub" stays whole
SEPARATOR = re.compile(r"\s+-\s*|\s*-\s+")


def resolve_name(key: str, aliases: Mapping[str, str], common: Iterable[str]) -> str | None:
    """Canonical name for ``key`` via an alias or a known name, else None."""
    key = key.strip()
    if not key:
        return None
    if key.upper() in aliases:
        return aliases[key.upper()]
    if key in aliases:
        return aliases[key]
    lowered = key.lower()
    for name in list(common) + list(aliases.values()):
        if name.lower() == lowered:
            return name
    return None


def _split_odds(text: str) -> tuple[str, Decimal, Decimal]:
    match = ODDS_AT_END.search(text)
    if match is None:
        raise BetStringError("Could not find odds pattern (e.g., '10 / 9.4') precisely at the end.")

    back = to_decimal(match.group(1))
    fair = to_decimal(match.group(2))
    if back is None or fair is None or back <= 1 or fair <= 1:
        raise BetStringError(
            f"Invalid odds values at end: Back='{match.group(1)}', "
            f"Fair='{match.group(2)}' (Must be > 1)"
        )
    if match.start() == 0:
        raise BetStringError("Odds pattern matched at start of string.")

    return text[: match.start()], back, fair


def parse_bet_string(text: str, aliases: AliasBook | None = None) -> BetInput:
    """Parse a bet string into structured fields.

    Bookmaker and sport are looked up at segments 0-1, or at 1-2 when a
    prefix segment (e.g. a tag) comes first. Both are resolved to their
    canonical names through ``aliases`` and the common name lists.

    Raises:
        BetStringError: If the odds or the structure cannot be recognized
    """
    if not text or not text.strip():
        raise BetStringError("Input string empty/invalid.")

    aliases = aliases or AliasBook()
    head, back, fair = _split_odds(text.replace("\u00a0", " ").strip())

    segment = head.strip().rstrip("-").strip()
    parts = [p for p in SEPARATOR.split(segment) if p]
    if len(parts) < 3:
        raise BetStringError(
            f"Invalid format before odds. Need 'Bookie - Sport - Name'. "
            f"Found {len(parts)} parts in \"{segment}\"."
        )

    for offset in (0, 1):
        if len(parts) < offset + 3:
            break
        bookmaker = resolve_name(parts[offset], aliases.bookmakers, COMMON_BOOKMAKERS)
        sport = resolve_name(parts[offset + 1], aliases.sports, COMMON_SPORTS)
        if bookmaker and sport:
            bet_name = " - ".join(parts[offset + 2 :])
            logger.debug(f"Parsed bet string: {bookmaker} | {sport} | {bet_name} @ {back}/{fair}")
            return BetInput(
                bookmaker=bookmaker,
                sport=sport,
                bet_name=bet_name,
                back_odds=back,
                fair_odds=fair,
            )

    raise BetStringError(
        f"Could not identify 'Bookmaker - Sport - Name' structure within \"{segment}\". "
        "Check separators and spelling."
    )
