"""Statistics over recorded bets: counts, P/L and ROI with filters."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from kellybot.exceptions import InvalidValueError
from kellybot.storage.bets import BetRecord, BetStatus

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class TimeRange(str, Enum):
    """Time window applied to bet timestamps."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7_DAYS = "7days"
    LAST_MONTH = "lastmonth"

    @property
    def label(self) -> str:
        return {
            TimeRange.TODAY: "Today",
            TimeRange.YESTERDAY: "Yesterday",
            TimeRange.LAST_7_DAYS: "Last 7 Days",
            TimeRange.LAST_MONTH: "Last 30 Days",
        }[self]

    def bounds(self, now: datetime) -> tuple[datetime, datetime]:
        """Inclusive (start, end) of this window, in ``now``'s timezone."""
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if self is TimeRange.TODAY:
            return midnight, now
        if self is TimeRange.YESTERDAY:
            return midnight - timedelta(days=1), midnight - timedelta(microseconds=1)
        if self is TimeRange.LAST_7_DAYS:
            return now - timedelta(days=7), now
        return now - timedelta(days=30), now

    @classmethod
    def parse(cls, value: Any) -> TimeRange | None:
        if value is None or isinstance(value, TimeRange):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(r.value for r in cls)
            raise InvalidValueError(f"Unknown time range '{value}'. Use one of: {choices}.") from None


class StatsSummary(BaseModel):
    """Aggregate figures for the bets matching a filter."""

    total_bets: int = 0
    total_settled_bets: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    partial_wins: int = 0
    pending: int = 0
    total_stake: Decimal = ZERO
    total_profit_loss: Decimal = ZERO
    roi: Decimal = ZERO
    current_bankroll: Decimal = ZERO
    time_range: TimeRange | None = None
    sport: str | None = None
    bookmaker: str | None = None
    bets: list[BetRecord] | None = Field(default=None)


def _profit_loss(bet: BetRecord) -> Decimal:
    """Stored P/L, recomputed from the bet only when missing."""
    if bet.profit_loss is not None:
        return bet.profit_loss
    if bet.status is BetStatus.WIN:
        return bet.stake * bet.back_odds - bet.stake
    if bet.status is BetStatus.LOSS:
        return -bet.stake
    if bet.status is BetStatus.PARTIAL_WIN and bet.partial_return:
        return bet.partial_return - bet.stake
    return ZERO


def compute_stats(
    bets: list[BetRecord],
    bankroll: Decimal,
    time_range: TimeRange | str | None = None,
    sport: str | None = None,
    bookmaker: str | None = None,
    now: datetime | None = None,
    include_bets: bool = False,
) -> StatsSummary:
    """Aggregate ``bets`` after filtering by sport, bookmaker and time window.

    Only settled bets count towards stake, P/L and ROI; ``total_bets`` and
    ``pending`` include pending ones. ROI is 0 when no stake is settled.

    Args:
        bets: All stored bets
        bankroll: Current bankroll, reported unchanged
        time_range: Optional window, see TimeRange
        sport: Case-insensitive exact match
        bookmaker: Case-insensitive exact match
        now: Reference time (defaults to the local current time)
        include_bets: Attach the matching bets, newest first

    Raises:
        InvalidValueError: If time_range is not a known window
    """
    window = TimeRange.parse(time_range)
    filtered = list(bets)

    if sport:
        filtered = [b for b in filtered if b.sport.lower() == sport.lower()]
    if bookmaker:
        filtered = [b for b in filtered if b.bookmaker.lower() == bookmaker.lower()]

    if window is not None:
        reference = (now or datetime.now()).astimezone()
        start, end = window.bounds(reference)
        filtered = [b for b in filtered if start <= b.timestamp <= end]

    summary = StatsSummary(
        total_bets=len(filtered),
        current_bankroll=bankroll,
        time_range=window,
        sport=sport,
        bookmaker=bookmaker,
    )

    for bet in filtered:
        if not bet.status.is_settled:
            summary.pending += 1
            continue

        summary.total_settled_bets += 1
        summary.total_stake += bet.stake
        summary.total_profit_loss += _profit_loss(bet)

        if bet.status is BetStatus.WIN:
            summary.wins += 1
        elif bet.status is BetStatus.LOSS:
            summary.losses += 1
        elif bet.status is BetStatus.PUSH:
            summary.pushes += 1
        elif bet.status is BetStatus.PARTIAL_WIN:
            summary.partial_wins += 1

    if summary.total_stake > 0:
        summary.roi = summary.total_profit_loss / summary.total_stake

    if include_bets:
        summary.bets = sorted(filtered, key=lambda b: b.timestamp, reverse=True)

    logger.debug(
        f"Stats for range={window}, sport={sport}, bookmaker={bookmaker}: "
        f"{summary.total_settled_bets} settled, P/L {summary.total_profit_loss:.2f}"
    )
    return summary
