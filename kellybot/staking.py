"""Quarter-Kelly stake sizing from back odds and fair odds.

These pure functions turn an edge (back odds better than the estimated fair
odds) into a recommended stake:

    ev          = back / fair - 1
    raw kelly   = ev / (back - 1)
    stake       = raw kelly * bankroll * kelly_fraction
    stake       = min(stake, bankroll * max_stake_pct)
    stake       = round(stake to nearest stake_increment), at least min_stake
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import BaseModel

from kellybot.config import StakingConfig
from kellybot.storage.models import to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENTS = Decimal("0.01")


class StakeBreakdown(BaseModel):
    """Every intermediate value of a stake calculation, for display."""

    bankroll: Decimal
    back_odds: Decimal
    fair_odds: Decimal
    expected_value: Decimal
    raw_kelly_pct: Decimal
    used_kelly_pct: Decimal
    cap_pct: Decimal
    cap: Decimal
    capped: bool
    stake: Decimal


def _round_to_increment(value: Decimal, increment: Decimal) -> Decimal:
    if increment <= 0:
        return value
    return (value / increment).to_integral_value(rounding=ROUND_HALF_UP) * increment


def compute_stake(
    bankroll: Any,
    back_odds: Any,
    fair_odds: Any,
    config: StakingConfig | None = None,
) -> Decimal:
    """Recommended stake for a bet. Returns 0 (never raises) on invalid input
    or when there is no positive edge."""
    breakdown = explain_stake(bankroll, back_odds, fair_odds, config)
    return breakdown.stake if breakdown else ZERO


def explain_stake(
    bankroll: Any,
    back_odds: Any,
    fair_odds: Any,
    config: StakingConfig | None = None,
) -> StakeBreakdown | None:
    """Run the stake calculation and keep its working.

    Returns None when the inputs are invalid (bankroll <= 0, odds <= 1).
    """
    config = config or StakingConfig()
    bank = to_decimal(bankroll)
    back = to_decimal(back_odds)
    fair = to_decimal(fair_odds)

    if bank is None or bank <= 0 or back is None or back <= 1 or fair is None or fair <= 1:
        logger.debug(
            f"Invalid input for stake calculation: bankroll={bankroll}, "
            f"back={back_odds}, fair={fair_odds}"
        )
        return None

    ev = back / fair - 1
    cap = bank * config.max_stake_pct
    result = StakeBreakdown(
        bankroll=bank,
        back_odds=back,
        fair_odds=fair,
        expected_value=ev,
        raw_kelly_pct=ZERO,
        used_kelly_pct=ZERO,
        cap_pct=config.max_stake_pct,
        cap=cap,
        capped=False,
        stake=ZERO,
    )

    if ev <= 0:
        logger.debug(f"EV {ev:.4f} is zero or negative. Stake = 0.")
        return result

    denominator = back - 1
    if denominator <= 0:
        return result

    raw_fraction = ev / denominator
    stake = bank * raw_fraction * config.kelly_fraction
    result.raw_kelly_pct = raw_fraction
    result.used_kelly_pct = raw_fraction * config.kelly_fraction

    if stake > cap:
        logger.debug(f"Stake £{stake:.2f} exceeds cap £{cap:.2f}. Setting stake to cap.")
        stake = cap
        result.capped = True

    stake = _round_to_increment(stake, config.stake_increment)

    if 0 < stake < config.min_stake:
        stake = config.min_stake
    if stake < 0:
        stake = ZERO

    result.stake = stake.quantize(CENTS)
    logger.debug(
        f"Stake: EV={ev:.4f}, raw Kelly={raw_fraction:.4%}, final=£{result.stake:.2f}"
    )
    return result
