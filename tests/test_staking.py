"""Quarter-Kelly stake calculation."""

from decimal import Decimal

from kellybot.config import StakingConfig
from kellybot.staking import _round_to_increment, compute_stake, explain_stake


def test_stake_is_capped_at_one_percent():
    # ev 0.1, raw Kelly 8.33%, quarter Kelly 20.83 > cap 10
    assert compute_stake(Decimal("1000"), Decimal("2.2"), Decimal("2.0")) == Decimal("10.00")
    assert compute_stake(3000, 2.1, 2.0) == Decimal("30.00")


def test_uncapped_stake_rounds_to_fifty_pence():
    # 10000 * (0.016949 / 2) * 0.25 = 21.19 -> 21.00
    assert compute_stake(Decimal("10000"), Decimal("3.0"), Decimal("2.95")) == Decimal("21.00")


def test_no_edge_gives_zero():
    assert compute_stake(Decimal("1000"), Decimal("2.0"), Decimal("2.0")) == 0
    assert compute_stake(Decimal("1000"), Decimal("1.8"), Decimal("2.0")) == 0


def test_invalid_input_gives_zero_without_raising():
    assert compute_stake(0, 2.0, 1.9) == 0
    assert compute_stake(-5, 2.0, 1.9) == 0
    assert compute_stake(1000, 1.0, 1.9) == 0
    assert compute_stake(1000, 2.0, 1) == 0
    assert compute_stake(1000, None, 1.9) == 0
    assert compute_stake("abc", 2.0, 1.9) == 0
    assert explain_stake(1000, 0.5, 1.9) is None


def test_rounding_is_half_up():
    assert _round_to_increment(Decimal("10.25"), Decimal("0.5")) == Decimal("10.5")
    assert _round_to_increment(Decimal("10.24"), Decimal("0.5")) == Decimal("10.0")
    assert _round_to_increment(Decimal("0.75"), Decimal("0.5")) == Decimal("1.0")


def test_small_positive_stake_is_raised_to_minimum():
    config = StakingConfig(stake_increment=Decimal("0.10"))
    # cap 0.30 is below the 0.50 minimum
    assert compute_stake(Decimal("30"), Decimal("3.0"), Decimal("2.0"), config) == Decimal("0.50")


def test_stake_that_rounds_to_zero_stays_zero():
    # cap 0.20 rounds down to 0
    assert compute_stake(Decimal("20"), Decimal("3.0"), Decimal("2.0")) == 0


def test_stake_bounds_for_reasonable_bankrolls():
    for bankroll in (Decimal("100"), Decimal("500"), Decimal("3000"), Decimal("25000")):
        for back, fair in (("1.5", "1.45"), ("2.1", "2.0"), ("5.0", "4.2"), ("11", "9.4")):
            stake = compute_stake(bankroll, Decimal(back), Decimal(fair))
            assert stake == 0 or Decimal("0.50") <= stake <= bankroll * Decimal("0.01")
            assert (stake * 2) == (stake * 2).to_integral_value()


def test_custom_config_is_honoured():
    config = StakingConfig(kelly_fraction=Decimal("1"), max_stake_pct=Decimal("0.05"))
    # full Kelly 83.33 > cap 50
    assert compute_stake(Decimal("1000"), Decimal("2.2"), Decimal("2.0"), config) == Decimal("50.00")


def test_explain_stake_keeps_the_working():
    breakdown = explain_stake(Decimal("1000"), Decimal("2.2"), Decimal("2.0"))

    assert breakdown is not None
    assert breakdown.expected_value == Decimal("0.1")
    assert breakdown.capped is True
    assert breakdown.cap == Decimal("10.00")
    assert breakdown.stake == Decimal("10.00")
    assert breakdown.used_kelly_pct == breakdown.raw_kelly_pct * Decimal("0.25")


def test_explain_stake_without_edge():
    breakdown = explain_stake(Decimal("1000"), Decimal("1.9"), Decimal("2.0"))

    assert breakdown is not None
    assert breakdown.expected_value < 0
    assert breakdown.stake == 0
