"""Shared fixtures: every test gets its own data directory under tmp_path."""

from decimal import Decimal
from itertools import count

import logfire
import pytest

from kellybot.config import Settings, get_settings
from kellybot.engine import BetInput, BetLifecycleEngine
from kellybot.storage import BankrollLedger, BetStore

logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def settings(data_dir):
    return Settings(_env_file=None, data_dir=data_dir)


@pytest.fixture
def ledger(data_dir):
    return BankrollLedger(data_dir / "bankroll.yaml", default_bankroll=Decimal("1000"))


@pytest.fixture
def store(data_dir):
    return BetStore(data_dir / "bets.json")


@pytest.fixture
def alerts():
    return []


@pytest.fixture
def engine(ledger, store, alerts):
    ids = count(1)
    return BetLifecycleEngine(
        ledger,
        store,
        alert=alerts.append,
        id_factory=lambda: f"B{next(ids):04d}",
    )


@pytest.fixture
def place_bet(engine):
    """Place a pending bet straight through initiate + finalize."""

    def _place(stake="100", back="2.0", fair="1.9", commission=None, bookmaker="Bet365", sport="Football"):
        bet = BetInput(
            bookmaker=bookmaker,
            sport=sport,
            bet_name="Arsenal to win",
            back_odds=Decimal(back),
            fair_odds=Decimal(fair),
        )
        initiation = engine.initiate(bet, commission=commission)
        return engine.finalize(initiation.prepared, Decimal(stake))

    return _place
