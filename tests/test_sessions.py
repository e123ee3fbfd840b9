"""Per-user bet drafts with expiry."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from kellybot.engine import Initiation, PreparedBet
from kellybot.exceptions import NoActiveDraftError
from kellybot.sessions import DraftBook


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, minutes):
        self.now += timedelta(minutes=minutes)


def initiation(name="Draw"):
    return Initiation(recommended_stake=Decimal("10"), prepared=PreparedBet(bet_name=name))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def drafts(clock):
    return DraftBook(timedelta(minutes=15), clock=clock)


def test_open_get_take(drafts):
    drafts.open(1, initiation())

    assert drafts.get(1).initiation.prepared.bet_name == "Draw"
    assert drafts.take(1).initiation.recommended_stake == Decimal("10")
    assert drafts.get(1) is None
    with pytest.raises(NoActiveDraftError):
        drafts.take(1)


def test_drafts_are_per_owner(drafts):
    drafts.open(1, initiation("A"))
    drafts.open(2, initiation("B"))
    drafts.open(1, initiation("C"))

    assert drafts.get(1).initiation.prepared.bet_name == "C"
    assert drafts.get(2).initiation.prepared.bet_name == "B"
    assert len(drafts) == 2


def test_drafts_expire(drafts, clock):
    drafts.open(1, initiation())
    clock.advance(14)
    assert drafts.get(1) is not None

    clock.advance(1)
    assert drafts.get(1) is None
    with pytest.raises(NoActiveDraftError):
        drafts.take(1)


def test_take_of_expired_draft_raises(drafts, clock):
    drafts.open(1, initiation())
    clock.advance(30)

    with pytest.raises(NoActiveDraftError):
        drafts.take(1)
    assert len(drafts) == 0


def test_discard_and_purge(drafts, clock):
    drafts.open(1, initiation())
    drafts.open(2, initiation())
    assert drafts.discard(1) is True
    assert drafts.discard(1) is False

    clock.advance(20)
    drafts.open(3, initiation())

    assert drafts.purge_expired() == 1
    assert len(drafts) == 1
