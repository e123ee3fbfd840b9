"""Bet store persistence and corrupt-file handling."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from kellybot.exceptions import BetNotFoundError, IdGenerationError
from kellybot.storage import BetRecord, BetStatus, BetStore


def make_record(bet_id="ABC12", **overrides):
    fields = dict(
        id=bet_id,
        bookmaker="Bet365",
        sport="Football",
        bet_name="Arsenal to win",
        back_odds=Decimal("2.5"),
        fair_odds=Decimal("2.3"),
        stake=Decimal("10"),
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return BetRecord(**fields)


def test_missing_file_is_created_empty(store, data_dir):
    assert store.list() == []
    assert json.loads((data_dir / "bets.json").read_text()) == []


def test_records_are_stored_with_camel_case_keys(store, data_dir):
    store.create(make_record(commission=Decimal("2")))

    raw = json.loads((data_dir / "bets.json").read_text())
    assert raw[0]["betName"] == "Arsenal to win"
    assert raw[0]["backOdds"] == "2.5"
    assert raw[0]["status"] == "pending"
    assert "profitLoss" not in raw[0]
    assert "partialReturn" not in raw[0]

    loaded = store.find("ABC12")
    assert loaded.model_dump() == make_record(commission=Decimal("2")).model_dump()


def test_create_rejects_duplicate_id(store):
    store.create(make_record())
    with pytest.raises(IdGenerationError):
        store.create(make_record())


def test_update_replaces_in_place(store):
    store.create(make_record("AAAAA"))
    store.create(make_record("BBBBB"))

    store.update(make_record("AAAAA", status=BetStatus.LOSS, profit_loss=Decimal("-10")))

    bets = store.list()
    assert [b.id for b in bets] == ["AAAAA", "BBBBB"]
    assert bets[0].status is BetStatus.LOSS
    assert bets[0].profit_loss == Decimal("-10")


def test_update_unknown_bet(store):
    with pytest.raises(BetNotFoundError):
        store.update(make_record("NOPE1"))


def test_reads_legacy_numeric_records(data_dir):
    data_dir.mkdir(parents=True)
    path = data_dir / "bets.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "Q1W2E",
                    "bookmaker": "Betfair",
                    "sport": "Tennis",
                    "betName": "Nadal",
                    "backOdds": 2.1,
                    "fairOdds": 2.0,
                    "stake": 30,
                    "status": "partial-win",
                    "profitLoss": 12.5,
                    "partialReturn": 42.5,
                    "commission": 2,
                    "timestamp": "2024-03-01T10:00:00.000Z",
                }
            ]
        )
    )

    bet = BetStore(path).find("Q1W2E")

    assert bet.status is BetStatus.PARTIAL_WIN
    assert bet.partial_return == Decimal("42.5")
    assert bet.commission_rate == Decimal("0.02")
    assert bet.timestamp.tzinfo is not None


def test_non_list_file_is_quarantined(data_dir):
    data_dir.mkdir(parents=True)
    path = data_dir / "bets.json"
    path.write_text('{"bets": []}')

    assert BetStore(path).list() == []
    assert list(data_dir.glob("bets.json.corrupt-*"))
    assert path.read_text() == '{"bets": []}'


def test_unparseable_file_is_quarantined(data_dir):
    data_dir.mkdir(parents=True)
    path = data_dir / "bets.json"
    path.write_text("[{not json")

    assert BetStore(path).list() == []
    assert list(data_dir.glob("bets.json.corrupt-*"))


def test_commission_range_is_validated():
    with pytest.raises(ValueError):
        make_record(commission=Decimal("150"))
