"""Bankroll ledger and atomic record files."""

from decimal import Decimal

import pytest
import yaml

from kellybot.exceptions import InsufficientFundsError, InvalidAmountError, PersistenceError
from kellybot.storage import BankrollLedger, RecordFile


def test_missing_file_is_created_with_default(ledger, data_dir):
    assert ledger.get_current() == Decimal("1000")

    saved = yaml.safe_load((data_dir / "bankroll.yaml").read_text())
    assert saved == {"bankroll": "1000"}


def test_deduct_and_add(ledger):
    assert ledger.deduct("25.50") == Decimal("974.50")
    assert ledger.add(Decimal("10.25")) == Decimal("984.75")
    assert ledger.get_current() == Decimal("984.75")


def test_deduct_rejects_bad_amounts(ledger):
    for amount in (0, -1, "abc", None, float("nan")):
        with pytest.raises(InvalidAmountError):
            ledger.deduct(amount)
    assert ledger.get_current() == Decimal("1000")


def test_deduct_rejects_more_than_bankroll(ledger):
    with pytest.raises(InsufficientFundsError):
        ledger.deduct("1000.01")
    assert ledger.deduct("1000") == 0


def test_add_treats_non_numeric_as_zero(ledger):
    assert ledger.add("oops") == Decimal("1000")


def test_add_can_go_negative(ledger):
    assert ledger.add(Decimal("-1500")) == Decimal("-500")
    assert ledger.get_current() == Decimal("-500")


def test_corrupt_file_is_quarantined_and_default_used(data_dir):
    data_dir.mkdir(parents=True)
    path = data_dir / "bankroll.yaml"
    path.write_text("bankroll: [unclosed")

    ledger = BankrollLedger(path, default_bankroll=Decimal("3000"))

    assert ledger.get_current() == Decimal("3000")
    backups = list(data_dir.glob("bankroll.yaml.corrupt-*"))
    assert len(backups) == 1
    assert backups[0].read_text() == "bankroll: [unclosed"


def test_invalid_structure_falls_back_to_default(data_dir):
    data_dir.mkdir(parents=True)
    path = data_dir / "bankroll.yaml"
    path.write_text("balance: 12\n")

    assert BankrollLedger(path).get_current() == Decimal("3000")
    assert list(data_dir.glob("bankroll.yaml.corrupt-*"))


def test_legacy_numeric_bankroll_is_read(data_dir):
    data_dir.mkdir(parents=True)
    path = data_dir / "bankroll.yaml"
    path.write_text("bankroll: 2500.5\n")

    assert BankrollLedger(path).get_current() == Decimal("2500.5")


def test_failed_write_leaves_previous_file(ledger, data_dir, monkeypatch):
    ledger.deduct("100")

    def broken_move(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("kellybot.storage.files.shutil.move", broken_move)

    with pytest.raises(PersistenceError):
        ledger.deduct("50")

    assert ledger.get_current() == Decimal("900")
    leftovers = [p for p in data_dir.iterdir() if p.name != "bankroll.yaml"]
    assert leftovers == []


def test_record_file_round_trips_json(tmp_path):
    record = RecordFile(tmp_path / "records.json")
    assert record.load() is None

    record.save([{"id": "A1", "stake": "10.5"}])

    assert record.load() == [{"id": "A1", "stake": "10.5"}]
    assert not record.is_yaml


def test_record_file_rejects_unserializable_data(tmp_path):
    record = RecordFile(tmp_path / "records.json")

    with pytest.raises(PersistenceError):
        record.save({"when": object()})

    assert not (tmp_path / "records.json").exists()
    assert list(tmp_path.iterdir()) == []
