"""Bankroll ledger persisted to data/bankroll.yaml."""

import logging
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator

from kellybot.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    PersistenceError,
)
from kellybot.storage.files import RecordFile
from kellybot.storage.models import to_decimal

logger = logging.getLogger(__name__)

DEFAULT_BANKROLL = Decimal("3000")


class BankrollRecord(BaseModel):
    """The single bankroll record - matches data/bankroll.yaml."""

    bankroll: Decimal

    @field_validator("bankroll")
    @classmethod
    def must_be_finite(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("bankroll must be a finite number")
        return v


class BankrollLedger:
    """Owns the bankroll scalar.

    Reads never fail (they fall back to the default bankroll); writes either
    persist the whole record or raise PersistenceError.
    """

    def __init__(self, path: Path, default_bankroll: Decimal = DEFAULT_BANKROLL):
        self.file = RecordFile(path)
        self.default_bankroll = Decimal(default_bankroll)

    def _default(self) -> BankrollRecord:
        return BankrollRecord(bankroll=self.default_bankroll)

    def _load(self) -> BankrollRecord:
        try:
            raw = self.file.load()
        except (OSError, ValueError) as e:
            logger.error(f"Error reading {self.file.path}: {e}. Using default bankroll.")
            if self.file.exists():
                self.file.quarantine()
            return self._default()

        if raw is None:
            logger.info(
                f"{self.file.path} not found. Creating with default bankroll "
                f"{self.default_bankroll}."
            )
            record = self._default()
            try:
                self._save(record)
            except PersistenceError as e:
                logger.error(f"CRITICAL: Failed to create {self.file.path}: {e}")
            return record

        try:
            return BankrollRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                f"Invalid data structure in {self.file.path}: {e}. Using default."
            )
            self.file.quarantine()
            return self._default()

    def _save(self, record: BankrollRecord) -> None:
        # Decimal text, not a YAML float
        self.file.save({"bankroll": str(record.bankroll)})

    def get_current(self) -> Decimal:
        """Return the current bankroll, or the default if it cannot be read."""
        return self._load().bankroll

    def deduct(self, amount: Any) -> Decimal:
        """Deduct a stake from the bankroll and return the new balance.

        Raises:
            InvalidAmountError: If amount is not a positive finite number
            InsufficientFundsError: If amount exceeds the current bankroll
            PersistenceError: If the new balance could not be saved
        """
        value = to_decimal(amount)
        if value is None or value <= 0:
            raise InvalidAmountError(
                f"Invalid stake amount: {amount}. Must be a positive number."
            )

        record = self._load()
        if record.bankroll < value:
            raise InsufficientFundsError(
                f"Insufficient bankroll (£{record.bankroll:.2f}) to deduct "
                f"stake (£{value:.2f})."
            )

        updated = BankrollRecord(bankroll=record.bankroll - value)
        self._save(updated)

        logger.info(f"Deducted stake: -£{value:.2f}. New bankroll: £{updated.bankroll:.2f}")
        return updated.bankroll

    def add(self, amount: Any) -> Decimal:
        """Add winnings or an adjustment (negative for a debit).

        A missing or non-numeric amount is treated as 0. No floor is applied,
        so the bankroll may go negative.

        Raises:
            PersistenceError: If the new balance could not be saved
        """
        value = to_decimal(amount)
        if value is None:
            logger.warning(f"Invalid amount provided to add: {amount!r}. Treating as 0.")
            value = Decimal("0")

        record = self._load()
        updated = BankrollRecord(bankroll=record.bankroll + value)
        self._save(updated)

        action = "Added" if value >= 0 else "Subtracted"
        logger.info(
            f"{action} adjustment: {value:+.2f}. New bankroll: £{updated.bankroll:.2f}"
        )
        if updated.bankroll < 0:
            logger.warning(f"Bankroll is negative after adjustment: £{updated.bankroll:.2f}")
        return updated.bankroll
