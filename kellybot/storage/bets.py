"""Bet records persisted to data/bets.json."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path

from pydantic import Field, TypeAdapter, ValidationError, field_validator

from kellybot.exceptions import BetNotFoundError, IdGenerationError, PersistenceError
from kellybot.storage.files import RecordFile
from kellybot.storage.models import RecordModel

logger = logging.getLogger(__name__)


class BetStatus(str, Enum):
    """Bet lifecycle status."""

    PENDING = "pending"
    WIN = "win"
    LOSS = "loss"
    PUSH = "push"
    PARTIAL_WIN = "partial-win"

    @property
    def is_settled(self) -> bool:
        return self is not BetStatus.PENDING


class BetRecord(RecordModel):
    """One wagered opportunity - an element of data/bets.json."""

    id: str
    bookmaker: str
    sport: str
    bet_name: str
    back_odds: Decimal
    fair_odds: Decimal
    commission: Decimal | None = Field(default=None, ge=0, le=100)
    stake: Decimal = Field(gt=0)
    status: BetStatus = BetStatus.PENDING
    profit_loss: Decimal | None = None
    partial_return: Decimal | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("timestamp", mode="after")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def commission_rate(self) -> Decimal:
        """Commission as a fraction of profit; 0 when absent."""
        if self.commission is not None and self.commission > 0:
            return self.commission / 100
        return Decimal("0")


_bet_list = TypeAdapter(list[BetRecord])


class BetStore:
    """Owns the collection of bet records.

    Reads tolerate a missing or corrupt file by substituting an empty list.
    Writes serialize the full collection atomically.
    """

    def __init__(self, path: Path):
        self.file = RecordFile(path)

    def list(self) -> list[BetRecord]:
        """All bets in stored order."""
        try:
            raw = self.file.load()
        except (OSError, ValueError) as e:
            logger.error(f"Error reading {self.file.path}: {e}. Using empty bet list.")
            if self.file.exists():
                self.file.quarantine()
            return []

        if raw is None:
            logger.info(f"{self.file.path} not found. Creating with empty bet list.")
            try:
                self.file.save([])
            except PersistenceError as e:
                logger.error(f"CRITICAL: Failed to create {self.file.path}: {e}")
            return []

        if not isinstance(raw, list):
            logger.warning(
                f"Invalid data type in {self.file.path} (expected list). "
                "Using empty bet list."
            )
            self.file.quarantine()
            return []

        try:
            return _bet_list.validate_python(raw)
        except ValidationError as e:
            logger.error(f"Invalid bet record in {self.file.path}: {e}")
            self.file.quarantine()
            return []

    def save_all(self, bets: list[BetRecord]) -> None:
        """Replace the whole collection.

        Raises:
            PersistenceError: If the file could not be written
        """
        self.file.save([bet.to_record() for bet in bets])

    def ids(self) -> set[str]:
        return {bet.id for bet in self.list()}

    def find(self, bet_id: str) -> BetRecord | None:
        for bet in self.list():
            if bet.id == bet_id:
                return bet
        return None

    def create(self, bet: BetRecord) -> BetRecord:
        """Append a new bet.

        Raises:
            IdGenerationError: If a bet with the same id already exists
            PersistenceError: If the file could not be written
        """
        bets = self.list()
        if any(existing.id == bet.id for existing in bets):
            raise IdGenerationError(f"Bet ID '{bet.id}' already exists.")
        bets.append(bet)
        self.save_all(bets)
        logger.info(f"Bet {bet.id} created and saved.")
        return bet

    def update(self, bet: BetRecord) -> BetRecord:
        """Replace the stored bet that has the same id.

        Raises:
            BetNotFoundError: If no stored bet has this id
            PersistenceError: If the file could not be written
        """
        bets = self.list()
        for idx, existing in enumerate(bets):
            if existing.id == bet.id:
                bets[idx] = bet
                break
        else:
            raise BetNotFoundError(bet.id)

        self.save_all(bets)
        logger.debug(f"Bet {bet.id} updated and saved.")
        return bet
