"""Bet lifecycle engine: initiate -> finalize -> settle <-> unsettle.

The engine is the only component that mutates both the bankroll ledger and
the bet store. Each operation applies its bankroll change first, then writes
the bet store; if that write fails the bankroll change is reversed once. If
the reversal also fails the two records have diverged and a
CriticalInconsistencyError is raised (and passed to the alert hook).
"""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

import logfire
from pydantic import BaseModel

from kellybot.config import Settings, StakingConfig
from kellybot.exceptions import (
    AlreadyPendingError,
    AlreadySettledError,
    BetNotFoundError,
    CriticalInconsistencyError,
    IdGenerationError,
    InvalidFieldError,
    InvalidOddsError,
    InvalidReturnError,
    InvalidStakeError,
    InvalidValueError,
    PersistenceError,
    UnknownOutcomeError,
)
from kellybot.staking import compute_stake
from kellybot.stats import StatsSummary, TimeRange, compute_stats
from kellybot.storage import BankrollLedger, BetRecord, BetStatus, BetStore, DataLock, to_decimal
from kellybot.storage.models import RecordModel

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ID_ALPHABET = string.ascii_uppercase + string.digits
ID_LENGTH = 5
MAX_ID_ATTEMPTS = 1000

AlertHook = Callable[[CriticalInconsistencyError], None]


# ============================================================================
# Models
# ============================================================================


class BetInput(RecordModel):
    """Structured bet fields, as produced by the bet-string parser."""

    bookmaker: str
    sport: str
    bet_name: str
    back_odds: Decimal
    fair_odds: Decimal


class PreparedBet(RecordModel):
    """Bet fields checked by initiate() and waiting for a chosen stake."""

    bookmaker: str = ""
    sport: str = ""
    bet_name: str = ""
    back_odds: Decimal | None = None
    fair_odds: Decimal | None = None
    commission: Decimal | None = None
    calculation_error: str | None = None


class Initiation(BaseModel):
    """Result of initiate(): the recommendation and the prepared input."""

    recommended_stake: Decimal
    prepared: PreparedBet


class Outcome(str, Enum):
    """Settlement outcome as entered by the user."""

    WIN = "win"
    LOSS = "loss"
    PUSH = "push"
    PART_WIN = "part-win"

    @property
    def status(self) -> BetStatus:
        return {
            Outcome.WIN: BetStatus.WIN,
            Outcome.LOSS: BetStatus.LOSS,
            Outcome.PUSH: BetStatus.PUSH,
            Outcome.PART_WIN: BetStatus.PARTIAL_WIN,
        }[self]

    @classmethod
    def parse(cls, value: Any) -> Outcome:
        if isinstance(value, Outcome):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownOutcomeError(
                f"Unknown result type '{value}'. Use win, loss, push or part-win."
            ) from None


class Settlement(BaseModel):
    """Bankroll credit and recorded P/L for one settlement."""

    status: BetStatus
    credit: Decimal
    profit_loss: Decimal
    partial_return: Decimal | None = None


class EditableField(str, Enum):
    """Fields of a pending bet that edit() may change."""

    BOOKMAKER = "bookmaker"
    SPORT = "sport"
    BET_NAME = "betname"
    BACK_ODDS = "backodds"
    FAIR_ODDS = "fairodds"
    STAKE = "stake"
    COMMISSION = "commission"

    @property
    def attribute(self) -> str:
        return {
            EditableField.BOOKMAKER: "bookmaker",
            EditableField.SPORT: "sport",
            EditableField.BET_NAME: "bet_name",
            EditableField.BACK_ODDS: "back_odds",
            EditableField.FAIR_ODDS: "fair_odds",
            EditableField.STAKE: "stake",
            EditableField.COMMISSION: "commission",
        }[self]

    @classmethod
    def parse(cls, key: Any) -> EditableField:
        """Match 'betName', 'bet_name', 'Bet Name' and so on."""
        if isinstance(key, EditableField):
            return key
        normalized = str(key).lower().replace("_", "").replace(" ", "")
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidFieldError(f"Invalid field specified: '{key}'.") from None

    def coerce(self, value: Any) -> Any:
        """Validate a new value for this field.

        Returns the value to store; None for COMMISSION means remove it.
        """
        if self in (EditableField.BOOKMAKER, EditableField.SPORT, EditableField.BET_NAME):
            text = "" if value is None else str(value).strip()
            if not text:
                raise InvalidValueError(f"Value for '{self.value}' cannot be empty.")
            return text

        if self is EditableField.COMMISSION and (
            value is None or (isinstance(value, str) and not value.strip())
        ):
            return None

        number = to_decimal(value)
        if number is None:
            raise InvalidValueError(
                f"Invalid numeric value ('{value}') for field '{self.value}'."
            )

        if self is EditableField.COMMISSION and not (0 <= number <= 100):
            raise InvalidValueError("Commission must be between 0 and 100.")
        if self is EditableField.STAKE and number <= 0:
            raise InvalidValueError("Stake must be positive.")
        if self in (EditableField.BACK_ODDS, EditableField.FAIR_ODDS) and number <= 1:
            logger.warning(f"Editing {self.value} to {number} (<= 1).")
        return number


# ============================================================================
# Settlement arithmetic
# ============================================================================


def settlement_amounts(bet: BetRecord, outcome: Outcome, user_return: Any = None) -> Settlement:
    """Bankroll credit and P/L for settling ``bet`` as ``outcome``.

    Commission is charged on positive profit only, never on the stake.

    Raises:
        InvalidOddsError: For a win when back odds are not above 1
        InvalidReturnError: For a part-win without a non-negative return
    """
    rate = bet.commission_rate

    if outcome is Outcome.WIN:
        if bet.back_odds <= 1:
            raise InvalidOddsError(
                f"Cannot settle bet {bet.id} as 'win' - back odds {bet.back_odds} invalid."
            )
        gross = bet.stake * (bet.back_odds - 1)
        net = gross - (gross * rate if gross > 0 else ZERO)
        return Settlement(status=BetStatus.WIN, credit=bet.stake + net, profit_loss=net)

    if outcome is Outcome.LOSS:
        return Settlement(status=BetStatus.LOSS, credit=ZERO, profit_loss=-bet.stake)

    if outcome is Outcome.PUSH:
        return Settlement(status=BetStatus.PUSH, credit=bet.stake, profit_loss=ZERO)

    returned = to_decimal(user_return)
    if returned is None or returned < 0:
        raise InvalidReturnError(
            'For partial-win, a non-negative "return" amount is needed.'
        )
    profit = returned - bet.stake
    commission = profit * rate if profit > 0 else ZERO
    credit = returned - commission
    return Settlement(
        status=BetStatus.PARTIAL_WIN,
        credit=credit,
        profit_loss=profit - commission,
        partial_return=credit,
    )


def reversal_amount(bet: BetRecord) -> Decimal:
    """Bankroll adjustment that undoes the settlement of ``bet``."""
    if bet.status is BetStatus.WIN:
        net = bet.profit_loss
        if net is None:
            gross = bet.stake * (bet.back_odds - 1)
            net = gross - (gross * bet.commission_rate if gross > 0 else ZERO)
        return -(bet.stake + net)

    if bet.status is BetStatus.LOSS:
        return ZERO

    if bet.status is BetStatus.PUSH:
        return -bet.stake

    if bet.status is BetStatus.PARTIAL_WIN:
        if bet.partial_return is not None:
            return -bet.partial_return
        # TODO: store the settlement credit separately so this can be exact
        logger.warning(
            f"Cannot accurately revert 'partial-win' for {bet.id} "
            "(missing partialReturn). Reverting stake only."
        )
        return -bet.stake

    raise AlreadyPendingError(f"Bet '{bet.id}' is already pending.")


# ============================================================================
# Engine
# ============================================================================


def _generate_id() -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


def _field(source: Any, *names: str) -> Any:
    if isinstance(source, Mapping):
        for name in names:
            if name in source:
                return source[name]
        return None
    for name in names:
        if hasattr(source, name):
            return getattr(source, name)
    return None


class BetLifecycleEngine:
    """Orchestrates the stake calculator, bankroll ledger and bet store.

    All public methods hold the data directory lock (``.lock`` beside the bet
    file unless given), so each operation is a critical section over the
    ledger and store pair for every engine and process sharing those files.
    """

    def __init__(
        self,
        ledger: BankrollLedger,
        store: BetStore,
        staking: StakingConfig | None = None,
        alert: AlertHook | None = None,
        id_factory: Callable[[], str] | None = None,
        lock: DataLock | None = None,
    ):
        self.ledger = ledger
        self.store = store
        self.staking = staking or StakingConfig()
        self.alert = alert
        self._id_factory = id_factory or _generate_id
        self._lock = lock or DataLock(store.file.path.parent / ".lock")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_bankroll(self) -> Decimal:
        with self._lock:
            return self.ledger.get_current()

    def get_bet(self, bet_id: str) -> BetRecord:
        with self._lock:
            return self._require(bet_id)

    def list_bets(
        self,
        status: BetStatus | str | None = None,
        bookmaker: str | None = None,
        sport: str | None = None,
    ) -> list[BetRecord]:
        """Stored bets, optionally filtered (case-insensitive exact match)."""
        with self._lock:
            bets = self.store.list()

        if status is not None:
            wanted = BetStatus(status)
            bets = [b for b in bets if b.status is wanted]
        if bookmaker:
            bets = [b for b in bets if b.bookmaker.lower() == bookmaker.lower()]
        if sport:
            bets = [b for b in bets if b.sport.lower() == sport.lower()]
        return bets

    def pending_bets(self, bookmaker: str | None = None, sport: str | None = None) -> list[BetRecord]:
        """Pending bets sorted by bookmaker."""
        pending = self.list_bets(BetStatus.PENDING, bookmaker=bookmaker, sport=sport)
        return sorted(pending, key=lambda b: b.bookmaker.lower())

    def stats(
        self,
        time_range: TimeRange | str | None = None,
        sport: str | None = None,
        bookmaker: str | None = None,
        now: datetime | None = None,
        include_bets: bool = False,
    ) -> StatsSummary:
        with self._lock:
            bets = self.store.list()
            bankroll = self.ledger.get_current()
        return compute_stats(
            bets,
            bankroll,
            time_range=time_range,
            sport=sport,
            bookmaker=bookmaker,
            now=now,
            include_bets=include_bets,
        )

    # ------------------------------------------------------------------
    # initiate / finalize
    # ------------------------------------------------------------------

    def initiate(self, bet_fields: Any, commission: Any = None) -> Initiation:
        """Compute a recommended stake for new bet fields. No state is changed.

        Invalid odds do not raise: the returned PreparedBet carries a
        calculation_error and the recommendation is 0.
        """
        back = to_decimal(_field(bet_fields, "back_odds", "backOdds"))
        fair = to_decimal(_field(bet_fields, "fair_odds", "fairOdds"))
        prepared = PreparedBet(
            bookmaker=str(_field(bet_fields, "bookmaker") or ""),
            sport=str(_field(bet_fields, "sport") or ""),
            bet_name=str(_field(bet_fields, "bet_name", "betName") or ""),
            back_odds=back,
            fair_odds=fair,
        )

        recommended = ZERO
        if back is None or back <= 1 or fair is None or fair <= 1:
            prepared.calculation_error = (
                f"Invalid odds (Back: {_field(bet_fields, 'back_odds', 'backOdds')}, "
                f"Fair: {_field(bet_fields, 'fair_odds', 'fairOdds')}). Must be > 1."
            )
        else:
            recommended = compute_stake(self.get_bankroll(), back, fair, self.staking)

        rate = to_decimal(commission)
        if rate is not None and 0 <= rate <= 100:
            prepared.commission = rate
        elif commission is not None:
            logger.info(f"Ignoring invalid commission {commission!r}")

        return Initiation(recommended_stake=recommended, prepared=prepared)

    def finalize(self, prepared: PreparedBet, stake: Any) -> BetRecord:
        """Deduct the chosen stake and record a pending bet.

        Raises:
            InvalidStakeError: If stake is not a positive number
            InvalidOddsError: If the prepared odds are missing or not above 1
            InvalidAmountError, InsufficientFundsError: From the ledger
            IdGenerationError: If no free id could be generated
            PersistenceError: If a write failed (bankroll restored)
            CriticalInconsistencyError: If restoring the bankroll also failed
        """
        amount = to_decimal(stake)
        if amount is None or amount <= 0:
            raise InvalidStakeError("Cannot finalize bet with zero/negative stake.")
        if (
            prepared.back_odds is None
            or prepared.back_odds <= 1
            or prepared.fair_odds is None
            or prepared.fair_odds <= 1
        ):
            raise InvalidOddsError(
                prepared.calculation_error or "Back and fair odds must both be > 1."
            )

        with self._lock, logfire.span("bet.finalize", bet_name=prepared.bet_name):
            self.ledger.deduct(amount)

            bet_id = "?"
            try:
                bet_id = self._new_id()
                bet = BetRecord(
                    id=bet_id,
                    bookmaker=prepared.bookmaker,
                    sport=prepared.sport,
                    bet_name=prepared.bet_name,
                    back_odds=prepared.back_odds,
                    fair_odds=prepared.fair_odds,
                    commission=prepared.commission,
                    stake=amount,
                    status=BetStatus.PENDING,
                    timestamp=datetime.now(timezone.utc),
                )
                self.store.create(bet)
            except Exception as e:
                logger.error(f"Failed to save bet {bet_id} after deducting stake: {e}")
                self._compensate(amount, bet_id=bet_id, operation="finalize", cause=e)
                raise

            logger.info(
                f"Bet {bet.id} placed: {bet.bookmaker} | {bet.sport} | {bet.bet_name} "
                f"@ {bet.back_odds} for £{bet.stake:.2f}"
            )
            return bet

    # ------------------------------------------------------------------
    # edit
    # ------------------------------------------------------------------

    def edit(self, bet_id: str, updates: Mapping[Any, Any]) -> BetRecord:
        """Change descriptive or numeric fields of a pending bet.

        Raises:
            BetNotFoundError, AlreadySettledError
            InvalidFieldError: For a field outside EditableField
            InvalidValueError: For a value its field rejects
            PersistenceError: If the write failed
        """
        with self._lock, logfire.span("bet.edit", bet_id=bet_id):
            bet = self._require(bet_id)
            if bet.status.is_settled:
                raise AlreadySettledError(f"Bet '{bet_id}' is already settled.")

            parsed = [(EditableField.parse(key), value) for key, value in updates.items()]
            changes: dict[str, Any] = {}
            for field, value in parsed:
                new_value = field.coerce(value)
                if getattr(bet, field.attribute) != new_value:
                    changes[field.attribute] = new_value

            if not changes:
                logger.info(f"No changes detected for bet {bet_id}. Save skipped.")
                return bet

            updated = bet.model_copy(update=changes)
            self.store.update(updated)
            logger.info(f"Bet {bet_id} updated: {', '.join(changes)}")
            return updated

    # ------------------------------------------------------------------
    # settle / unsettle
    # ------------------------------------------------------------------

    def settle(self, bet_id: str, outcome: Any, user_return: Any = None) -> BetRecord:
        """Settle a pending bet and credit the bankroll.

        Raises:
            BetNotFoundError, AlreadySettledError, UnknownOutcomeError
            InvalidOddsError, InvalidReturnError
            PersistenceError: If a write failed (bankroll restored)
            CriticalInconsistencyError: If restoring the bankroll also failed
        """
        with self._lock, logfire.span("bet.settle", bet_id=bet_id, outcome=str(outcome)):
            bet = self._require(bet_id)
            if bet.status.is_settled:
                raise AlreadySettledError(f"Bet '{bet_id}' is already settled.")

            result = Outcome.parse(outcome)
            settlement = settlement_amounts(bet, result, user_return)

            if settlement.credit != 0:
                self.ledger.add(settlement.credit)
            else:
                logger.info(f"No bankroll adjustment for {result.value} settlement of bet {bet_id}.")

            updated = bet.model_copy(
                update={
                    "status": settlement.status,
                    "profit_loss": settlement.profit_loss,
                    "partial_return": settlement.partial_return,
                }
            )
            try:
                self.store.update(updated)
            except PersistenceError as e:
                logger.error(f"Error saving settlement for bet {bet_id}: {e}")
                self._compensate(-settlement.credit, bet_id=bet_id, operation="settle", cause=e)
                raise

            commission_note = f" (Comm: {bet.commission}%)" if bet.commission_rate > 0 else ""
            logger.info(
                f"Bet {bet_id} settled as {result.value}. "
                f"P/L: {settlement.profit_loss:.2f}{commission_note}"
            )
            return updated

    def unsettle(self, bet_id: str) -> BetRecord:
        """Return a settled bet to pending and reverse its bankroll credit.

        Raises:
            BetNotFoundError, AlreadyPendingError
            PersistenceError: If a write failed (bankroll restored)
            CriticalInconsistencyError: If restoring the bankroll also failed
        """
        with self._lock, logfire.span("bet.unsettle", bet_id=bet_id):
            bet = self._require(bet_id)
            if not bet.status.is_settled:
                raise AlreadyPendingError(f"Bet '{bet_id}' is already pending.")

            adjustment = reversal_amount(bet)
            if adjustment != 0:
                self.ledger.add(adjustment)

            updated = bet.model_copy(
                update={
                    "status": BetStatus.PENDING,
                    "profit_loss": None,
                    "partial_return": None,
                }
            )
            try:
                self.store.update(updated)
            except PersistenceError as e:
                logger.error(f"Error saving unsettle for bet {bet_id}: {e}")
                self._compensate(-adjustment, bet_id=bet_id, operation="unsettle", cause=e)
                raise

            logger.info(f"Bet {bet_id} unsettled from {bet.status.value}. Bankroll adjusted.")
            return updated

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, bet_id: str) -> BetRecord:
        bet = self.store.find(bet_id)
        if bet is None:
            raise BetNotFoundError(bet_id)
        return bet

    def _new_id(self) -> str:
        taken = self.store.ids()
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if candidate not in taken:
                return candidate
        raise IdGenerationError(
            f"Failed to generate unique ID after {MAX_ID_ATTEMPTS} attempts."
        )

    def _compensate(self, delta: Decimal, bet_id: str, operation: str, cause: Exception) -> None:
        """Apply ``delta`` to the bankroll once to undo a half-finished operation.

        Returns normally if the bankroll was restored, so the caller re-raises
        ``cause``. Raises CriticalInconsistencyError if it was not.
        """
        if delta == 0:
            return

        logger.warning(f"Reverting bankroll adjustment {delta:+.2f} for {bet_id} ({operation} failed)")
        try:
            self.ledger.add(delta)
        except Exception as compensation_error:
            error = CriticalInconsistencyError(
                bet_id=bet_id,
                operation=operation,
                delta=delta,
                original_error=cause,
                compensation_error=compensation_error,
            )
            logger.critical(error.message)
            logfire.error(
                "bankroll inconsistency",
                bet_id=bet_id,
                operation=operation,
                delta=str(delta),
            )
            if self.alert is not None:
                try:
                    self.alert(error)
                except Exception as alert_error:
                    logger.error(f"Failed to send critical alert: {alert_error}")
            raise error from compensation_error

        logger.info(f"Bankroll adjustment reverted for {bet_id}.")


def create_engine(settings: Settings, alert: AlertHook | None = None) -> BetLifecycleEngine:
    """Create an engine over the record files in settings.data_dir."""
    return BetLifecycleEngine(
        ledger=BankrollLedger(settings.bankroll_path, settings.bankroll.default_bankroll),
        store=BetStore(settings.bets_path),
        staking=settings.staking,
        alert=alert,
        lock=DataLock(settings.lock_path),
    )
