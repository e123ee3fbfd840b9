"""Exceptions raised by the staking engine, ledger and bet store."""

from __future__ import annotations

from decimal import Decimal


class KellyBotError(Exception):
    """Base exception for kellybot."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailure(KellyBotError):
    """Caller supplied something the core refuses. Never retried."""

    pass


class InvalidAmountError(ValidationFailure):
    """Amount is not a positive finite number."""

    pass


class InsufficientFundsError(ValidationFailure):
    """Deduction larger than the current bankroll."""

    pass


class InvalidStakeError(ValidationFailure):
    """Chosen stake is zero, negative or not a number."""

    pass


class InvalidFieldError(ValidationFailure):
    """Field is not editable."""

    pass


class InvalidValueError(ValidationFailure):
    """Value cannot be used for the field it was given for."""

    pass


class AlreadySettledError(ValidationFailure):
    """Bet is no longer pending."""

    pass


class AlreadyPendingError(ValidationFailure):
    """Bet is pending, there is nothing to unsettle."""

    pass


class BetNotFoundError(ValidationFailure):
    """No bet with the given id."""

    def __init__(self, bet_id: str):
        super().__init__(f"Bet ID '{bet_id}' not found.")
        self.bet_id = bet_id


class UnknownOutcomeError(ValidationFailure):
    """Settlement outcome is not one of win, loss, push, part-win."""

    pass


class InvalidOddsError(ValidationFailure):
    """Odds missing or not above 1 where they are required."""

    pass


class InvalidReturnError(ValidationFailure):
    """Partial-win return missing or negative."""

    pass


class BetStringError(ValidationFailure):
    """Free-text bet string could not be parsed."""

    pass


class NoActiveDraftError(ValidationFailure):
    """Caller has no open (unexpired) bet draft."""

    pass


class IdGenerationError(KellyBotError):
    """Could not produce a bet id that is not already taken."""

    pass


class PersistenceError(KellyBotError):
    """A record file could not be written. The previous file is intact."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class CriticalInconsistencyError(KellyBotError):
    """A compensating bankroll write failed.

    The bankroll and the bet store no longer agree and need manual
    reconciliation: ``delta`` is the adjustment that still has to be applied
    to the bankroll for ``bet_id``.
    """

    def __init__(
        self,
        bet_id: str,
        operation: str,
        delta: Decimal,
        original_error: Exception,
        compensation_error: Exception,
    ):
        super().__init__(
            f"CRITICAL: {operation} of bet {bet_id} failed ({original_error}) and "
            f"the bankroll adjustment of {delta:+.2f} could not be applied "
            f"({compensation_error}). Bankroll and bets are out of sync."
        )
        self.bet_id = bet_id
        self.operation = operation
        self.delta = delta
        self.original_error = original_error
        self.compensation_error = compensation_error
