"""Domain exceptions for the slip and wallet core."""

from typing import Any


class NetProphetError(Exception):
    """Base exception for the application."""

    status_code: int = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class PredictionValidationError(NetProphetError):
    """A prediction field value is not valid for the current form state."""

    pass


class InvalidSuperTiebreakScoreError(PredictionValidationError):
    """Super tiebreak score is malformed or contradicts the seeded winner."""

    pass


class BetValidationError(NetProphetError):
    """Stake outside the allowed bounds."""

    pass


class InsufficientBalanceError(BetValidationError):
    """Stake or cost exceeds the mirrored balance."""

    pass


class ParticipantConflictError(NetProphetError):
    """The current user plays in the match they are trying to predict."""

    status_code = 409


class EntryNotFoundError(NetProphetError):
    """No slip entry for the given key."""

    status_code = 404


class SessionNotFoundError(NetProphetError):
    """No mounted session for the given id."""

    status_code = 404


class LedgerOperationError(NetProphetError):
    """Remote ledger rejected or failed an operation."""

    status_code = 502
