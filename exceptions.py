"""Ledger error taxonomy.

Every error is scoped to a single event. The Ledger catches them and drops
the event; none of them ever reaches the caller of ``Ledger.apply``.
"""


class LedgerError(Exception):
    """Base class for ledger errors."""

    code = "LEDGER_ERROR"


class DuplicateTransactionIdError(LedgerError):
    """Raised when a deposit or withdrawal reuses a recorded transaction id."""

    code = "DUPLICATE_TRANSACTION_ID"


class UnknownTransactionReferenceError(LedgerError):
    """Raised when a dispute-related event names a transaction never recorded."""

    code = "UNKNOWN_TRANSACTION_REFERENCE"


class WrongClientForTransactionError(LedgerError):
    """Raised when a dispute-related event names another client's transaction."""

    code = "WRONG_CLIENT_FOR_TRANSACTION"


class InvalidTransactionKindForDisputeError(LedgerError):
    """Raised when a dispute targets anything other than a deposit."""

    code = "INVALID_TRANSACTION_KIND_FOR_DISPUTE"


class InvalidStateTransitionError(LedgerError):
    """Raised when the transaction state does not allow the requested move."""

    code = "INVALID_STATE_TRANSITION"


class InsufficientFundsError(LedgerError):
    code = "INSUFFICIENT_FUNDS"


class AccountLockedError(LedgerError):
    code = "ACCOUNT_LOCKED"


class NegativeAmountError(LedgerError):
    code = "NEGATIVE_AMOUNT"


class MalformedRecordError(LedgerError):
    """Raised when a raw record cannot be turned into an event."""

    code = "MALFORMED_RECORD"
