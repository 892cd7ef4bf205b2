from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError
import structlog

from exceptions import (
    AccountLockedError,
    DuplicateTransactionIdError,
    InvalidStateTransitionError,
    InvalidTransactionKindForDisputeError,
    LedgerError,
    MalformedRecordError,
    NegativeAmountError,
    UnknownTransactionReferenceError,
    WrongClientForTransactionError,
)
from models import (
    Account,
    AccountSnapshot,
    EventRecord,
    EventType,
    Transaction,
    TransactionKind,
    TransactionState,
)
from repositories import (
    AccountRepository,
    InMemoryAccountRepository,
    InMemoryTransactionLog,
    TransactionLog,
)

logger = structlog.get_logger(__name__)


@dataclass
class LedgerStats:
    events_applied: int = 0
    events_dropped: int = 0
    drop_reasons: Counter = field(default_factory=Counter)


class Ledger:
    """Applies events, one at a time and in input order, to client accounts.

    ``apply`` is the only way to change ledger state. Every rejected event is
    dropped without side effects and reported back as ``False``; no ledger
    error ever propagates to the caller.
    """

    def __init__(
        self,
        transaction_log: Optional[TransactionLog] = None,
        account_repo: Optional[AccountRepository] = None,
    ):
        self.transaction_log = transaction_log if transaction_log is not None else InMemoryTransactionLog()
        self.account_repo = account_repo if account_repo is not None else InMemoryAccountRepository()
        self.stats = LedgerStats()
        self._handlers = {
            EventType.deposit: self._process_deposit,
            EventType.withdrawal: self._process_withdrawal,
            EventType.dispute: self._process_dispute,
            EventType.resolve: self._process_resolve,
            EventType.chargeback: self._process_chargeback,
        }

    def apply(self, event: EventRecord) -> bool:
        """Apply a single event. Returns False if the event was dropped."""
        try:
            if event.type.moves_money and event.amount.is_negative():
                raise NegativeAmountError(f"Negative amount {event.amount}")

            account = self.account_repo.get_or_create(event.client)
            self._handlers[event.type](event, account)
        except LedgerError as e:
            self._drop(e, tx=event.tx, client=event.client, type=event.type.value)
            return False

        self.stats.events_applied += 1
        logger.debug(
            "Event applied",
            tx=event.tx,
            client=event.client,
            type=event.type.value,
            amount=str(event.amount) if event.amount is not None else None
        )
        return True

    def apply_row(self, row: Mapping[str, Any]) -> bool:
        """Validate a raw record and apply it. Malformed records are dropped."""
        try:
            event = self.parse_row(row)
        except MalformedRecordError as e:
            self._drop(e, row=dict(row))
            return False
        return self.apply(event)

    def apply_all(self, events: Iterable[Union[EventRecord, Mapping[str, Any]]]) -> None:
        for event in events:
            if isinstance(event, EventRecord):
                self.apply(event)
            else:
                self.apply_row(event)

    @staticmethod
    def parse_row(row: Mapping[str, Any]) -> EventRecord:
        try:
            return EventRecord.model_validate(dict(row))
        except ValidationError as e:
            raise MalformedRecordError(
                "; ".join(f"{'.'.join(map(str, err['loc'])) or 'record'}: {err['msg']}" for err in e.errors())
            ) from e

    def snapshot(self) -> List[AccountSnapshot]:
        """Current balances of every known client, ordered by client id."""
        return [
            AccountSnapshot.from_account(account)
            for account in sorted(self.account_repo.all(), key=lambda a: a.client)
        ]

    def account(self, client: int) -> Optional[AccountSnapshot]:
        account = self.account_repo.get(client)
        if account is None:
            return None
        return AccountSnapshot.from_account(account)

    def _drop(self, error: LedgerError, **context: Any) -> None:
        self.stats.events_dropped += 1
        self.stats.drop_reasons[error.code] += 1
        logger.warning("Event dropped", reason=error.code, detail=str(error), **context)

    def _process_deposit(self, event: EventRecord, account: Account) -> None:
        if account.locked:
            raise AccountLockedError(f"Account {account.client} is locked")

        self.transaction_log.record(event.tx, event.client, TransactionKind.deposit, event.amount)
        account.credit_available(event.amount)

    def _process_withdrawal(self, event: EventRecord, account: Account) -> None:
        if account.locked:
            raise AccountLockedError(f"Account {account.client} is locked")
        # Checked up front so a duplicate never moves money
        if event.tx in self.transaction_log:
            raise DuplicateTransactionIdError(f"Transaction {event.tx} already recorded")

        account.debit_available(event.amount)
        self.transaction_log.record(event.tx, event.client, TransactionKind.withdrawal, event.amount)

    def _process_dispute(self, event: EventRecord, account: Account) -> None:
        transaction = self._referenced_transaction(event)
        if transaction.kind != TransactionKind.deposit:
            raise InvalidTransactionKindForDisputeError(
                f"Transaction {transaction.id} is a {transaction.kind.value}"
            )
        if transaction.state not in (TransactionState.normal, TransactionState.resolved):
            raise InvalidStateTransitionError(
                f"Cannot dispute transaction {transaction.id} in state {transaction.state.value}"
            )

        account.hold(transaction.amount)
        transaction.state = TransactionState.disputed

    def _process_resolve(self, event: EventRecord, account: Account) -> None:
        transaction = self._disputed_transaction(event)
        account.release(transaction.amount)
        transaction.state = TransactionState.resolved

    def _process_chargeback(self, event: EventRecord, account: Account) -> None:
        transaction = self._disputed_transaction(event)
        account.chargeback(transaction.amount)
        transaction.state = TransactionState.charged_back

    def _referenced_transaction(self, event: EventRecord) -> Transaction:
        transaction = self.transaction_log.lookup(event.tx)
        if transaction is None:
            raise UnknownTransactionReferenceError(f"Transaction {event.tx} not found")
        if transaction.client != event.client:
            raise WrongClientForTransactionError(
                f"Transaction {event.tx} belongs to client {transaction.client}, not {event.client}"
            )
        return transaction

    def _disputed_transaction(self, event: EventRecord) -> Transaction:
        transaction = self._referenced_transaction(event)
        if transaction.state != TransactionState.disputed:
            raise InvalidStateTransitionError(
                f"Transaction {transaction.id} is {transaction.state.value}, not disputed"
            )
        return transaction


# Singleton instance served by the HTTP app
_ledger = Ledger()


def get_ledger() -> Ledger:
    return _ledger


def reset_ledger() -> None:
    """Replace the shared ledger with an empty one (for testing only)."""
    global _ledger
    _ledger = Ledger()
