from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from amount import Amount
from exceptions import AccountLockedError, InsufficientFundsError


MAX_CLIENT_ID = 2 ** 16 - 1
MAX_TRANSACTION_ID = 2 ** 32 - 1


class EventType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"

    @property
    def moves_money(self) -> bool:
        return self in (EventType.deposit, EventType.withdrawal)


class TransactionKind(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"


class TransactionState(str, Enum):
    normal = "normal"
    disputed = "disputed"
    resolved = "resolved"
    charged_back = "charged_back"


@dataclass
class Transaction:
    """A deposit or withdrawal accepted by the ledger.

    Only ``state`` changes after creation.
    """

    id: int
    client: int
    kind: TransactionKind
    amount: Amount
    state: TransactionState = TransactionState.normal


class Account:
    """Balances of a single client.

    ``total`` is derived from ``available + held`` and the lock only ever
    goes from unlocked to locked.
    """

    def __init__(self, client: int):
        self.client = client
        self._available = Amount.zero()
        self._held = Amount.zero()
        self._locked = False

    @property
    def available(self) -> Amount:
        return self._available

    @property
    def held(self) -> Amount:
        return self._held

    @property
    def total(self) -> Amount:
        return self._available + self._held

    @property
    def locked(self) -> bool:
        return self._locked

    def credit_available(self, amount: Amount) -> None:
        self._available = self._available + amount

    def debit_available(self, amount: Amount) -> None:
        if self._locked:
            raise AccountLockedError(f"Account {self.client} is locked")
        if self._available < amount:
            raise InsufficientFundsError(
                f"Account {self.client} has {self._available} available, needs {amount}"
            )
        self._available = self._available - amount

    def hold(self, amount: Amount) -> None:
        # available may go negative when the disputed funds were already withdrawn
        self._available = self._available - amount
        self._held = self._held + amount

    def release(self, amount: Amount) -> None:
        self._held = self._held - amount
        self._available = self._available + amount

    def chargeback(self, amount: Amount) -> None:
        self._held = self._held - amount
        self.lock()

    def lock(self) -> None:
        self._locked = True

    def __repr__(self) -> str:
        return (
            f"Account(client={self.client}, available={self._available}, "
            f"held={self._held}, locked={self._locked})"
        )


class EventRecord(BaseModel):
    """One input event, shaped like a ``type,client,tx,amount`` row."""

    model_config = ConfigDict(extra="forbid")

    type: EventType = Field(..., description="Event type")
    client: int = Field(..., ge=0, le=MAX_CLIENT_ID, description="Client identifier")
    tx: int = Field(..., ge=0, le=MAX_TRANSACTION_ID, description="Transaction identifier")
    amount: Optional[Amount] = Field(
        None,
        description="Amount for deposits and withdrawals, ignored otherwise"
    )

    @field_validator("type", "client", "tx", "amount", mode="before")
    @classmethod
    def reject_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str) and any(ch.isspace() for ch in v):
            raise ValueError("Field must not contain whitespace")
        return v

    @field_validator("client", "tx", mode="before")
    @classmethod
    def validate_identifier(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("Identifier must be an integer")
        if isinstance(v, int):
            return v
        if isinstance(v, str) and re.fullmatch(r"[0-9]+", v):
            return v
        raise ValueError("Identifier must be a plain unsigned integer")

    @field_validator("amount", mode="before")
    @classmethod
    def empty_amount_is_missing(cls, v: Any) -> Any:
        if v == "":
            return None
        return v

    @model_validator(mode="after")
    def validate_amount_presence(self) -> "EventRecord":
        if self.type.moves_money:
            if self.amount is None:
                raise ValueError(f"{self.type.value} requires an amount")
        else:
            self.amount = None
        return self


class AccountSnapshot(BaseModel):
    client: int = Field(..., description="Client identifier")
    available: Amount = Field(..., description="Funds available for withdrawal")
    held: Amount = Field(..., description="Funds held by open disputes")
    total: Amount = Field(..., description="available + held")
    locked: bool = Field(..., description="Whether a chargeback froze the account")

    @classmethod
    def from_account(cls, account: Account) -> "AccountSnapshot":
        return cls(
            client=account.client,
            available=account.available,
            held=account.held,
            total=account.total,
            locked=account.locked,
        )


class EventResponse(BaseModel):
    tx: int = Field(..., description="Transaction identifier of the event")
    client: int = Field(..., description="Client identifier of the event")
    type: EventType = Field(..., description="Event type")
    applied: bool = Field(..., description="False when the ledger dropped the event")


class BatchResponse(BaseModel):
    received: int = Field(..., description="Records in the request body")
    applied: int = Field(..., description="Records that changed ledger state")
    dropped: int = Field(..., description="Records dropped by the ledger")


class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Error description")
    error_code: str = Field(..., description="Machine-readable error code")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(default_factory=datetime.now)
    accounts_count: int = Field(..., description="Number of known client accounts")
    transactions_recorded: int = Field(..., description="Deposits and withdrawals in the log")
    events_applied: int = Field(..., description="Events that changed ledger state")
    events_dropped: int = Field(..., description="Events dropped by the ledger")
