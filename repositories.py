from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional

from amount import Amount
from exceptions import DuplicateTransactionIdError
from models import Account, Transaction, TransactionKind


class TransactionLog(ABC):
    @abstractmethod
    def record(self, tx_id: int, client: int, kind: TransactionKind, amount: Amount) -> Transaction:
        """Store a new transaction. Raises DuplicateTransactionIdError if the id is taken."""
        pass

    @abstractmethod
    def lookup(self, tx_id: int) -> Optional[Transaction]:
        """Get a transaction by id. Returns None if it was never recorded."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of recorded transactions."""
        pass

    def __contains__(self, tx_id: int) -> bool:
        return self.lookup(tx_id) is not None


class AccountRepository(ABC):
    @abstractmethod
    def get(self, client: int) -> Optional[Account]:
        """Get an account. Returns None if the client has never been seen."""
        pass

    @abstractmethod
    def get_or_create(self, client: int) -> Account:
        """Get an account, opening an empty unlocked one on first use."""
        pass

    @abstractmethod
    def all(self) -> Iterator[Account]:
        """Iterate over every known account, in no particular order."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of accounts."""
        pass


class InMemoryTransactionLog(TransactionLog):
    def __init__(self):
        # One key space for every client: transaction ids are globally unique
        self.transactions: Dict[int, Transaction] = {}

    def record(self, tx_id: int, client: int, kind: TransactionKind, amount: Amount) -> Transaction:
        if tx_id in self.transactions:
            raise DuplicateTransactionIdError(f"Transaction {tx_id} already recorded")
        transaction = Transaction(id=tx_id, client=client, kind=kind, amount=amount)
        self.transactions[tx_id] = transaction
        return transaction

    def lookup(self, tx_id: int) -> Optional[Transaction]:
        return self.transactions.get(tx_id)

    def count(self) -> int:
        return len(self.transactions)

    def __contains__(self, tx_id: int) -> bool:
        return tx_id in self.transactions


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}

    def get(self, client: int) -> Optional[Account]:
        return self.accounts.get(client)

    def get_or_create(self, client: int) -> Account:
        account = self.accounts.get(client)
        if account is None:
            account = Account(client)
            self.accounts[client] = account
        return account

    def all(self) -> Iterator[Account]:
        return iter(self.accounts.values())

    def count(self) -> int:
        return len(self.accounts)
