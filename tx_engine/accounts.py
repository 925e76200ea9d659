"""
Account Management Module

Client accounts and their balance state machine. An account is either
ACTIVE (accepts every transaction kind) or LOCKED (frozen after a
chargeback, rejects everything). Both variants share the same Balance
structure and the Transact capability interface.

Held funds work like holds on a bank account: they reduce the available
balance but still count towards the total.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar, Dict, Sequence
from enum import Enum

from .amount import PositiveDecimal, ZERO
from .errors import (
    BadDisputeError, InsufficientPermissionError, InvalidAmountError,
    LockedAccountError, NotFoundError, SerializationError
)
from .transactions import Transaction


class AccountState(Enum):
    """Account lifecycle states"""
    ACTIVE = "active"    # Normal operation
    LOCKED = "locked"    # Permanently frozen after a chargeback


@dataclass
class Balance:
    """
    Funds of a single client. The total is derived from
    available + held and never stored.
    """
    available: PositiveDecimal = ZERO
    held: PositiveDecimal = ZERO

    def total(self) -> PositiveDecimal:
        """
        Raises:
            InvalidAmountError: If available + held overflows
        """
        return self.available.checked_add(self.held)


@dataclass(frozen=True)
class DisputedTransaction:
    """Entry of the dispute index: owner and amount of a disputed transaction"""
    client_id: int
    amount: PositiveDecimal


# transaction_id -> open dispute
DisputeIndex = Dict[int, DisputedTransaction]


@dataclass(frozen=True)
class AccountSnapshot:
    """Point-in-time view of an account for output"""
    client_id: int
    available: PositiveDecimal
    held: PositiveDecimal
    total: PositiveDecimal
    locked: bool

    def to_row(self) -> Dict[str, str]:
        """Flatten for CSV output, monetary fields at 4 decimals"""
        return {
            "client": str(self.client_id),
            "available": self.available.to_string(),
            "held": self.held.to_string(),
            "total": self.total.to_string(),
            "locked": "true" if self.locked else "false",
        }


class Transact(ABC):
    """Operations every account variant must answer"""

    @abstractmethod
    def deposit(self, amount: PositiveDecimal) -> None:
        """Raises InvalidAmountError when the deposit would overflow"""

    @abstractmethod
    def withdraw(self, amount: PositiveDecimal) -> None:
        """Raises InsufficientFundsError when `amount` exceeds available funds"""

    @abstractmethod
    def dispute(
        self,
        transaction_id: int,
        transaction_log: Sequence[Transaction],
        disputed: DisputeIndex
    ) -> None:
        """
        Hold the funds of an earlier deposit or withdrawal.

        Raises:
            BadDisputeError: Already disputed, or not a deposit/withdrawal
            NotFoundError: `transaction_id` is not in the log
            InsufficientPermissionError: Transaction belongs to another client
        """

    @abstractmethod
    def resolve(self, transaction_id: int, disputed: DisputeIndex) -> None:
        """
        Release the held funds of an open dispute.

        Raises:
            NotFoundError: `transaction_id` is not under dispute
            InsufficientPermissionError: Dispute belongs to another client
        """

    @abstractmethod
    def chargeback(self, transaction_id: int, disputed: DisputeIndex) -> 'LockedAccount':
        """
        Remove the held funds of an open dispute and lock the account.
        Returns the locked replacement; the caller drops this account.

        Raises:
            NotFoundError: `transaction_id` is not under dispute
            InsufficientPermissionError: Dispute belongs to another client
        """


@dataclass
class Account(Transact):
    """Client account keyed by client_id"""
    client_id: int
    balance: Balance = field(default_factory=Balance)

    state: ClassVar[AccountState]

    @property
    def is_locked(self) -> bool:
        return self.state == AccountState.LOCKED

    @property
    def available(self) -> PositiveDecimal:
        return self.balance.available

    @property
    def held(self) -> PositiveDecimal:
        return self.balance.held

    def snapshot(self) -> AccountSnapshot:
        """
        Capture the account for output

        Raises:
            SerializationError: If the balance total overflows
        """
        try:
            total = self.balance.total()
        except InvalidAmountError as e:
            raise SerializationError(
                f"Balances of client {self.client_id} were too high to compute a total"
            ) from e

        return AccountSnapshot(
            client_id=self.client_id,
            available=self.balance.available,
            held=self.balance.held,
            total=total,
            locked=self.is_locked
        )


class ActiveAccount(Account):
    """
    Account in normal operation. Every operation either fully applies
    or raises with the account left untouched.
    """
    state = AccountState.ACTIVE

    def deposit(self, amount: PositiveDecimal) -> None:
        self.balance.available = self.balance.available.checked_add(amount)

    def withdraw(self, amount: PositiveDecimal) -> None:
        self.balance.available = self.balance.available.checked_sub(amount)

    def dispute(
        self,
        transaction_id: int,
        transaction_log: Sequence[Transaction],
        disputed: DisputeIndex
    ) -> None:
        # transaction_log must be in chronological order, first match wins
        if transaction_id in disputed:
            raise BadDisputeError(f"Transaction {transaction_id} is already disputed")

        original = next(
            (tx for tx in transaction_log if tx.transaction_id == transaction_id),
            None
        )
        if original is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")

        if original.client_id != self.client_id:
            raise InsufficientPermissionError()

        if not original.is_disputable:
            raise BadDisputeError(
                f"Cannot dispute a {original.transaction_type.value} transaction"
            )

        # Withdrawals are held the same way as deposits, so disputing one
        # lowers available funds a second time.
        available = self.balance.available.checked_sub(original.amount)
        held = self.balance.held.checked_add(original.amount)

        self.balance.available = available
        self.balance.held = held
        disputed[transaction_id] = DisputedTransaction(self.client_id, original.amount)

    def resolve(self, transaction_id: int, disputed: DisputeIndex) -> None:
        entry = self._owned_dispute(transaction_id, disputed)

        available = self.balance.available.checked_add(entry.amount)
        held = self.balance.held.checked_sub(entry.amount)

        self.balance.available = available
        self.balance.held = held
        del disputed[transaction_id]

    def chargeback(self, transaction_id: int, disputed: DisputeIndex) -> 'LockedAccount':
        entry = self._owned_dispute(transaction_id, disputed)

        held = self.balance.held.checked_sub(entry.amount)

        del disputed[transaction_id]
        return LockedAccount(
            client_id=self.client_id,
            balance=Balance(available=self.balance.available, held=held)
        )

    def _owned_dispute(self, transaction_id: int, disputed: DisputeIndex) -> DisputedTransaction:
        entry = disputed.get(transaction_id)
        if entry is None:
            raise NotFoundError(f"Transaction {transaction_id} is not under dispute")
        if entry.client_id != self.client_id:
            raise InsufficientPermissionError()
        return entry


class LockedAccount(Account):
    """Terminal state: balance is frozen and every operation is refused"""
    state = AccountState.LOCKED

    def deposit(self, amount: PositiveDecimal) -> None:
        raise LockedAccountError()

    def withdraw(self, amount: PositiveDecimal) -> None:
        raise LockedAccountError()

    def dispute(
        self,
        transaction_id: int,
        transaction_log: Sequence[Transaction],
        disputed: DisputeIndex
    ) -> None:
        raise LockedAccountError()

    def resolve(self, transaction_id: int, disputed: DisputeIndex) -> None:
        raise LockedAccountError()

    def chargeback(self, transaction_id: int, disputed: DisputeIndex) -> 'LockedAccount':
        raise LockedAccountError()
