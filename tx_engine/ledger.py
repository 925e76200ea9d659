"""
Ledger Engine

Replays a sequential stream of transactions into per-client account
balances. The ledger owns the append-only transaction log, the active and
locked account maps and the index of open disputes, and lends the log and
index to account operations for the duration of a single call.

A transaction is appended to the log only if applying it succeeds; on
failure the ledger is left exactly as it was.
"""

import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .accounts import (
    Account, ActiveAccount, AccountSnapshot, DisputeIndex, DisputedTransaction,
    LockedAccount
)
from .errors import LockedAccountError, TxError
from .logging_config import get_logger, log_action
from .transactions import Transaction, TransactionRecord, TransactionType


@dataclass
class ProcessingSummary:
    """Outcome counters of a batch run"""
    applied: int = 0
    rejected: int = 0
    rejections: Dict[str, int] = field(default_factory=dict)
    duration_ms: float = field(default=0.0, compare=False)

    @property
    def total(self) -> int:
        return self.applied + self.rejected

    def record_rejection(self, error: TxError) -> None:
        name = type(error).__name__
        self.rejected += 1
        self.rejections[name] = self.rejections.get(name, 0) + 1


class Ledger:
    """
    In-memory ledger of client accounts

    Single writer: transactions are applied one at a time, to completion,
    in the order they are given.
    """

    def __init__(self):
        self._active_accounts: Dict[int, ActiveAccount] = {}
        self._locked_accounts: Dict[int, LockedAccount] = {}
        self._transactions: List[Transaction] = []
        self._disputed: DisputeIndex = {}
        self.logger = get_logger("tx_engine.ledger")

    def add_transaction(self, transaction: Transaction) -> None:
        """
        Apply a single transaction to its client's account

        Args:
            transaction: Validated transaction to apply

        Raises:
            LockedAccountError: If the client's account is locked
            TxError: Any failure of the underlying account operation
        """
        client_id = transaction.client_id
        if client_id in self._locked_accounts:
            raise LockedAccountError(f"Account {client_id} is locked")

        account = self._active_accounts.get(client_id)
        is_new = account is None
        if is_new:
            account = ActiveAccount(client_id)

        tx_type = transaction.transaction_type
        if tx_type == TransactionType.DEPOSIT:
            account.deposit(transaction.amount)
        elif tx_type == TransactionType.WITHDRAWAL:
            account.withdraw(transaction.amount)
        elif tx_type == TransactionType.DISPUTE:
            account.dispute(transaction.transaction_id, self._transactions, self._disputed)
        elif tx_type == TransactionType.RESOLVE:
            account.resolve(transaction.transaction_id, self._disputed)
        elif tx_type == TransactionType.CHARGEBACK:
            locked = account.chargeback(transaction.transaction_id, self._disputed)
            self._active_accounts.pop(client_id, None)
            self._locked_accounts[client_id] = locked
            self.logger.info(f"Account {client_id} locked after chargeback of transaction "
                             f"{transaction.transaction_id}")

        # only keep a lazily created account once something succeeded on it
        if is_new and tx_type != TransactionType.CHARGEBACK:
            self._active_accounts[client_id] = account

        self._transactions.append(transaction)

    def process(self, transactions: Iterable[Transaction]) -> ProcessingSummary:
        """
        Apply every transaction in order. A rejected transaction is logged
        and skipped, it never stops the run.

        Returns:
            Counters of applied and rejected transactions
        """
        summary = ProcessingSummary()
        start = time.time()
        for transaction in transactions:
            self._apply(transaction, summary)

        summary.duration_ms = (time.time() - start) * 1000
        self._log_summary(summary)
        return summary

    def process_records(self, records: Iterable[TransactionRecord]) -> ProcessingSummary:
        """
        Validate raw records into transactions and apply them in order.
        Records that fail validation count as rejections.
        """
        summary = ProcessingSummary()
        start = time.time()
        for record in records:
            try:
                transaction = Transaction.from_record(record)
            except TxError as e:
                summary.record_rejection(e)
                self._log_rejection("Malformed transaction", record.client_id,
                                    record.transaction_id, record.transaction_type, e)
                continue
            self._apply(transaction, summary)

        summary.duration_ms = (time.time() - start) * 1000
        self._log_summary(summary)
        return summary

    def _apply(self, transaction: Transaction, summary: ProcessingSummary) -> None:
        try:
            self.add_transaction(transaction)
        except TxError as e:
            summary.record_rejection(e)
            self._log_rejection("Invalid transaction", transaction.client_id,
                                transaction.transaction_id, transaction.transaction_type, e)
        else:
            summary.applied += 1

    def _log_rejection(self, message: str, client_id: int, transaction_id: int,
                       tx_type: TransactionType, error: TxError) -> None:
        log_action(
            self.logger, "debug", f"{message}: {error}",
            action="reject_transaction", resource=f"transaction:{transaction_id}",
            extra={
                "client_id": client_id,
                "transaction_type": tx_type.value,
                "error": type(error).__name__
            }
        )

    def _log_summary(self, summary: ProcessingSummary) -> None:
        log_action(
            self.logger, "info",
            f"Processed {summary.total} transactions: {summary.applied} applied, "
            f"{summary.rejected} rejected",
            action="process_transactions",
            extra={
                "applied": summary.applied,
                "rejected": summary.rejected,
                "rejections": dict(summary.rejections),
                "active_accounts": len(self._active_accounts),
                "locked_accounts": len(self._locked_accounts),
                "duration_ms": round(summary.duration_ms, 3)
            }
        )

    def get_account(self, client_id: int) -> Optional[Account]:
        """Find a client's account, active or locked"""
        return self._active_accounts.get(client_id) or self._locked_accounts.get(client_id)

    def snapshots(self) -> List[AccountSnapshot]:
        """
        Snapshot every account, active accounts first then locked ones

        Raises:
            SerializationError: If any account's total overflows
        """
        snapshots = [account.snapshot() for account in self._active_accounts.values()]
        snapshots.extend(account.snapshot() for account in self._locked_accounts.values())
        return snapshots

    @property
    def active_accounts(self) -> Mapping[int, ActiveAccount]:
        return MappingProxyType(self._active_accounts)

    @property
    def locked_accounts(self) -> Mapping[int, LockedAccount]:
        return MappingProxyType(self._locked_accounts)

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        return tuple(self._transactions)

    @property
    def disputed_transactions(self) -> Mapping[int, DisputedTransaction]:
        return MappingProxyType(self._disputed)
