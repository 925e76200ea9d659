"""
Test suite for ledger module

Tests sequential application of transactions, the transaction log, the
dispute index and the movement of accounts from active to locked.
"""

import pytest
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from tx_engine.accounts import ActiveAccount, LockedAccount, Balance, DisputedTransaction
from tx_engine.amount import PositiveDecimal, ZERO, MAX_AMOUNT
from tx_engine.errors import (
    BadDisputeError, InsufficientFundsError, LockedAccountError, NotFoundError,
    SerializationError
)
from tx_engine.ledger import Ledger, ProcessingSummary
from tx_engine.transactions import Transaction, TransactionRecord, TransactionType


def amount(value) -> PositiveDecimal:
    return PositiveDecimal(Decimal(str(value)))


class TestLedgerScenarios:
    """Test end-to-end ledger scenarios"""

    def setup_method(self):
        """Set up test fixtures"""
        self.ledger = Ledger()

    def test_insufficient_withdrawal(self):
        """Test an overdrawing withdrawal is rejected and not logged"""
        deposit = Transaction.deposit(1, 1, amount('1.0'))
        self.ledger.add_transaction(deposit)

        with pytest.raises(InsufficientFundsError):
            self.ledger.add_transaction(Transaction.withdrawal(1, 2, amount('1.5')))

        assert self.ledger.transactions == (deposit,)
        account = self.ledger.active_accounts[1]
        assert account.available.to_string() == "1.0000"
        assert account.held == ZERO

    def test_dispute_then_resolve(self):
        """Test a resolved dispute restores the original balance"""
        self.ledger.process([
            Transaction.deposit(1, 1, amount('10.0')),
            Transaction.dispute(1, 1),
            Transaction.resolve(1, 1),
        ])

        account = self.ledger.active_accounts[1]
        assert account.available.to_string() == "10.0000"
        assert account.held.to_string() == "0.0000"
        assert len(self.ledger.disputed_transactions) == 0
        assert len(self.ledger.transactions) == 3

    def test_dispute_then_chargeback(self):
        """Test a chargeback locks the account for good"""
        self.ledger.process([
            Transaction.deposit(1, 1, amount('10.0')),
            Transaction.dispute(1, 1),
            Transaction.chargeback(1, 1),
        ])

        assert 1 not in self.ledger.active_accounts
        locked = self.ledger.locked_accounts[1]
        assert isinstance(locked, LockedAccount)
        assert locked.available.to_string() == "0.0000"
        assert locked.held.to_string() == "0.0000"

        with pytest.raises(LockedAccountError):
            self.ledger.add_transaction(Transaction.deposit(1, 2, amount('5')))
        assert len(self.ledger.transactions) == 3

    def test_withdrawal_before_deposit(self):
        """Test a withdrawal on an unseen client is rejected"""
        with pytest.raises(InsufficientFundsError):
            self.ledger.add_transaction(Transaction.withdrawal(1, 2, amount('5.0')))

        assert self.ledger.transactions == ()
        assert 1 not in self.ledger.active_accounts

    def test_double_dispute(self):
        """Test a transaction cannot be disputed twice concurrently"""
        self.ledger.add_transaction(Transaction.deposit(1, 1, amount('10')))
        self.ledger.add_transaction(Transaction.deposit(1, 2, amount('10')))
        self.ledger.add_transaction(Transaction.dispute(1, 1))

        with pytest.raises(BadDisputeError):
            self.ledger.add_transaction(Transaction.dispute(1, 1))

        assert self.ledger.disputed_transactions == {1: DisputedTransaction(1, amount('10'))}
        assert self.ledger.active_accounts[1].held == amount('10')

        # once resolved it may be disputed again
        self.ledger.add_transaction(Transaction.resolve(1, 1))
        self.ledger.add_transaction(Transaction.dispute(1, 1))
        assert self.ledger.active_accounts[1].held == amount('10')

    def test_failed_chargeback_keeps_account_active(self):
        """Test a rejected chargeback leaves the account where it was"""
        self.ledger.add_transaction(Transaction.deposit(1, 1, amount('10')))

        with pytest.raises(NotFoundError):
            self.ledger.add_transaction(Transaction.chargeback(1, 1))

        assert self.ledger.active_accounts[1] == ActiveAccount(1, Balance(amount('10'), ZERO))
        assert 1 not in self.ledger.locked_accounts

    def test_chargeback_for_unseen_client(self):
        """Test a chargeback on an unseen client creates nothing"""
        with pytest.raises(NotFoundError):
            self.ledger.add_transaction(Transaction.chargeback(4, 1))

        assert 4 not in self.ledger.active_accounts
        assert 4 not in self.ledger.locked_accounts

    def test_cross_client_dispute_rejected(self):
        """Test clients cannot dispute each other's transactions"""
        self.ledger.add_transaction(Transaction.deposit(1, 1, amount('10')))
        self.ledger.add_transaction(Transaction.deposit(2, 2, amount('10')))

        summary = self.ledger.process([Transaction.dispute(2, 1)])

        assert summary.rejections == {"InsufficientPermissionError": 1}
        assert self.ledger.active_accounts[1].held == ZERO
        assert self.ledger.active_accounts[2].held == ZERO

    def test_locked_account_rejected(self):
        """Test transactions for a locked client are refused up front"""
        self.ledger._locked_accounts[10] = LockedAccount(10)

        with pytest.raises(LockedAccountError):
            self.ledger.add_transaction(Transaction.deposit(10, 1000, amount('10000.1')))

        assert 10 not in self.ledger.active_accounts

    def test_views_are_read_only(self):
        """Test accessors do not expose the internal maps"""
        self.ledger.add_transaction(Transaction.deposit(1, 1, amount('1')))

        with pytest.raises(TypeError):
            self.ledger.active_accounts[2] = ActiveAccount(2)

        assert self.ledger.get_account(1) is self.ledger.active_accounts[1]
        assert self.ledger.get_account(2) is None


class TestLedgerLifecycle:
    """Walk a single client through the full dispute lifecycle"""

    def test_full_lifecycle(self):
        """Test deposit, withdrawals, disputes, resolve and chargeback"""
        ledger = Ledger()
        client_id = 10
        tx_id = 1000
        deposit_amount = amount('10000.1000')
        smaller_amount = amount('900.1000')

        deposit = Transaction.deposit(client_id, tx_id, deposit_amount)
        ledger.add_transaction(deposit)
        assert ledger.transactions == (deposit,)
        assert ledger.active_accounts[client_id] == ActiveAccount(
            client_id, Balance(deposit_amount, ZERO)
        )

        withdrawal = Transaction.withdrawal(client_id, tx_id + 1, smaller_amount)
        ledger.add_transaction(withdrawal)
        after_withdrawal = deposit_amount.checked_sub(smaller_amount)
        assert ledger.active_accounts[client_id].available == after_withdrawal

        # disputing a withdrawal holds its amount out of available funds again
        ledger.add_transaction(Transaction.dispute(client_id, tx_id + 1))
        balance = ledger.active_accounts[client_id].balance
        assert balance.available == after_withdrawal.checked_sub(smaller_amount)
        assert balance.held == smaller_amount

        ledger.add_transaction(Transaction.resolve(client_id, tx_id + 1))
        balance = ledger.active_accounts[client_id].balance
        assert balance.available == after_withdrawal
        assert balance.held == ZERO
        assert len(ledger.transactions) == 4

        with pytest.raises(InsufficientFundsError):
            ledger.add_transaction(
                Transaction.withdrawal(client_id, tx_id + 2, amount('9000000000.1000'))
            )
        assert len(ledger.transactions) == 4

        ledger.add_transaction(Transaction.withdrawal(client_id, tx_id + 2, smaller_amount))
        after_second = after_withdrawal.checked_sub(smaller_amount)
        assert ledger.active_accounts[client_id].available == after_second

        ledger.add_transaction(Transaction.dispute(client_id, tx_id + 2))
        balance = ledger.active_accounts[client_id].balance
        assert balance.available == after_second.checked_sub(smaller_amount)
        assert balance.held == smaller_amount

        ledger.add_transaction(Transaction.chargeback(client_id, tx_id + 2))
        assert len(ledger.transactions) == 7
        assert client_id not in ledger.active_accounts
        locked = ledger.locked_accounts[client_id]
        assert locked.available == after_second.checked_sub(smaller_amount)
        assert locked.held == ZERO
        assert ledger.transactions[-1] == Transaction.chargeback(client_id, tx_id + 2)


class TestProcessing:
    """Test batch processing"""

    def test_process_continues_after_failures(self):
        """Test a failure on one transaction does not stop the batch"""
        ledger = Ledger()
        summary = ledger.process([
            Transaction.deposit(1, 1, amount('1.0')),
            Transaction.deposit(2, 2, amount('2.0')),
            Transaction.deposit(1, 3, amount('2.0')),
            Transaction.withdrawal(1, 4, amount('1.5')),
            Transaction.withdrawal(2, 5, amount('3.0')),
            Transaction.resolve(1, 1),
        ])

        assert summary == ProcessingSummary(
            applied=4, rejected=2,
            rejections={"InsufficientFundsError": 1, "NotFoundError": 1}
        )
        assert summary.total == 6
        assert summary.duration_ms >= 0
        assert [tx.transaction_id for tx in ledger.transactions] == [1, 2, 3, 4]
        assert ledger.active_accounts[1].available == amount('1.5')
        assert ledger.active_accounts[2].available == amount('2.0')

    def test_process_records(self):
        """Test raw records are validated before being applied"""
        ledger = Ledger()
        records = [
            TransactionRecord(transaction_type=TransactionType.DEPOSIT, client_id=1,
                              transaction_id=1, amount=Decimal('5')),
            TransactionRecord(transaction_type=TransactionType.DEPOSIT, client_id=1,
                              transaction_id=2),
            TransactionRecord(transaction_type=TransactionType.WITHDRAWAL, client_id=1,
                              transaction_id=3, amount=Decimal('-1')),
            TransactionRecord(transaction_type=TransactionType.DISPUTE, client_id=1,
                              transaction_id=1, amount=Decimal('100')),
        ]

        summary = ledger.process_records(records)

        assert summary.applied == 2
        assert summary.rejections == {"MissingAmountError": 1, "InvalidAmountError": 1}
        assert ledger.transactions == (
            Transaction.deposit(1, 1, amount('5')),
            Transaction.dispute(1, 1),
        )
        assert ledger.active_accounts[1].held == amount('5')

    def test_snapshots_order(self):
        """Test active accounts are listed before locked accounts"""
        ledger = Ledger()
        ledger.process([
            Transaction.deposit(1, 1, amount('1')),
            Transaction.dispute(1, 1),
            Transaction.chargeback(1, 1),
            Transaction.deposit(2, 2, amount('2')),
        ])

        snapshots = ledger.snapshots()

        assert [(s.client_id, s.locked) for s in snapshots] == [(2, False), (1, True)]
        assert snapshots[0].total == amount('2')

    def test_snapshots_overflow(self):
        """Test an overflowing total fails the whole snapshot"""
        ledger = Ledger()
        ledger.process([
            Transaction.deposit(1, 1, PositiveDecimal(MAX_AMOUNT)),
            Transaction.dispute(1, 1),
            Transaction.deposit(1, 2, PositiveDecimal(5)),
        ])

        with pytest.raises(SerializationError):
            ledger.snapshots()


class TestLedgerProperties:
    """Property-based ledger tests"""

    @given(st.lists(
        st.tuples(
            st.sampled_from(list(TransactionType)),
            st.integers(min_value=0, max_value=3),
            st.integers(min_value=0, max_value=10),
            st.decimals(min_value=0, max_value=Decimal("1000"), places=4),
        ),
        max_size=60
    ))
    @settings(max_examples=100)
    def test_invariants_hold_for_any_feed(self, rows):
        """
        PROPERTY: for any feed, active and locked clients are disjoint,
        the log only holds applied transactions, and every open dispute
        is backed by held funds of its owner.
        """
        transactions = [
            Transaction(client, tx, kind, PositiveDecimal(value) if kind.requires_amount else None)
            for kind, client, tx, value in rows
        ]
        ledger = Ledger()

        summary = ledger.process(transactions)

        assert summary.total == len(transactions)
        assert len(ledger.transactions) == summary.applied
        assert not set(ledger.active_accounts) & set(ledger.locked_accounts)

        for client_id, account in ledger.active_accounts.items():
            open_disputes = ZERO
            for entry in ledger.disputed_transactions.values():
                if entry.client_id == client_id:
                    open_disputes = open_disputes.checked_add(entry.amount)
            assert account.held == open_disputes
