"""
Error Types Module

Typed failures raised by the ledger engine. Every ledger-level failure is
recoverable at the granularity of a single transaction: the transaction is
rejected and processing moves on to the next one.
"""

from typing import Optional


class TxError(Exception):
    """Base class for all transaction processing failures"""

    message = "Unknown error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class InsufficientFundsError(TxError):
    message = "Insufficient Funds"


class MissingAmountError(TxError):
    message = "Missing amount in transaction data"


class BadDisputeError(TxError):
    message = "Bad dispute"


class InvalidAmountError(TxError):
    message = "Deposits and withdrawals must be positive amounts"


class LockedAccountError(TxError):
    message = "The account is locked"


class NotFoundError(TxError):
    message = "Given transaction could not be found"


class InsufficientPermissionError(TxError):
    message = "Tried to mutate a transaction not owned by you"


class MalformedRecordError(TxError):
    """Raw input row could not be parsed into a transaction record"""
    message = "Malformed transaction record"


class SerializationError(TxError):
    """Account snapshot could not be produced (balance total overflowed)"""
    message = "Overflowed balance total"
