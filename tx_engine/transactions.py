"""
Transaction Module

Raw transaction records as they arrive from an input feed, and the validated,
immutable transactions the ledger applies. A raw record becomes a Transaction
only after its amount (where one is required) passes validation.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Optional, Union
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .amount import PositiveDecimal
from .errors import MissingAmountError


U16_MAX = 2 ** 16 - 1
U32_MAX = 2 ** 32 - 1


class TransactionType(Enum):
    """Kinds of client actions"""
    DEPOSIT = "deposit"          # Credit to available funds
    WITHDRAWAL = "withdrawal"    # Debit from available funds
    DISPUTE = "dispute"          # Claim against an earlier deposit/withdrawal
    RESOLVE = "resolve"          # Dispute closed in the client's favour
    CHARGEBACK = "chargeback"    # Dispute reversed, account gets locked

    @property
    def requires_amount(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class TransactionRecord(BaseModel):
    """
    Raw input row: `type, client, tx, amount`.
    Identifier ranges are enforced here, amount sign is not.
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, frozen=True)

    transaction_type: TransactionType = Field(..., alias="type")
    client_id: int = Field(..., alias="client", ge=0, le=U16_MAX)
    transaction_id: int = Field(..., alias="tx", ge=0, le=U32_MAX)
    amount: Optional[Decimal] = None

    @field_validator("amount", mode="before")
    @classmethod
    def blank_amount(cls, value):
        # trailing empty cell means no amount
        if isinstance(value, str) and not value.strip():
            return None
        return value


@dataclass(frozen=True)
class Transaction:
    """
    Validated client action. Deposits and withdrawals carry an amount,
    dispute/resolve/chargeback refer back to an earlier transaction_id.
    """
    client_id: int
    transaction_id: int
    transaction_type: TransactionType
    amount: Optional[PositiveDecimal] = None

    def __post_init__(self):
        if not 0 <= self.client_id <= U16_MAX:
            raise ValueError(f"client_id {self.client_id} out of range")
        if not 0 <= self.transaction_id <= U32_MAX:
            raise ValueError(f"transaction_id {self.transaction_id} out of range")

        if self.transaction_type.requires_amount:
            if self.amount is None:
                raise MissingAmountError()
            if not isinstance(self.amount, PositiveDecimal):
                object.__setattr__(self, "amount", _as_amount(self.amount))
        elif self.amount is not None:
            raise ValueError(f"{self.transaction_type.value} transactions do not carry an amount")

    @classmethod
    def from_record(cls, record: TransactionRecord) -> 'Transaction':
        """
        Validate a raw record into a Transaction

        Raises:
            MissingAmountError: Deposit or withdrawal without an amount
            InvalidAmountError: Negative or unrepresentable amount
        """
        amount = None
        if record.transaction_type.requires_amount:
            if record.amount is None:
                raise MissingAmountError()
            amount = PositiveDecimal(record.amount)

        return cls(
            client_id=record.client_id,
            transaction_id=record.transaction_id,
            transaction_type=record.transaction_type,
            amount=amount
        )

    @classmethod
    def deposit(cls, client_id: int, transaction_id: int,
                amount: Union[PositiveDecimal, Decimal, float, str]) -> 'Transaction':
        return cls(client_id, transaction_id, TransactionType.DEPOSIT, _as_amount(amount))

    @classmethod
    def withdrawal(cls, client_id: int, transaction_id: int,
                   amount: Union[PositiveDecimal, Decimal, float, str]) -> 'Transaction':
        return cls(client_id, transaction_id, TransactionType.WITHDRAWAL, _as_amount(amount))

    @classmethod
    def dispute(cls, client_id: int, transaction_id: int) -> 'Transaction':
        return cls(client_id, transaction_id, TransactionType.DISPUTE)

    @classmethod
    def resolve(cls, client_id: int, transaction_id: int) -> 'Transaction':
        return cls(client_id, transaction_id, TransactionType.RESOLVE)

    @classmethod
    def chargeback(cls, client_id: int, transaction_id: int) -> 'Transaction':
        return cls(client_id, transaction_id, TransactionType.CHARGEBACK)

    @property
    def is_disputable(self) -> bool:
        """Only deposits and withdrawals can be disputed"""
        return self.transaction_type.requires_amount


def _as_amount(amount) -> PositiveDecimal:
    if isinstance(amount, PositiveDecimal):
        return amount
    return PositiveDecimal(amount)
