"""
Exact Amount Module

Non-negative, fixed-scale decimal amounts for all balance arithmetic.
Every amount is rescaled to NUM_DECIMAL_PLACES fractional digits on
construction. NEVER uses float for stored values.
"""

from decimal import Decimal, Context, InvalidOperation, ROUND_HALF_UP
from dataclasses import dataclass

from .errors import InvalidAmountError, InsufficientFundsError


NUM_DECIMAL_PLACES = 4

# Largest magnitude of a 96-bit fixed-point mantissa
MAX_AMOUNT = Decimal(2 ** 96 - 1)

_SCALE = Decimal(1).scaleb(-NUM_DECIMAL_PLACES)

# Wide enough to hold MAX_AMOUNT + MAX_AMOUNT at full scale without rounding
_CONTEXT = Context(prec=40, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, order=True)
class PositiveDecimal:
    """
    Immutable non-negative amount rescaled to 4 fractional digits.
    Arithmetic is checked: results are never negative and never exceed
    MAX_AMOUNT, failures raise instead of clamping.
    """
    value: Decimal

    def __post_init__(self):
        value = self.value
        if not isinstance(value, Decimal):
            # floats go through str() so 1.1 stays 1.1
            try:
                value = Decimal(str(value))
            except (InvalidOperation, ValueError):
                raise InvalidAmountError(f"Cannot convert {self.value!r} to an amount")

        if not value.is_finite():
            raise InvalidAmountError(f"Amount must be finite, got {value}")
        if value < 0:
            raise InvalidAmountError()
        if value > MAX_AMOUNT:
            raise InvalidAmountError(f"Amount {value} exceeds maximum of {MAX_AMOUNT}")

        rescaled = value.quantize(_SCALE, rounding=ROUND_HALF_UP, context=_CONTEXT)
        if rescaled > MAX_AMOUNT:
            raise InvalidAmountError(f"Amount {value} exceeds maximum of {MAX_AMOUNT}")
        object.__setattr__(self, 'value', rescaled.copy_abs())

    def checked_add(self, other: 'PositiveDecimal') -> 'PositiveDecimal':
        """
        Add two amounts

        Raises:
            InvalidAmountError: If the sum exceeds MAX_AMOUNT
        """
        total = _CONTEXT.add(self.value, other.value)
        if total > MAX_AMOUNT:
            raise InvalidAmountError(f"Adding {other} to {self} overflows")
        return PositiveDecimal(total)

    def checked_sub(self, other: 'PositiveDecimal') -> 'PositiveDecimal':
        """
        Subtract `other` from this amount

        Raises:
            InsufficientFundsError: If `other` is larger than this amount
            InvalidAmountError: If the difference cannot be represented
        """
        if other > self:
            raise InsufficientFundsError()
        return PositiveDecimal(_CONTEXT.subtract(self.value, other.value))

    def is_zero(self) -> bool:
        return self.value == 0

    def to_string(self) -> str:
        """Render with exactly 4 fractional digits"""
        return f"{self.value:f}"

    def __str__(self) -> str:
        return self.to_string()


ZERO = PositiveDecimal(Decimal(0))
