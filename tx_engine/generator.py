"""
Random transaction feed generator for benchmarks and load tests.

Deposits and withdrawals get fresh sequential transaction ids; disputes,
resolves and chargebacks point back at ids generated earlier so the whole
dispute lifecycle gets exercised. A small share of rows is left without an
amount to exercise the rejection path.
"""

import random
from decimal import Decimal
from typing import Iterator, List, Optional, Tuple

from .amount import NUM_DECIMAL_PLACES
from .transactions import TransactionRecord, TransactionType, U16_MAX, U32_MAX


# Relative frequency of each kind in the generated feed
TYPE_WEIGHTS = {
    TransactionType.DEPOSIT: 50,
    TransactionType.WITHDRAWAL: 30,
    TransactionType.DISPUTE: 10,
    TransactionType.RESOLVE: 6,
    TransactionType.CHARGEBACK: 4,
}

MAX_GENERATED_AMOUNT = 100_000
MISSING_AMOUNT_RATE = 0.01


def random_amount(rng: random.Random) -> Decimal:
    """Random amount with up to NUM_DECIMAL_PLACES fractional digits"""
    units = rng.randint(0, MAX_GENERATED_AMOUNT * 10 ** NUM_DECIMAL_PLACES)
    return Decimal(units).scaleb(-NUM_DECIMAL_PLACES)


def generate_records(count: int, rng: Optional[random.Random] = None,
                     max_clients: int = U16_MAX + 1) -> Iterator[TransactionRecord]:
    """
    Yield `count` random raw records

    Args:
        count: Number of records to generate
        rng: Random source, seed it for a reproducible feed
        max_clients: Client ids are drawn from range(max_clients)
    """
    rng = rng or random.Random()
    kinds = list(TYPE_WEIGHTS)
    weights = list(TYPE_WEIGHTS.values())

    next_id = rng.randint(0, U32_MAX // 2)
    # (client_id, transaction_id) of every money movement so far
    history: List[Tuple[int, int]] = []

    for _ in range(count):
        kind = rng.choices(kinds, weights)[0]

        if kind.requires_amount or not history:
            kind = kind if kind.requires_amount else TransactionType.DEPOSIT
            client_id = rng.randrange(max_clients)
            transaction_id = next_id % (U32_MAX + 1)
            next_id += 1
            history.append((client_id, transaction_id))

            amount = None
            if rng.random() >= MISSING_AMOUNT_RATE:
                amount = random_amount(rng)
        else:
            client_id, transaction_id = rng.choice(history)
            amount = None

        yield TransactionRecord(
            transaction_type=kind,
            client_id=client_id,
            transaction_id=transaction_id,
            amount=amount
        )
