"""
Transaction Ledger Engine

Replays a stream of client transactions (deposits, withdrawals, disputes,
resolves, chargebacks) into per-client balances using exact fixed-scale
Decimal arithmetic.
"""

__version__ = "1.0.0"
