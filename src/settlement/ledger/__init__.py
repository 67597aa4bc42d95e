"""
Ledger adapters.

The abstract asset-ledger contract the engine consumes, plus in-memory and
SQL-backed implementations.
"""

from settlement.ledger.interface import AssetLedger, Ledger, NativeCurrency
from settlement.ledger.memory import InMemoryLedger
from settlement.ledger.sql import SqlLedger

__all__ = [
    "AssetLedger",
    "Ledger",
    "NativeCurrency",
    "InMemoryLedger",
    "SqlLedger",
]
