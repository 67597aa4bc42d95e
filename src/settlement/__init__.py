"""
Batch Settlement

Settles a batch of token and native-currency transfers against a shared
ledger as one atomic operation: every transfer applies, or none does.
"""

__version__ = "0.1.0"

from settlement.core.request import (
    CombinedBatch,
    MultiTokenBatch,
    NativeCurrencyBatch,
    SingleTokenBatch,
)
from settlement.core.outcome import BatchStatus, SettlementOutcome
from settlement.core.errors import FailureReason, SettlementError
from settlement.engine.settlement import SettlementEngine

__all__ = [
    "CombinedBatch",
    "MultiTokenBatch",
    "NativeCurrencyBatch",
    "SingleTokenBatch",
    "BatchStatus",
    "SettlementOutcome",
    "FailureReason",
    "SettlementError",
    "SettlementEngine",
]
