"""
Core settlement models.

Requests, outcomes, primitive ledger types and the error taxonomy shared
by the engine and the ledger adapters.
"""

from settlement.core.errors import (
    AmountOverflow,
    FailureReason,
    InsufficientAllowance,
    InsufficientSuppliedValue,
    InvalidAddress,
    InvalidAmount,
    InvalidRequest,
    LedgerError,
    LengthMismatch,
    SettlementError,
    TransferFailed,
    UnknownRequest,
    ZeroAddressRecipient,
)
from settlement.core.types import MAX_UINT256, NATIVE_ASSET, ZERO_ADDRESS
from settlement.core.request import (
    BatchKind,
    BatchRequest,
    CombinedBatch,
    MultiTokenBatch,
    NativeCurrencyBatch,
    SingleTokenBatch,
    request_from_dict,
)
from settlement.core.outcome import BatchStatus, SettlementOutcome

__all__ = [
    "AmountOverflow",
    "FailureReason",
    "InsufficientAllowance",
    "InsufficientSuppliedValue",
    "InvalidAddress",
    "InvalidAmount",
    "InvalidRequest",
    "LedgerError",
    "LengthMismatch",
    "SettlementError",
    "TransferFailed",
    "UnknownRequest",
    "ZeroAddressRecipient",
    "MAX_UINT256",
    "NATIVE_ASSET",
    "ZERO_ADDRESS",
    "BatchKind",
    "BatchRequest",
    "CombinedBatch",
    "MultiTokenBatch",
    "NativeCurrencyBatch",
    "SingleTokenBatch",
    "request_from_dict",
    "BatchStatus",
    "SettlementOutcome",
]
