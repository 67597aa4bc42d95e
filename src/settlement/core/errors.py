"""
Settlement error taxonomy.

Every failure carries a machine-checkable reason so callers can tell an
input-shape problem from a funding or recipient problem without parsing
the message.
"""

from enum import Enum
from typing import Optional


class FailureReason(str, Enum):
    """Machine-checkable reason for an aborted batch."""
    LENGTH_MISMATCH = "length_mismatch"
    INSUFFICIENT_ALLOWANCE = "insufficient_allowance"
    INSUFFICIENT_SUPPLIED_VALUE = "insufficient_supplied_value"
    ZERO_ADDRESS_RECIPIENT = "zero_address_recipient"
    TRANSFER_FAILED = "transfer_failed"
    INVALID_AMOUNT = "invalid_amount"
    AMOUNT_OVERFLOW = "amount_overflow"
    INVALID_ADDRESS = "invalid_address"
    UNKNOWN_REQUEST = "unknown_request"
    INVALID_REQUEST = "invalid_request"


class SettlementError(Exception):
    """Base class for errors that abort a settlement call."""
    
    reason: FailureReason = FailureReason.TRANSFER_FAILED
    default_message = "Settlement failed"
    
    def __init__(self, message: Optional[str] = None, index: Optional[int] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        # Position of the offending transfer within its leg, when known
        self.index = index
    
    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "reason": self.reason.value,
            "message": self.message,
            "index": self.index,
        }


class LengthMismatch(SettlementError):
    """Parallel sequences differ in length, or a required leg is empty."""
    reason = FailureReason.LENGTH_MISMATCH
    default_message = "The input arrays must have the same length"


class InsufficientAllowance(SettlementError):
    """Delegated allowance does not cover the batch total."""
    reason = FailureReason.INSUFFICIENT_ALLOWANCE
    default_message = "Error: insufficient allowance provided to the contract"


class InsufficientSuppliedValue(SettlementError):
    """Supplied native value does not cover the native leg total."""
    reason = FailureReason.INSUFFICIENT_SUPPLIED_VALUE
    default_message = "Insufficient balance passed"


class ZeroAddressRecipient(SettlementError):
    """A native-currency transfer targets the zero address."""
    reason = FailureReason.ZERO_ADDRESS_RECIPIENT
    default_message = "Recipient address is zero"


class TransferFailed(SettlementError):
    """The ledger rejected an individual transfer."""
    reason = FailureReason.TRANSFER_FAILED
    default_message = "BatchTransfer Token failed"


class InvalidAmount(SettlementError):
    reason = FailureReason.INVALID_AMOUNT
    default_message = "Invalid amount"


class AmountOverflow(SettlementError):
    reason = FailureReason.AMOUNT_OVERFLOW
    default_message = "Amount total overflows UInt256"


class InvalidAddress(SettlementError):
    reason = FailureReason.INVALID_ADDRESS
    default_message = "Invalid address"


class UnknownRequest(SettlementError):
    """A serialized request names a batch kind the engine does not know."""
    reason = FailureReason.UNKNOWN_REQUEST
    default_message = "Unknown batch request kind"


class InvalidRequest(SettlementError):
    """A serialized request is not a mapping or lacks a required field."""
    reason = FailureReason.INVALID_REQUEST
    default_message = "Malformed batch request"


class LedgerError(Exception):
    """Raised by ledger adapters for infrastructure failures."""
    
    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code
