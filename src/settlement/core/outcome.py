"""
Settlement outcome model.

Tracks one call through the settlement state machine and reports the
result back to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from settlement.core.request import BatchKind

if TYPE_CHECKING:
    from settlement.audit.events import AuditEvent


class BatchStatus(str, Enum):
    """Status of a batch within a single settlement call."""
    VALIDATING = "validating"       # Checking sequence shapes and totals
    TRANSFERRING = "transferring"   # Issuing ledger transfers in order
    REFUNDING = "refunding"         # Returning unspent native value
    COMPLETED = "completed"         # All effects committed
    ABORTED = "aborted"             # All effects discarded


@dataclass
class SettlementOutcome:
    """
    Result of settling one batch.
    
    Attributes:
        batch_id: Identifier of the settled request
        kind: Shape of the batch
        caller: Address that submitted the batch
        status: Current state of the call
        transfer_count: Number of transfers applied so far
        native_total: Native currency paid out to recipients
        refund: Supplied value returned to the caller
        events: Audit events emitted for the batch, in execution order
        error_message: Reason the batch aborted, if it did
    """
    
    batch_id: str
    kind: BatchKind
    caller: str
    status: BatchStatus = BatchStatus.VALIDATING
    transfer_count: int = 0
    native_total: int = 0
    refund: int = 0
    events: List["AuditEvent"] = field(default_factory=list)
    error_message: Optional[str] = None
    
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    
    @property
    def success(self) -> bool:
        """Check if the batch settled."""
        return self.status == BatchStatus.COMPLETED
    
    def mark_transferring(self) -> None:
        self.status = BatchStatus.TRANSFERRING
    
    def mark_refunding(self) -> None:
        self.status = BatchStatus.REFUNDING
    
    def mark_completed(self, events: List["AuditEvent"]) -> None:
        """Mark the batch as settled with the events it produced."""
        self.status = BatchStatus.COMPLETED
        self.events = list(events)
        self.finished_at = datetime.utcnow()
    
    def mark_aborted(self, error: str) -> None:
        """Mark the batch as aborted; nothing it did remains applied."""
        self.status = BatchStatus.ABORTED
        self.error_message = error
        self.transfer_count = 0
        self.native_total = 0
        self.refund = 0
        self.events = []
        self.finished_at = datetime.utcnow()
    
    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "batch_id": self.batch_id,
            "kind": self.kind.value,
            "caller": self.caller,
            "success": self.success,
            "status": self.status.value,
            "transfer_count": self.transfer_count,
            # UInt256 values do not survive JSON number precision
            "native_total": str(self.native_total),
            "refund": str(self.refund),
            "events": [e.to_dict() for e in self.events],
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
    
    def __repr__(self) -> str:
        return (
            f"SettlementOutcome(id={self.batch_id[:8]}..., "
            f"status={self.status.value}, refund={self.refund})"
        )
