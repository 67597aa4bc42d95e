"""
Audit event types.

One ``TransferEvent`` per applied transfer and one ``BatchSettledEvent``
per batch, numbered in execution order.
"""

from dataclasses import dataclass, field
from datetime import datetime

from settlement.core.types import NATIVE_ASSET


@dataclass
class AuditEvent:
    """Base class for events emitted by a settled batch."""
    
    batch_id: str
    sequence: int
    created_at: datetime = field(default_factory=datetime.utcnow, compare=False)
    
    event_type = "audit"
    
    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type,
            "batch_id": self.batch_id,
            "sequence": self.sequence,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class TransferEvent(AuditEvent):
    """
    A single transfer applied by a batch.
    
    Attributes:
        asset: Token contract address, or ``NATIVE_ASSET`` for native currency
        destination: Recipient of the transfer
        amount: Amount moved (may be zero)
    """
    
    asset: str = NATIVE_ASSET
    destination: str = ""
    amount: int = 0
    
    event_type = "transfer"
    
    @property
    def is_native(self) -> bool:
        return self.asset == NATIVE_ASSET
    
    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            "asset": self.asset,
            "destination": self.destination,
            "amount": str(self.amount),
        })
        return data


@dataclass
class BatchSettledEvent(AuditEvent):
    """Summary of a batch, emitted after its last transfer."""
    
    kind: str = ""
    caller: str = ""
    transfer_count: int = 0
    native_total: int = 0
    refund: int = 0
    
    event_type = "batch_settled"
    
    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            "kind": self.kind,
            "caller": self.caller,
            "transfer_count": self.transfer_count,
            "native_total": str(self.native_total),
            "refund": str(self.refund),
        })
        return data
