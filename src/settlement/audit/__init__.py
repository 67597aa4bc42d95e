"""
Audit trail for settled batches.

Per-transfer and per-batch events, the emitter that publishes them, and an
SQL store that records them.
"""

from settlement.audit.events import AuditEvent, BatchSettledEvent, TransferEvent
from settlement.audit.emitter import AuditEmitter, AuditListener, EventBuffer
from settlement.audit.store import AuditStore

__all__ = [
    "AuditEvent",
    "BatchSettledEvent",
    "TransferEvent",
    "AuditEmitter",
    "AuditListener",
    "EventBuffer",
    "AuditStore",
]
