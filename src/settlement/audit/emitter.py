"""
Audit Emitter - publishes settlement events to observers.

Events for a batch are staged in an ``EventBuffer`` while the batch runs
and published only once the ledger has committed it, so observers never
see transfers from an aborted batch.
"""

from typing import Callable, List

import structlog

from settlement.audit.events import AuditEvent, BatchSettledEvent, TransferEvent

logger = structlog.get_logger(__name__)

AuditListener = Callable[[AuditEvent], None]


class EventBuffer:
    """Ordered events of one in-flight batch."""
    
    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        self.events: List[AuditEvent] = []
    
    def _next_sequence(self) -> int:
        return len(self.events)
    
    def transfer(self, asset: str, destination: str, amount: int) -> TransferEvent:
        """Stage the event for an applied transfer."""
        event = TransferEvent(
            batch_id=self.batch_id,
            sequence=self._next_sequence(),
            asset=asset,
            destination=destination,
            amount=amount,
        )
        self.events.append(event)
        return event
    
    def settled(
        self,
        kind: str,
        caller: str,
        transfer_count: int,
        native_total: int,
        refund: int,
    ) -> BatchSettledEvent:
        """Stage the batch summary event."""
        event = BatchSettledEvent(
            batch_id=self.batch_id,
            sequence=self._next_sequence(),
            kind=kind,
            caller=caller,
            transfer_count=transfer_count,
            native_total=native_total,
            refund=refund,
        )
        self.events.append(event)
        return event
    
    def clear(self) -> None:
        self.events.clear()


class AuditEmitter:
    """
    Fan-out of audit events to registered listeners.
    
    Publishing cannot fail: a listener that raises is logged and skipped,
    and the remaining listeners still receive the event.
    """
    
    def __init__(self):
        self._listeners: List[AuditListener] = []
    
    def subscribe(self, listener: AuditListener) -> None:
        """Register a listener for published events."""
        if listener not in self._listeners:
            self._listeners.append(listener)
    
    def unsubscribe(self, listener: AuditListener) -> bool:
        """
        Remove a listener.
        
        Returns:
            True if the listener was registered
        """
        if listener in self._listeners:
            self._listeners.remove(listener)
            return True
        return False
    
    def buffer(self, batch_id: str) -> EventBuffer:
        """Create the staging buffer for a new batch."""
        return EventBuffer(batch_id)
    
    def publish(self, events: List[AuditEvent]) -> None:
        """
        Deliver committed events to every listener in order.
        
        Args:
            events: Events of a committed batch, in execution order
        """
        for event in events:
            logger.info("audit_event", **event.to_dict())
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    logger.exception(
                        "audit_listener_failed",
                        batch_id=event.batch_id,
                        sequence=event.sequence,
                    )
