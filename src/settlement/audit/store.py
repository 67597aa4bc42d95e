"""
Audit Store - persists published audit events.

Uses SQLAlchemy with SQLite by default. An ``AuditStore`` is an ordinary
listener: subscribe it to an ``AuditEmitter`` and every committed event is
written as one row.
"""

import json
from datetime import datetime
from typing import List, Optional

import structlog
from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from settlement.audit.events import AuditEvent, TransferEvent

logger = structlog.get_logger(__name__)

Base = declarative_base()


class AuditRecord(Base):
    """Database model for audit events."""
    
    __tablename__ = "audit_events"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    batch_id = Column(String(50), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    event_type = Column(String(20), nullable=False)
    
    # Set for transfer events only
    asset = Column(String(42), nullable=True)
    destination = Column(String(42), nullable=True)
    amount = Column(String(78), nullable=True)  # UInt256 as decimal string
    
    payload_json = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class AuditStore:
    """
    SQL-backed audit log.
    
    Usage:
        ```python
        store = AuditStore("sqlite:///audit.db")
        store.connect()
        emitter.subscribe(store)
        ```
    """
    
    def __init__(self, database_url: str):
        """
        Initialize the store.
        
        Args:
            database_url: SQLAlchemy database URL
        """
        self.database_url = database_url
        self._engine = None
        self._session_factory = None
    
    def connect(self) -> None:
        """Open the database and create tables."""
        self._engine = create_engine(self.database_url, echo=False)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)
        logger.info("audit_store_connected", url=self.database_url.split("///")[0])
    
    def disconnect(self) -> None:
        """Close the database connection."""
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("audit_store_disconnected")
    
    def _get_session(self):
        if not self._session_factory:
            raise RuntimeError("Audit store not connected")
        return self._session_factory()
    
    def __call__(self, event: AuditEvent) -> None:
        self.save_event(event)
    
    def save_event(self, event: AuditEvent) -> None:
        """Persist a single event."""
        record = AuditRecord(
            batch_id=event.batch_id,
            sequence=event.sequence,
            event_type=event.event_type,
            payload_json=json.dumps(event.to_dict()),
            created_at=event.created_at,
        )
        if isinstance(event, TransferEvent):
            record.asset = event.asset
            record.destination = event.destination
            record.amount = str(event.amount)
        
        with self._get_session() as session:
            session.add(record)
            session.commit()
    
    def list_events(self, batch_id: Optional[str] = None) -> List[dict]:
        """
        Load persisted events.
        
        Args:
            batch_id: Restrict to one batch
            
        Returns:
            Event payloads ordered by insertion
        """
        query = select(AuditRecord).order_by(AuditRecord.id)
        if batch_id:
            query = query.where(AuditRecord.batch_id == batch_id)
        
        with self._get_session() as session:
            records = session.execute(query).scalars().all()
            return [json.loads(r.payload_json) for r in records]
