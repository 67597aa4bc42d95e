"""
SQL ledger.

A ``Ledger`` persisted with SQLAlchemy (SQLite by default). An atomic scope
is one database transaction: every read and write of a batch runs in the
same session, committed when the batch settles and rolled back otherwise.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from sqlalchemy import Column, String, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from settlement.core.errors import LedgerError
from settlement.core.types import (
    MAX_UINT256,
    NATIVE_ASSET,
    Address,
    is_zero_address,
    normalize_address,
    to_uint256,
)
from settlement.ledger.interface import AssetLedger, Ledger, NativeCurrency

logger = structlog.get_logger(__name__)

Base = declarative_base()


class TokenRecord(Base):
    """Database model for registered token contracts."""
    
    __tablename__ = "tokens"
    
    address = Column(String(42), primary_key=True)


class BalanceRecord(Base):
    """Database model for balances, native currency included."""
    
    __tablename__ = "balances"
    
    asset = Column(String(42), primary_key=True)
    owner = Column(String(42), primary_key=True)
    amount = Column(String(78), nullable=False, default="0")  # UInt256 as decimal string


class AllowanceRecord(Base):
    """Database model for delegated allowances."""
    
    __tablename__ = "allowances"
    
    asset = Column(String(42), primary_key=True)
    owner = Column(String(42), primary_key=True)
    spender = Column(String(42), primary_key=True)
    amount = Column(String(78), nullable=False, default="0")


class SqlToken(AssetLedger):
    """Fungible token stored in an ``SqlLedger``."""
    
    def __init__(self, ledger: "SqlLedger", address: Address):
        self._ledger = ledger
        self._address = address
    
    @property
    def address(self) -> Address:
        return self._address
    
    def balance_of(self, owner: Address) -> int:
        with self._ledger._scope() as session:
            return self._ledger._get_balance(session, self._address, owner)
    
    def allowance(self, owner: Address, spender: Address) -> int:
        with self._ledger._scope() as session:
            return self._ledger._get_allowance(session, self._address, owner, spender)
    
    def transfer(self, sender: Address, to: Address, amount: int) -> bool:
        with self._ledger._scope() as session:
            return self._ledger._move(session, self._address, sender, to, amount)
    
    def transfer_from(
        self,
        spender: Address,
        owner: Address,
        to: Address,
        amount: int,
    ) -> bool:
        with self._ledger._scope() as session:
            allowed = self._ledger._get_allowance(session, self._address, owner, spender)
            if allowed < amount:
                return False
            if not self._ledger._move(session, self._address, owner, to, amount):
                return False
            if allowed != MAX_UINT256:
                self._ledger._set_allowance(
                    session, self._address, owner, spender, allowed - amount
                )
            return True


class SqlNativeCurrency(NativeCurrency):
    
    def __init__(self, ledger: "SqlLedger"):
        self._ledger = ledger
    
    def balance_of(self, owner: Address) -> int:
        with self._ledger._scope() as session:
            return self._ledger._get_balance(session, NATIVE_ASSET, owner)
    
    def send(self, sender: Address, to: Address, amount: int) -> bool:
        with self._ledger._scope() as session:
            return self._ledger._move(
                session, NATIVE_ASSET, sender, to, amount, allow_zero_address=True
            )


class SqlLedger(Ledger):
    """
    Durable ledger backed by a relational database.
    
    Outside an atomic scope each call runs in its own short transaction.
    
    Usage:
        ```python
        ledger = SqlLedger("sqlite:///settlement.db")
        ledger.connect()
        
        with ledger.atomic():
            ledger.token(token).transfer_from(engine, alice, bob, 10)
        ```
    """
    
    def __init__(self, database_url: str):
        """
        Initialize the ledger.
        
        Args:
            database_url: SQLAlchemy database URL
        """
        self.database_url = database_url
        self._engine = None
        self._session_factory = None
        self._session: Optional[Session] = None
        self._native = SqlNativeCurrency(self)
    
    def connect(self) -> None:
        """Open the database and create tables."""
        self._engine = create_engine(self.database_url, echo=False)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)
        logger.info("ledger_connected", url=self.database_url.split("///")[0])
    
    def disconnect(self) -> None:
        """Close the database connection."""
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("ledger_disconnected")
    
    def _new_session(self) -> Session:
        if not self._session_factory:
            raise LedgerError("Ledger not connected", error_code="not_connected")
        return self._session_factory()
    
    @contextmanager
    def _scope(self) -> Iterator[Session]:
        """Yield the session of the open atomic scope, or a fresh transaction."""
        if self._session is not None:
            yield self._session
            return
        with self._new_session() as session:
            with session.begin():
                yield session
    
    # Ledger interface
    
    def token(self, address: Address) -> AssetLedger:
        address = address.lower()
        with self._scope() as session:
            if session.get(TokenRecord, address) is None:
                raise LedgerError(f"No token contract at {address}", error_code="unknown_token")
        return SqlToken(self, address)
    
    @property
    def native(self) -> NativeCurrency:
        return self._native
    
    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._session is not None:
            yield
            return
        
        session = self._new_session()
        session.begin()
        self._session = session
        try:
            yield
            session.commit()
        except BaseException:
            session.rollback()
            logger.debug("ledger_rolled_back")
            raise
        finally:
            self._session = None
            session.close()
    
    # Administration
    
    def register_token(self, address: Address) -> AssetLedger:
        """Register a token contract at an address."""
        address = normalize_address(address)
        with self._scope() as session:
            if session.get(TokenRecord, address) is None:
                session.add(TokenRecord(address=address))
                session.flush()
        return SqlToken(self, address)
    
    def mint(self, token: Address, owner: Address, amount) -> None:
        """Credit newly created tokens to an account."""
        token = self.token(normalize_address(token)).address
        self._credit(token, normalize_address(owner), to_uint256(amount))
    
    def approve(self, token: Address, owner: Address, spender: Address, amount) -> None:
        """Set the allowance ``owner`` grants ``spender`` on a token."""
        token = self.token(normalize_address(token)).address
        with self._scope() as session:
            self._set_allowance(
                session,
                token,
                normalize_address(owner),
                normalize_address(spender),
                to_uint256(amount),
            )
    
    def credit_native(self, owner: Address, amount) -> None:
        """Credit native currency to an account."""
        self._credit(NATIVE_ASSET, normalize_address(owner), to_uint256(amount))
    
    # Internals
    
    def _credit(self, asset: str, owner: Address, amount: int) -> None:
        with self._scope() as session:
            balance = self._get_balance(session, asset, owner) + amount
            if balance > MAX_UINT256:
                raise LedgerError(f"Balance overflow for {owner}", error_code="overflow")
            self._set_balance(session, asset, owner, balance)
    
    def _get_balance(self, session: Session, asset: str, owner: Address) -> int:
        record = session.get(BalanceRecord, (asset, owner))
        return int(record.amount) if record else 0
    
    def _set_balance(self, session: Session, asset: str, owner: Address, amount: int) -> None:
        record = session.get(BalanceRecord, (asset, owner))
        if record:
            record.amount = str(amount)
        else:
            session.add(BalanceRecord(asset=asset, owner=owner, amount=str(amount)))
        session.flush()
    
    def _get_allowance(
        self,
        session: Session,
        asset: str,
        owner: Address,
        spender: Address,
    ) -> int:
        record = session.get(AllowanceRecord, (asset, owner, spender))
        return int(record.amount) if record else 0
    
    def _set_allowance(
        self,
        session: Session,
        asset: str,
        owner: Address,
        spender: Address,
        amount: int,
    ) -> None:
        record = session.get(AllowanceRecord, (asset, owner, spender))
        if record:
            record.amount = str(amount)
        else:
            session.add(
                AllowanceRecord(asset=asset, owner=owner, spender=spender, amount=str(amount))
            )
        session.flush()
    
    def _move(
        self,
        session: Session,
        asset: str,
        sender: Address,
        to: Address,
        amount: int,
        allow_zero_address: bool = False,
    ) -> bool:
        if is_zero_address(to) and not allow_zero_address:
            return False
        available = self._get_balance(session, asset, sender)
        if available < amount:
            return False
        if to != sender and self._get_balance(session, asset, to) + amount > MAX_UINT256:
            return False
        self._set_balance(session, asset, sender, available - amount)
        self._set_balance(session, asset, to, self._get_balance(session, asset, to) + amount)
        return True
