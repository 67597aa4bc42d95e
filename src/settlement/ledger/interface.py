"""
Abstract interface for the external asset ledger.

Defines the contract the settlement engine depends on. The ledger owns all
durable state (balances and delegated allowances); the engine only drives
transfers and relies on ``Ledger.atomic`` for all-or-nothing execution.
"""

from abc import ABC, abstractmethod
from typing import ContextManager

from settlement.core.types import Address


class AssetLedger(ABC):
    """
    One fungible token contract.
    
    Transfers report failure synchronously by returning False; an adapter
    may instead raise ``LedgerError`` when the call cannot be made at all.
    """
    
    @property
    @abstractmethod
    def address(self) -> Address:
        """Address of the token contract."""
        pass
    
    @abstractmethod
    def balance_of(self, owner: Address) -> int:
        """
        Get the token balance of an account.
        
        Args:
            owner: Account to query
            
        Returns:
            Balance in base units
        """
        pass
    
    @abstractmethod
    def allowance(self, owner: Address, spender: Address) -> int:
        """
        Get the amount ``spender`` may still move on behalf of ``owner``.
        """
        pass
    
    @abstractmethod
    def transfer(self, sender: Address, to: Address, amount: int) -> bool:
        """
        Move tokens from ``sender``'s own balance.
        
        Args:
            sender: Account whose balance is debited
            to: Recipient
            amount: Amount to move, zero allowed
            
        Returns:
            True if the transfer was applied
        """
        pass
    
    @abstractmethod
    def transfer_from(
        self,
        spender: Address,
        owner: Address,
        to: Address,
        amount: int,
    ) -> bool:
        """
        Move tokens out of ``owner``'s balance using a delegated allowance.
        
        Args:
            spender: Account holding the allowance (the engine)
            owner: Account whose balance is debited
            to: Recipient
            amount: Amount to move, zero allowed
            
        Returns:
            True if the transfer was applied and the allowance consumed
        """
        pass


class NativeCurrency(ABC):
    """The ledger's native currency."""
    
    @abstractmethod
    def balance_of(self, owner: Address) -> int:
        pass
    
    @abstractmethod
    def send(self, sender: Address, to: Address, amount: int) -> bool:
        """
        Move native currency between accounts.
        
        Returns:
            True if the transfer was applied
        """
        pass


class Ledger(ABC):
    """
    Gateway to every asset the engine can settle.
    
    ``atomic()`` is the all-or-nothing scope a batch runs in: leaving it
    with an exception must discard every mutation made inside it, so a
    partially settled batch is never observable.
    """
    
    @abstractmethod
    def token(self, address: Address) -> AssetLedger:
        """
        Get the token contract at an address.
        
        Raises:
            LedgerError: If no token contract exists at the address
        """
        pass
    
    @property
    @abstractmethod
    def native(self) -> NativeCurrency:
        """The native currency of the ledger."""
        pass
    
    @abstractmethod
    def atomic(self) -> ContextManager[None]:
        """
        Open an all-or-nothing scope.
        
        Nested scopes join the outermost one.
        """
        pass
