"""
In-memory ledger.

A complete ``Ledger`` held in dictionaries. Atomic scopes snapshot the
whole state on entry and restore it if the scope exits with an error.
"""

import copy
from contextlib import contextmanager
from typing import Dict, Iterator, Set, Tuple

import structlog

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


class InMemoryToken(AssetLedger):
    """Fungible token view onto an ``InMemoryLedger``."""
    
    def __init__(self, ledger: "InMemoryLedger", address: Address):
        self._ledger = ledger
        self._address = address
    
    @property
    def address(self) -> Address:
        return self._address
    
    def balance_of(self, owner: Address) -> int:
        return self._ledger._balance(self._address, owner)
    
    def allowance(self, owner: Address, spender: Address) -> int:
        return self._ledger._allowances[self._address].get((owner, spender), 0)
    
    def transfer(self, sender: Address, to: Address, amount: int) -> bool:
        return self._ledger._move(self._address, sender, to, amount)
    
    def transfer_from(
        self,
        spender: Address,
        owner: Address,
        to: Address,
        amount: int,
    ) -> bool:
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            return False
        if not self._ledger._move(self._address, owner, to, amount):
            return False
        # Unlimited approvals are never consumed
        if allowed != MAX_UINT256:
            self._ledger._allowances[self._address][(owner, spender)] = allowed - amount
        return True


class InMemoryNativeCurrency(NativeCurrency):
    
    def __init__(self, ledger: "InMemoryLedger"):
        self._ledger = ledger
    
    def balance_of(self, owner: Address) -> int:
        return self._ledger._balance(NATIVE_ASSET, owner)
    
    def send(self, sender: Address, to: Address, amount: int) -> bool:
        return self._ledger._move(NATIVE_ASSET, sender, to, amount, allow_zero_address=True)


class InMemoryLedger(Ledger):
    """
    Dictionary-backed ledger for tests, simulations and local tooling.
    
    Usage:
        ```python
        ledger = InMemoryLedger()
        ledger.register_token(token)
        ledger.mint(token, alice, 1_000)
        ledger.approve(token, alice, engine_address, 1_000)
        ledger.credit_native(alice, 10**18)
        ```
    """
    
    def __init__(self):
        self._tokens: Set[Address] = set()
        self._balances: Dict[str, Dict[Address, int]] = {NATIVE_ASSET: {}}
        self._allowances: Dict[str, Dict[Tuple[Address, Address], int]] = {}
        self._native = InMemoryNativeCurrency(self)
        self._depth = 0
    
    # Ledger interface
    
    def token(self, address: Address) -> AssetLedger:
        address = address.lower()
        if address not in self._tokens:
            raise LedgerError(f"No token contract at {address}", error_code="unknown_token")
        return InMemoryToken(self, address)
    
    @property
    def native(self) -> NativeCurrency:
        return self._native
    
    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return
        
        snapshot = copy.deepcopy((self._tokens, self._balances, self._allowances))
        self._depth = 1
        try:
            yield
        except BaseException:
            self._tokens, self._balances, self._allowances = snapshot
            logger.debug("ledger_rolled_back")
            raise
        finally:
            self._depth = 0
    
    # Administration
    
    def register_token(self, address: Address) -> AssetLedger:
        """Deploy an empty token contract at an address."""
        address = normalize_address(address)
        if address not in self._tokens:
            self._tokens.add(address)
            self._balances[address] = {}
            self._allowances[address] = {}
        return InMemoryToken(self, address)
    
    def mint(self, token: Address, owner: Address, amount) -> None:
        """Credit newly created tokens to an account."""
        token = self.token(normalize_address(token)).address
        self._credit(token, normalize_address(owner), to_uint256(amount))
    
    def approve(self, token: Address, owner: Address, spender: Address, amount) -> None:
        """Set the allowance ``owner`` grants ``spender`` on a token."""
        token = self.token(normalize_address(token)).address
        key = (normalize_address(owner), normalize_address(spender))
        self._allowances[token][key] = to_uint256(amount)
    
    def credit_native(self, owner: Address, amount) -> None:
        """Credit native currency to an account."""
        self._credit(NATIVE_ASSET, normalize_address(owner), to_uint256(amount))
    
    # Internals
    
    def _balance(self, asset: str, owner: Address) -> int:
        return self._balances[asset].get(owner, 0)
    
    def _credit(self, asset: str, owner: Address, amount: int) -> None:
        balance = self._balance(asset, owner) + amount
        if balance > MAX_UINT256:
            raise LedgerError(f"Balance overflow for {owner}", error_code="overflow")
        self._balances[asset][owner] = balance
    
    def _move(
        self,
        asset: str,
        sender: Address,
        to: Address,
        amount: int,
        allow_zero_address: bool = False,
    ) -> bool:
        if is_zero_address(to) and not allow_zero_address:
            return False
        available = self._balance(asset, sender)
        if available < amount:
            return False
        if to != sender and self._balance(asset, to) + amount > MAX_UINT256:
            return False
        self._balances[asset][sender] = available - amount
        self._balances[asset][to] = self._balance(asset, to) + amount
        return True
