"""
Batch Request models.

A batch request is one caller's ordered set of transfers, submitted and
settled as a single atomic unit. Requests are transient: the call that
builds one owns it, and it is discarded once the engine returns.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Union

from settlement.core.errors import InvalidRequest, UnknownRequest
from settlement.core.types import Address, normalize_address, to_uint256


class BatchKind(str, Enum):
    """The five batch shapes the engine settles."""
    SINGLE_TOKEN = "single_token"                   # one token, delegated allowance
    SINGLE_TOKEN_CHECKED = "single_token_checked"   # one token, allowance pre-checked
    MULTI_TOKEN = "multi_token"                     # token per transfer
    NATIVE = "native"                               # native currency with supplied value
    COMBINED = "combined"                           # token leg + native leg


def _addresses(values) -> List[Address]:
    return [normalize_address(v) for v in values]


def _amounts(values) -> List[int]:
    return [to_uint256(v) for v in values]


def _new_batch_id() -> str:
    return str(uuid.uuid4())


@dataclass
class SingleTokenBatch:
    """
    Transfers of one token from the caller to many recipients.
    
    Settled through the caller's delegated allowance to the engine. The
    ``checked`` flag selects the variant that verifies the allowance covers
    the whole batch before any transfer is issued.
    
    Attributes:
        caller: Address whose tokens are moved
        token: Token contract address
        recipients: Destination for each transfer
        amounts: Amount for each transfer, positionally matched to recipients
        checked: Pre-check the allowance against the batch total
        batch_id: Identifier used in logs and audit events
    """
    
    caller: Address
    token: Address
    recipients: List[Address]
    amounts: List[int]
    checked: bool = False
    batch_id: str = field(default_factory=_new_batch_id)
    
    def __post_init__(self):
        """Normalize addresses and amounts."""
        self.caller = normalize_address(self.caller)
        self.token = normalize_address(self.token)
        self.recipients = _addresses(self.recipients)
        self.amounts = _amounts(self.amounts)
    
    @property
    def kind(self) -> BatchKind:
        return BatchKind.SINGLE_TOKEN_CHECKED if self.checked else BatchKind.SINGLE_TOKEN


@dataclass
class MultiTokenBatch:
    """
    Transfers where element i of each sequence belongs to transfer i.
    
    Tokens need not be distinct across indices.
    """
    
    caller: Address
    tokens: List[Address]
    recipients: List[Address]
    amounts: List[int]
    batch_id: str = field(default_factory=_new_batch_id)
    
    def __post_init__(self):
        self.caller = normalize_address(self.caller)
        self.tokens = _addresses(self.tokens)
        self.recipients = _addresses(self.recipients)
        self.amounts = _amounts(self.amounts)
    
    @property
    def kind(self) -> BatchKind:
        return BatchKind.MULTI_TOKEN


@dataclass
class NativeCurrencyBatch:
    """
    Native-currency payouts funded by value supplied with the call.
    
    Whatever part of ``value_supplied`` the payouts do not consume is
    refunded to the caller.
    """
    
    caller: Address
    recipients: List[Address]
    amounts: List[int]
    value_supplied: int = 0
    batch_id: str = field(default_factory=_new_batch_id)
    
    def __post_init__(self):
        self.caller = normalize_address(self.caller)
        self.recipients = _addresses(self.recipients)
        self.amounts = _amounts(self.amounts)
        self.value_supplied = to_uint256(self.value_supplied)
    
    @property
    def kind(self) -> BatchKind:
        return BatchKind.NATIVE


@dataclass
class CombinedBatch:
    """
    A token leg and a native-currency leg settled in one atomic unit.
    
    Either leg may be left empty to signal that the batch has no transfers
    of that kind.
    """
    
    caller: Address
    tokens: List[Address] = field(default_factory=list)
    token_recipients: List[Address] = field(default_factory=list)
    token_amounts: List[int] = field(default_factory=list)
    native_recipients: List[Address] = field(default_factory=list)
    native_amounts: List[int] = field(default_factory=list)
    value_supplied: int = 0
    batch_id: str = field(default_factory=_new_batch_id)
    
    def __post_init__(self):
        self.caller = normalize_address(self.caller)
        self.tokens = _addresses(self.tokens)
        self.token_recipients = _addresses(self.token_recipients)
        self.token_amounts = _amounts(self.token_amounts)
        self.native_recipients = _addresses(self.native_recipients)
        self.native_amounts = _amounts(self.native_amounts)
        self.value_supplied = to_uint256(self.value_supplied)
    
    @property
    def kind(self) -> BatchKind:
        return BatchKind.COMBINED


BatchRequest = Union[SingleTokenBatch, MultiTokenBatch, NativeCurrencyBatch, CombinedBatch]


def _required(data: Dict[str, Any], key: str) -> Any:
    if data.get(key) is None:
        raise InvalidRequest(f"Batch request is missing {key!r}")
    return data[key]


def _sequence(data: Dict[str, Any], key: str) -> list:
    value = data.get(key, [])
    if not isinstance(value, list):
        raise InvalidRequest(f"Batch request field {key!r} must be a list")
    return list(value)


def request_from_dict(data: Dict[str, Any]) -> BatchRequest:
    """
    Build a batch request from its JSON form.
    
    Args:
        data: Mapping with a ``kind`` key naming the batch shape, a
            ``caller`` and the fields of that shape
            
    Returns:
        The matching request variant
        
    Raises:
        InvalidRequest: If ``data`` is not a mapping or lacks a required field
        UnknownRequest: If ``kind`` is missing or not a known shape
    """
    if not isinstance(data, dict):
        raise InvalidRequest(f"Batch request must be an object, got {type(data).__name__}")
    
    try:
        kind = BatchKind(data.get("kind"))
    except ValueError:
        raise UnknownRequest(f"Unknown batch request kind: {data.get('kind')!r}") from None
    
    extra = {"batch_id": data["batch_id"]} if data.get("batch_id") else {}
    caller = _required(data, "caller")
    
    if kind in (BatchKind.SINGLE_TOKEN, BatchKind.SINGLE_TOKEN_CHECKED):
        return SingleTokenBatch(
            caller=caller,
            token=_required(data, "token"),
            recipients=_sequence(data, "recipients"),
            amounts=_sequence(data, "amounts"),
            checked=kind == BatchKind.SINGLE_TOKEN_CHECKED,
            **extra,
        )
    if kind == BatchKind.MULTI_TOKEN:
        return MultiTokenBatch(
            caller=caller,
            tokens=_sequence(data, "tokens"),
            recipients=_sequence(data, "recipients"),
            amounts=_sequence(data, "amounts"),
            **extra,
        )
    if kind == BatchKind.NATIVE:
        return NativeCurrencyBatch(
            caller=caller,
            recipients=_sequence(data, "recipients"),
            amounts=_sequence(data, "amounts"),
            value_supplied=data.get("value_supplied", 0),
            **extra,
        )
    return CombinedBatch(
        caller=caller,
        tokens=_sequence(data, "tokens"),
        token_recipients=_sequence(data, "token_recipients"),
        token_amounts=_sequence(data, "token_amounts"),
        native_recipients=_sequence(data, "native_recipients"),
        native_amounts=_sequence(data, "native_amounts"),
        value_supplied=data.get("value_supplied", 0),
        **extra,
    )
