"""
Primitive ledger types.

Addresses and UInt256 amounts as they travel through a settlement batch.
"""

import re
from typing import Iterable, Union

from settlement.core.errors import AmountOverflow, InvalidAddress, InvalidAmount

Address = str

ZERO_ADDRESS: Address = "0x" + "0" * 40

# Asset identifier used in audit events for native-currency transfers
NATIVE_ASSET = "native"

MAX_UINT256 = 2**256 - 1

_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")


def normalize_address(value: str) -> Address:
    """
    Normalize an address to its lower-case hex form.
    
    Args:
        value: Address string, ``0x`` followed by 40 hex digits
        
    Returns:
        Lower-cased address
        
    Raises:
        InvalidAddress: If the value is not a well-formed address
    """
    if not isinstance(value, str) or not _ADDRESS_RE.fullmatch(value):
        raise InvalidAddress(f"Invalid address: {value!r}")
    return value.lower()


def is_zero_address(address: Address) -> bool:
    """Check whether an address is the zero address."""
    return address.lower() == ZERO_ADDRESS


def to_uint256(value: Union[int, str]) -> int:
    """
    Coerce an amount to a UInt256 integer.
    
    Accepts ints and decimal or ``0x``-prefixed hex strings, which is how
    amounts usually arrive from JSON payloads.
    
    Raises:
        InvalidAmount: If the value is not an integer in [0, 2**256 - 1]
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    if isinstance(value, str):
        text = value.strip()
        try:
            amount = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
        except ValueError:
            raise InvalidAmount(f"Invalid amount: {value!r}") from None
    elif isinstance(value, int):
        amount = value
    else:
        raise InvalidAmount(f"Invalid amount: {value!r}")
    
    if amount < 0 or amount > MAX_UINT256:
        raise InvalidAmount(f"Amount out of UInt256 range: {value!r}")
    return amount


def checked_sum(amounts: Iterable[int]) -> int:
    """Sum amounts, failing if the total leaves the UInt256 range."""
    total = 0
    for amount in amounts:
        total += amount
        if total > MAX_UINT256:
            raise AmountOverflow("Amount total overflows UInt256")
    return total
