"""
Batch validation.

Shape checks run before any ledger call. They look only at the request,
never at ledger state.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from settlement.core.errors import LengthMismatch
from settlement.core.request import (
    BatchRequest,
    CombinedBatch,
    MultiTokenBatch,
    NativeCurrencyBatch,
    SingleTokenBatch,
)

# Native batches report a length mismatch in the singular
NATIVE_LENGTH_MESSAGE = "The input array must have the same length"


def require_same_length(*sequences: Sequence, message: Optional[str] = None) -> int:
    """
    Check that parallel sequences describe one transfer set.
    
    Args:
        sequences: Sequences whose element i belongs to transfer i
        message: Overrides the default mismatch message
        
    Returns:
        The common length
        
    Raises:
        LengthMismatch: If lengths differ or the common length is zero
    """
    lengths = {len(s) for s in sequences}
    if len(lengths) != 1 or 0 in lengths:
        raise LengthMismatch(message)
    return lengths.pop()


def optional_leg(*sequences: Sequence) -> bool:
    """
    Check one leg of a combined batch.
    
    A leg whose sequences are all empty is absent, which is allowed.
    
    Returns:
        True if the leg is present and well formed, False if absent
        
    Raises:
        LengthMismatch: If some sequences are empty and others are not, or
            the populated sequences differ in length
    """
    if all(len(s) == 0 for s in sequences):
        return False
    require_same_length(*sequences)
    return True


@dataclass(frozen=True)
class LegPlan:
    """Which legs of a validated batch carry transfers."""
    token_leg: bool
    native_leg: bool


class BatchValidator:
    """Validates request shapes for every batch kind."""
    
    def validate(self, request: BatchRequest) -> LegPlan:
        """
        Validate a request of any kind.
        
        Returns:
            The legs the engine has to settle
            
        Raises:
            LengthMismatch: If the request is malformed
        """
        if isinstance(request, SingleTokenBatch):
            require_same_length(request.recipients, request.amounts)
            return LegPlan(token_leg=True, native_leg=False)
        if isinstance(request, MultiTokenBatch):
            require_same_length(request.tokens, request.recipients, request.amounts)
            return LegPlan(token_leg=True, native_leg=False)
        if isinstance(request, NativeCurrencyBatch):
            require_same_length(
                request.recipients, request.amounts, message=NATIVE_LENGTH_MESSAGE,
            )
            return LegPlan(token_leg=False, native_leg=True)
        if isinstance(request, CombinedBatch):
            return self.validate_combined(request)
        raise TypeError(f"Unsupported batch request: {type(request).__name__}")
    
    def validate_combined(self, request: CombinedBatch) -> LegPlan:
        """Validate each leg independently; at least one must be present."""
        plan = LegPlan(
            token_leg=optional_leg(
                request.tokens, request.token_recipients, request.token_amounts
            ),
            native_leg=optional_leg(request.native_recipients, request.native_amounts),
        )
        if not (plan.token_leg or plan.native_leg):
            raise LengthMismatch()
        return plan
