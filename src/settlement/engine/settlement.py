"""
Settlement Engine - settles batches of transfers atomically.

Drives the ledger through one of five batch shapes. Every shape runs
inside a single ``Ledger.atomic`` scope: the first failing transfer aborts
the call and the ledger discards everything the call had applied.
"""

from typing import List, Optional, Sequence

import structlog

from settlement.audit.emitter import AuditEmitter, EventBuffer
from settlement.config import SettlementConfig, get_config
from settlement.core.errors import (
    InsufficientAllowance,
    InsufficientSuppliedValue,
    LedgerError,
    SettlementError,
    TransferFailed,
    ZeroAddressRecipient,
)
from settlement.core.outcome import SettlementOutcome
from settlement.core.request import (
    BatchRequest,
    CombinedBatch,
    MultiTokenBatch,
    NativeCurrencyBatch,
    SingleTokenBatch,
)
from settlement.core.types import (
    NATIVE_ASSET,
    Address,
    checked_sum,
    is_zero_address,
    normalize_address,
)
from settlement.engine.validator import BatchValidator
from settlement.ledger.interface import AssetLedger, Ledger

logger = structlog.get_logger(__name__)


class SettlementEngine:
    """
    Atomic batch settlement against a shared ledger.
    
    The engine holds no state between calls. The caller of every batch is
    passed explicitly; the engine's own ledger identity is
    ``engine_address``, which spends delegated allowances and holds
    supplied native value for the duration of a call.
    
    Usage:
        ```python
        engine = SettlementEngine(ledger, engine_address="0x...")
        outcome = engine.batch_transfer(
            caller=alice,
            recipients=[bob, carol],
            amounts=[10, 0],
            value_supplied=10,
        )
        ```
    """
    
    def __init__(
        self,
        ledger: Ledger,
        engine_address: Optional[Address] = None,
        emitter: Optional[AuditEmitter] = None,
        validator: Optional[BatchValidator] = None,
        config: Optional[SettlementConfig] = None,
    ):
        """
        Initialize the engine.
        
        Args:
            ledger: Ledger holding balances and allowances
            engine_address: Ledger identity of the engine; defaults to the
                configured address
            emitter: Audit emitter; a private one is created if omitted
            validator: Request shape validator
            config: Settlement configuration
        """
        self.config = config or get_config()
        self.ledger = ledger
        self.engine_address = normalize_address(engine_address or self.config.engine_address)
        self.emitter = emitter or AuditEmitter()
        self.validator = validator or BatchValidator()
    
    # =========================================================================
    # Entry points
    # =========================================================================
    
    def simple_batch_transfer_token(
        self,
        caller: Address,
        token: Address,
        recipients: Sequence[Address],
        amounts: Sequence,
    ) -> SettlementOutcome:
        """
        Transfer one token to many recipients via delegated allowance.
        
        Insufficient allowance surfaces as a ledger-reported
        ``TransferFailed`` on the transfer that runs out.
        """
        return self.settle(SingleTokenBatch(
            caller=caller,
            token=token,
            recipients=list(recipients),
            amounts=list(amounts),
        ))
    
    def batch_transfer_token(
        self,
        caller: Address,
        token: Address,
        recipients: Sequence[Address],
        amounts: Sequence,
    ) -> SettlementOutcome:
        """
        Transfer one token to many recipients after an allowance pre-check.
        
        Raises:
            InsufficientAllowance: If the caller's allowance to the engine is
                below the batch total; no transfer is issued
        """
        return self.settle(SingleTokenBatch(
            caller=caller,
            token=token,
            recipients=list(recipients),
            amounts=list(amounts),
            checked=True,
        ))
    
    def batch_transfer_multi_tokens(
        self,
        caller: Address,
        tokens: Sequence[Address],
        recipients: Sequence[Address],
        amounts: Sequence,
    ) -> SettlementOutcome:
        """Transfer ``amounts[i]`` of ``tokens[i]`` to ``recipients[i]``."""
        return self.settle(MultiTokenBatch(
            caller=caller,
            tokens=list(tokens),
            recipients=list(recipients),
            amounts=list(amounts),
        ))
    
    def batch_transfer(
        self,
        caller: Address,
        recipients: Sequence[Address],
        amounts: Sequence,
        value_supplied=0,
    ) -> SettlementOutcome:
        """Pay native currency out of ``value_supplied``, refunding the rest."""
        return self.settle(NativeCurrencyBatch(
            caller=caller,
            recipients=list(recipients),
            amounts=list(amounts),
            value_supplied=value_supplied,
        ))
    
    def batch_transfer_combined(
        self,
        caller: Address,
        tokens: Sequence[Address] = (),
        token_recipients: Sequence[Address] = (),
        token_amounts: Sequence = (),
        native_recipients: Sequence[Address] = (),
        native_amounts: Sequence = (),
        value_supplied=0,
    ) -> SettlementOutcome:
        """Settle a token leg and a native leg together; either may be empty."""
        return self.settle(CombinedBatch(
            caller=caller,
            tokens=list(tokens),
            token_recipients=list(token_recipients),
            token_amounts=list(token_amounts),
            native_recipients=list(native_recipients),
            native_amounts=list(native_amounts),
            value_supplied=value_supplied,
        ))
    
    # =========================================================================
    # Settlement
    # =========================================================================
    
    def settle(self, request: BatchRequest) -> SettlementOutcome:
        """
        Settle a batch request of any kind.
        
        Args:
            request: The batch to settle
        
        Returns:
            The completed outcome
        
        Raises:
            SettlementError: If the batch aborts; no ledger state changed
        """
        outcome = SettlementOutcome(
            batch_id=request.batch_id,
            kind=request.kind,
            caller=request.caller,
        )
        buffer = self.emitter.buffer(request.batch_id)
        log = logger.bind(batch_id=request.batch_id, kind=request.kind.value)
        log.info("batch_started", caller=request.caller)
        
        try:
            plan = self.validator.validate(request)
            
            value_supplied = getattr(request, "value_supplied", 0)
            native_total = 0
            if plan.native_leg:
                native_total = checked_sum(self._native_amounts(request))
                if native_total > value_supplied:
                    raise InsufficientSuppliedValue()
            
            with self.ledger.atomic():
                outcome.mark_transferring()
                self._collect_value(request.caller, value_supplied)
                
                if isinstance(request, SingleTokenBatch):
                    self._settle_single_token(request, buffer, outcome)
                elif isinstance(request, MultiTokenBatch):
                    self._settle_token_leg(
                        request.caller, request.tokens, request.recipients,
                        request.amounts, buffer, outcome,
                    )
                elif isinstance(request, NativeCurrencyBatch):
                    self._settle_native_leg(
                        request.recipients, request.amounts, buffer, outcome,
                    )
                else:
                    if plan.token_leg:
                        self._settle_token_leg(
                            request.caller, request.tokens, request.token_recipients,
                            request.token_amounts, buffer, outcome,
                        )
                    if plan.native_leg:
                        self._settle_native_leg(
                            request.native_recipients, request.native_amounts,
                            buffer, outcome,
                        )
                
                outcome.mark_refunding()
                outcome.native_total = native_total
                outcome.refund = self._refund(request.caller, value_supplied - native_total)
                buffer.settled(
                    kind=request.kind.value,
                    caller=request.caller,
                    transfer_count=outcome.transfer_count,
                    native_total=native_total,
                    refund=outcome.refund,
                )
        except Exception as e:
            buffer.clear()
            outcome.mark_aborted(str(e))
            reason = e.reason.value if isinstance(e, SettlementError) else type(e).__name__
            log.warning(
                "batch_aborted",
                reason=reason,
                index=getattr(e, "index", None),
                error=str(e),
            )
            raise
        
        outcome.mark_completed(buffer.events)
        self.emitter.publish(buffer.events)
        log.info(
            "batch_settled",
            transfer_count=outcome.transfer_count,
            native_total=outcome.native_total,
            refund=outcome.refund,
        )
        return outcome
    
    # =========================================================================
    # Token legs
    # =========================================================================
    
    def _settle_single_token(
        self,
        request: SingleTokenBatch,
        buffer: EventBuffer,
        outcome: SettlementOutcome,
    ) -> None:
        token = self._token(request.token)
        
        if request.checked:
            total = checked_sum(request.amounts)
            allowance = token.allowance(request.caller, self.engine_address)
            if allowance < total:
                raise InsufficientAllowance()
        
        for index, (recipient, amount) in enumerate(zip(request.recipients, request.amounts)):
            self._transfer_token(token, request.caller, recipient, amount, index, buffer, outcome)
    
    def _settle_token_leg(
        self,
        caller: Address,
        tokens: List[Address],
        recipients: List[Address],
        amounts: List[int],
        buffer: EventBuffer,
        outcome: SettlementOutcome,
    ) -> None:
        for index, (token_address, recipient, amount) in enumerate(zip(tokens, recipients, amounts)):
            token = self._token(token_address, index)
            self._transfer_token(token, caller, recipient, amount, index, buffer, outcome)
    
    def _token(self, address: Address, index: Optional[int] = None) -> AssetLedger:
        try:
            return self.ledger.token(address)
        except LedgerError as e:
            raise TransferFailed(index=index) from e
    
    def _transfer_token(
        self,
        token: AssetLedger,
        caller: Address,
        recipient: Address,
        amount: int,
        index: int,
        buffer: EventBuffer,
        outcome: SettlementOutcome,
    ) -> None:
        try:
            applied = token.transfer_from(self.engine_address, caller, recipient, amount)
        except LedgerError as e:
            raise TransferFailed(index=index) from e
        if not applied:
            raise TransferFailed(index=index)
        
        buffer.transfer(token.address, recipient, amount)
        outcome.transfer_count += 1
        logger.debug(
            "transfer_applied",
            batch_id=buffer.batch_id,
            asset=token.address,
            destination=recipient,
            amount=amount,
        )
    
    # =========================================================================
    # Native currency
    # =========================================================================
    
    @staticmethod
    def _native_amounts(request: BatchRequest) -> List[int]:
        if isinstance(request, CombinedBatch):
            return request.native_amounts
        return request.amounts
    
    def _collect_value(self, caller: Address, value_supplied: int) -> None:
        """Move the value supplied with the call into the engine account."""
        if not value_supplied:
            return
        if not self.ledger.native.send(caller, self.engine_address, value_supplied):
            raise TransferFailed("Supplied value exceeds caller balance")
    
    def _settle_native_leg(
        self,
        recipients: List[Address],
        amounts: List[int],
        buffer: EventBuffer,
        outcome: SettlementOutcome,
    ) -> None:
        native = self.ledger.native
        for index, (recipient, amount) in enumerate(zip(recipients, amounts)):
            if is_zero_address(recipient):
                raise ZeroAddressRecipient(index=index)
            if not native.send(self.engine_address, recipient, amount):
                raise TransferFailed("Native transfer failed", index=index)
            
            buffer.transfer(NATIVE_ASSET, recipient, amount)
            outcome.transfer_count += 1
            logger.debug(
                "transfer_applied",
                batch_id=buffer.batch_id,
                asset=NATIVE_ASSET,
                destination=recipient,
                amount=amount,
            )
    
    def _refund(self, caller: Address, amount: int) -> int:
        """Return unspent supplied value to the caller."""
        if amount <= 0:
            return 0
        if not self.ledger.native.send(self.engine_address, caller, amount):
            raise TransferFailed("Refund failed")
        logger.debug("refund_issued", caller=caller, amount=amount)
        return amount
