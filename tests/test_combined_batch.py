"""
Test suite for combined token + native-currency batches.
"""

import pytest

from settlement.core.errors import (
    InsufficientSuppliedValue,
    LengthMismatch,
    TransferFailed,
    ZeroAddressRecipient,
)
from settlement.core.types import NATIVE_ASSET
from settlement.engine.settlement import SettlementEngine
from settlement.ledger.memory import InMemoryLedger

from conftest import (
    CALLER,
    ENGINE,
    INITIAL_NATIVE,
    INITIAL_TOKENS,
    RECIPIENT_1,
    RECIPIENT_2,
    RECIPIENT_3,
    TOKEN_A,
    TOKEN_B,
    ZERO,
    native_balances,
    token_balances,
)


@pytest.fixture
def approved(ledger):
    ledger.approve(TOKEN_A, CALLER, ENGINE, 1000)
    ledger.approve(TOKEN_B, CALLER, ENGINE, 1000)
    return ledger


class TestBatchTransferCombined:
    """Tests for the combined shape."""
    
    def test_both_legs(self, engine, approved, recorder):
        outcome = engine.batch_transfer_combined(
            CALLER,
            tokens=[TOKEN_A, TOKEN_B],
            token_recipients=[RECIPIENT_1, RECIPIENT_2],
            token_amounts=["1000", "1000"],
            native_recipients=[RECIPIENT_2, RECIPIENT_3],
            native_amounts=["42", "8"],
            value_supplied=60,
        )
        
        assert outcome.success is True
        assert outcome.transfer_count == 4
        assert outcome.refund == 10
        assert approved.token(TOKEN_A).balance_of(RECIPIENT_1) == 1000
        assert approved.token(TOKEN_B).balance_of(RECIPIENT_2) == 1000
        assert native_balances(approved, [RECIPIENT_2, RECIPIENT_3]) == [42, 8]
        assert approved.native.balance_of(CALLER) == INITIAL_NATIVE - 50
        
        # Token leg first, then native leg
        assert [t.asset for t in recorder.transfers] == [TOKEN_A, TOKEN_B, NATIVE_ASSET, NATIVE_ASSET]
    
    def test_empty_native_leg_matches_multi_token(self, test_config, emitter):
        """Same deltas as a pure multi-token batch; supplied value comes back."""
        def fresh():
            ledger = InMemoryLedger()
            for token in (TOKEN_A, TOKEN_B):
                ledger.register_token(token)
                ledger.mint(token, CALLER, INITIAL_TOKENS)
                ledger.approve(token, CALLER, ENGINE, 1000)
            ledger.credit_native(CALLER, INITIAL_NATIVE)
            return ledger, SettlementEngine(ledger, emitter=emitter, config=test_config)
        
        multi_ledger, multi_engine = fresh()
        multi_engine.batch_transfer_multi_tokens(
            CALLER, [TOKEN_A, TOKEN_B], [RECIPIENT_1, RECIPIENT_2], [300, 700]
        )
        
        combined_ledger, combined_engine = fresh()
        outcome = combined_engine.batch_transfer_combined(
            CALLER,
            tokens=[TOKEN_A, TOKEN_B],
            token_recipients=[RECIPIENT_1, RECIPIENT_2],
            token_amounts=[300, 700],
            value_supplied=5,
        )
        
        owners = [CALLER, RECIPIENT_1, RECIPIENT_2]
        for token in (TOKEN_A, TOKEN_B):
            assert token_balances(combined_ledger, token, owners) == token_balances(multi_ledger, token, owners)
        assert outcome.refund == 5
        assert combined_ledger.native.balance_of(CALLER) == INITIAL_NATIVE
    
    def test_empty_native_leg_skips_value_check(self, engine, approved):
        outcome = engine.batch_transfer_combined(
            CALLER,
            tokens=[TOKEN_A],
            token_recipients=[RECIPIENT_1],
            token_amounts=[10],
            value_supplied=0,
        )
        
        assert outcome.success is True
    
    def test_empty_token_leg(self, engine, ledger):
        outcome = engine.batch_transfer_combined(
            CALLER,
            native_recipients=[RECIPIENT_1],
            native_amounts=[10],
            value_supplied=15,
        )
        
        assert outcome.refund == 5
        assert ledger.native.balance_of(RECIPIENT_1) == 10
    
    def test_both_legs_empty(self, engine):
        with pytest.raises(LengthMismatch):
            engine.batch_transfer_combined(CALLER, value_supplied=10)
    
    @pytest.mark.parametrize("token_leg,native_leg", [
        (([TOKEN_A, TOKEN_B], [RECIPIENT_1, RECIPIENT_2], [10, 20, 30]), ([RECIPIENT_1], [1])),
        (([], [RECIPIENT_1, RECIPIENT_2], [10, 20]), ([RECIPIENT_1], [1])),
        (([TOKEN_A, TOKEN_B], [], [10, 20]), ([RECIPIENT_1], [1])),
        (([TOKEN_A], [RECIPIENT_1], [10]), ([RECIPIENT_1, RECIPIENT_2], [1])),
        (([TOKEN_A], [RECIPIENT_1], [10]), ([RECIPIENT_1], [])),
    ])
    def test_length_mismatch_per_leg(self, engine, approved, token_leg, native_leg):
        with pytest.raises(LengthMismatch):
            engine.batch_transfer_combined(
                CALLER,
                tokens=token_leg[0],
                token_recipients=token_leg[1],
                token_amounts=token_leg[2],
                native_recipients=native_leg[0],
                native_amounts=native_leg[1],
                value_supplied=100,
            )
    
    def test_insufficient_supplied_value(self, engine, approved):
        with pytest.raises(InsufficientSuppliedValue):
            engine.batch_transfer_combined(
                CALLER,
                tokens=[TOKEN_A],
                token_recipients=[RECIPIENT_1],
                token_amounts=[10],
                native_recipients=[RECIPIENT_1, RECIPIENT_2],
                native_amounts=[10, 10],
                value_supplied=19,
            )
        
        assert approved.token(TOKEN_A).balance_of(RECIPIENT_1) == 0
    
    def test_native_failure_rolls_back_token_leg(self, engine, approved, recorder):
        with pytest.raises(ZeroAddressRecipient) as exc_info:
            engine.batch_transfer_combined(
                CALLER,
                tokens=[TOKEN_A, TOKEN_B],
                token_recipients=[RECIPIENT_1, RECIPIENT_2],
                token_amounts=[100, 100],
                native_recipients=[RECIPIENT_3, ZERO],
                native_amounts=[5, 5],
                value_supplied=10,
            )
        
        assert exc_info.value.index == 1
        assert token_balances(approved, TOKEN_A, [RECIPIENT_1]) == [0]
        assert token_balances(approved, TOKEN_B, [RECIPIENT_2]) == [0]
        assert approved.token(TOKEN_A).allowance(CALLER, ENGINE) == 1000
        assert native_balances(approved, [CALLER, RECIPIENT_3]) == [INITIAL_NATIVE, 0]
        assert recorder.events == []
    
    def test_token_failure_aborts_native_leg(self, engine, ledger):
        with pytest.raises(TransferFailed):
            engine.batch_transfer_combined(
                CALLER,
                tokens=[TOKEN_A],
                token_recipients=[RECIPIENT_1],
                token_amounts=[100],
                native_recipients=[RECIPIENT_2],
                native_amounts=[5],
                value_supplied=5,
            )
        
        assert native_balances(ledger, [CALLER, RECIPIENT_2, ENGINE]) == [INITIAL_NATIVE, 0, 0]
