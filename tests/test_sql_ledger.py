"""
Test suite for the SQL-backed ledger.

The atomic scope is a database transaction, so an aborted batch must leave
the stored balances untouched.
"""

import pytest

from settlement.core.errors import LedgerError, TransferFailed, ZeroAddressRecipient
from settlement.core.types import MAX_UINT256
from settlement.engine.settlement import SettlementEngine
from settlement.ledger.sql import SqlLedger

from conftest import (
    CALLER,
    ENGINE,
    RECIPIENT_1,
    RECIPIENT_2,
    TOKEN_A,
    TOKEN_B,
    UNKNOWN_TOKEN,
    ZERO,
)


@pytest.fixture
def sql_ledger(tmp_path):
    ledger = SqlLedger(f"sqlite:///{tmp_path / 'ledger.db'}")
    ledger.connect()
    for token in (TOKEN_A, TOKEN_B):
        ledger.register_token(token)
        ledger.mint(token, CALLER, 10_000)
    ledger.credit_native(CALLER, 1_000)
    yield ledger
    ledger.disconnect()


@pytest.fixture
def sql_engine(sql_ledger, emitter, test_config):
    return SettlementEngine(sql_ledger, emitter=emitter, config=test_config)


class TestSqlLedger:
    """Tests for token and native semantics of the SQL ledger."""
    
    def test_balances(self, sql_ledger):
        assert sql_ledger.token(TOKEN_A).balance_of(CALLER) == 10_000
        assert sql_ledger.token(TOKEN_A).balance_of(RECIPIENT_1) == 0
        assert sql_ledger.native.balance_of(CALLER) == 1_000
    
    def test_transfer(self, sql_ledger):
        token = sql_ledger.token(TOKEN_A)
        
        assert token.transfer(CALLER, RECIPIENT_1, 400) is True
        assert token.balance_of(RECIPIENT_1) == 400
        assert token.balance_of(CALLER) == 9_600
    
    def test_transfer_rejections(self, sql_ledger):
        token = sql_ledger.token(TOKEN_A)
        
        assert token.transfer(CALLER, ZERO, 1) is False
        assert token.transfer(CALLER, RECIPIENT_1, 10_001) is False
        assert token.transfer(RECIPIENT_1, CALLER, 0) is True
    
    def test_transfer_from_consumes_allowance(self, sql_ledger):
        sql_ledger.approve(TOKEN_A, CALLER, ENGINE, 500)
        token = sql_ledger.token(TOKEN_A)
        
        assert token.transfer_from(ENGINE, CALLER, RECIPIENT_1, 300) is True
        assert token.allowance(CALLER, ENGINE) == 200
        assert token.transfer_from(ENGINE, CALLER, RECIPIENT_1, 300) is False
    
    def test_unlimited_allowance(self, sql_ledger):
        sql_ledger.approve(TOKEN_A, CALLER, ENGINE, MAX_UINT256)
        token = sql_ledger.token(TOKEN_A)
        
        assert token.transfer_from(ENGINE, CALLER, RECIPIENT_1, 300) is True
        assert token.allowance(CALLER, ENGINE) == MAX_UINT256
    
    def test_large_amounts(self, sql_ledger):
        sql_ledger.credit_native(RECIPIENT_2, 2**200)
        
        assert sql_ledger.native.balance_of(RECIPIENT_2) == 2**200
    
    def test_transfer_never_exceeds_uint256(self, sql_ledger):
        sql_ledger.credit_native(RECIPIENT_1, MAX_UINT256)
        sql_ledger.mint(TOKEN_A, RECIPIENT_1, MAX_UINT256)
        sql_ledger.approve(TOKEN_A, CALLER, ENGINE, 500)
        token = sql_ledger.token(TOKEN_A)
        
        assert sql_ledger.native.send(CALLER, RECIPIENT_1, 1) is False
        assert token.transfer_from(ENGINE, CALLER, RECIPIENT_1, 1) is False
        assert sql_ledger.native.balance_of(RECIPIENT_1) == MAX_UINT256
        assert token.balance_of(RECIPIENT_1) == MAX_UINT256
        assert token.balance_of(CALLER) == 10_000
        assert token.allowance(CALLER, ENGINE) == 500
    
    def test_unknown_token(self, sql_ledger):
        with pytest.raises(LedgerError, match="No token contract"):
            sql_ledger.token(UNKNOWN_TOKEN)
    
    def test_atomic_rollback(self, sql_ledger):
        token = sql_ledger.token(TOKEN_A)
        
        with pytest.raises(RuntimeError):
            with sql_ledger.atomic():
                token.transfer(CALLER, RECIPIENT_1, 100)
                sql_ledger.native.send(CALLER, RECIPIENT_1, 100)
                raise RuntimeError("abort")
        
        assert token.balance_of(RECIPIENT_1) == 0
        assert sql_ledger.native.balance_of(CALLER) == 1_000
    
    def test_atomic_commit(self, sql_ledger):
        with sql_ledger.atomic():
            sql_ledger.token(TOKEN_A).transfer(CALLER, RECIPIENT_1, 100)
        
        assert sql_ledger.token(TOKEN_A).balance_of(RECIPIENT_1) == 100
    
    def test_not_connected(self, tmp_path):
        ledger = SqlLedger(f"sqlite:///{tmp_path / 'other.db'}")
        
        with pytest.raises(LedgerError, match="not connected"):
            ledger.native.balance_of(CALLER)


class TestEngineOnSqlLedger:
    """End-to-end settlement against the SQL ledger."""
    
    def test_combined_batch(self, sql_engine, sql_ledger):
        sql_ledger.approve(TOKEN_A, CALLER, ENGINE, 1_000)
        sql_ledger.approve(TOKEN_B, CALLER, ENGINE, 1_000)
        
        outcome = sql_engine.batch_transfer_combined(
            CALLER,
            tokens=[TOKEN_A, TOKEN_B],
            token_recipients=[RECIPIENT_1, RECIPIENT_2],
            token_amounts=[1_000, 1_000],
            native_recipients=[RECIPIENT_1],
            native_amounts=[10],
            value_supplied=25,
        )
        
        assert outcome.refund == 15
        assert sql_ledger.token(TOKEN_A).balance_of(RECIPIENT_1) == 1_000
        assert sql_ledger.token(TOKEN_B).balance_of(RECIPIENT_2) == 1_000
        assert sql_ledger.native.balance_of(RECIPIENT_1) == 10
        assert sql_ledger.native.balance_of(CALLER) == 990
    
    def test_failure_rolls_back_database(self, sql_engine, sql_ledger):
        sql_ledger.approve(TOKEN_A, CALLER, ENGINE, 600)
        
        with pytest.raises(TransferFailed):
            sql_engine.simple_batch_transfer_token(CALLER, TOKEN_A, [RECIPIENT_1, RECIPIENT_2], [500, 500])
        
        token = sql_ledger.token(TOKEN_A)
        assert token.balance_of(RECIPIENT_1) == 0
        assert token.balance_of(CALLER) == 10_000
        assert token.allowance(CALLER, ENGINE) == 600
    
    def test_zero_address_rolls_back_value(self, sql_engine, sql_ledger):
        with pytest.raises(ZeroAddressRecipient):
            sql_engine.batch_transfer(CALLER, [RECIPIENT_1, ZERO], [5, 5], value_supplied=10)
        
        assert sql_ledger.native.balance_of(CALLER) == 1_000
        assert sql_ledger.native.balance_of(ENGINE) == 0
        assert sql_ledger.native.balance_of(RECIPIENT_1) == 0
