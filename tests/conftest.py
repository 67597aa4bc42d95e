"""
Pytest configuration and shared fixtures for the test suite.
"""

from typing import List

import pytest

from settlement.audit.emitter import AuditEmitter
from settlement.audit.events import AuditEvent, TransferEvent
from settlement.config import SettlementConfig
from settlement.engine.settlement import SettlementEngine
from settlement.ledger.memory import InMemoryLedger


# ============================================================================
# Test Data Generators
# ============================================================================

def generate_test_address(index: int) -> str:
    """Generate a deterministic, non-zero test address."""
    return f"0x{0xa0000000 + index:040x}"


ENGINE = generate_test_address(0)
CALLER = generate_test_address(1)
OTHER_CALLER = generate_test_address(2)
RECIPIENT_1 = generate_test_address(7)
RECIPIENT_2 = generate_test_address(8)
RECIPIENT_3 = generate_test_address(9)

TOKEN_A = "0x" + "aa" * 20
TOKEN_B = "0x" + "bb" * 20
UNKNOWN_TOKEN = "0x" + "cc" * 20

ZERO = "0x" + "0" * 40

INITIAL_TOKENS = 1_000_000
INITIAL_NATIVE = 10**18


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config(tmp_path) -> SettlementConfig:
    """Create a test configuration."""
    return SettlementConfig(
        engine_address=ENGINE,
        database_url=f"sqlite:///{tmp_path / 'ledger.db'}",
        log_level="DEBUG",
    )


# ============================================================================
# Ledger and Engine Fixtures
# ============================================================================

@pytest.fixture
def ledger() -> InMemoryLedger:
    """
    Ledger with two tokens held by CALLER and OTHER_CALLER.
    
    No allowances are granted; tests approve what they need.
    """
    ledger = InMemoryLedger()
    for token in (TOKEN_A, TOKEN_B):
        ledger.register_token(token)
        ledger.mint(token, CALLER, INITIAL_TOKENS)
        ledger.mint(token, OTHER_CALLER, 100)
    ledger.credit_native(CALLER, INITIAL_NATIVE)
    return ledger


class RecordingListener:
    """Audit listener that keeps every event it receives."""
    
    def __init__(self):
        self.events: List[AuditEvent] = []
    
    def __call__(self, event: AuditEvent) -> None:
        self.events.append(event)
    
    @property
    def transfers(self) -> List[TransferEvent]:
        return [e for e in self.events if isinstance(e, TransferEvent)]


@pytest.fixture
def recorder() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def emitter(recorder) -> AuditEmitter:
    emitter = AuditEmitter()
    emitter.subscribe(recorder)
    return emitter


@pytest.fixture
def engine(ledger, emitter, test_config) -> SettlementEngine:
    """Create an engine over the in-memory ledger."""
    return SettlementEngine(ledger, emitter=emitter, config=test_config)


def token_balances(ledger, token: str, owners) -> List[int]:
    """Read the token balances of several owners."""
    asset = ledger.token(token)
    return [asset.balance_of(owner) for owner in owners]


def native_balances(ledger, owners) -> List[int]:
    return [ledger.native.balance_of(owner) for owner in owners]
