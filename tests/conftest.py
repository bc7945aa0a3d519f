"""Test configuration for pytest."""

import pytest

from autosplit.ledger.core import SplitLedger
from autosplit.ledger.events import EventLog
from autosplit.ledger.host import CallContext, NativeBank
from autosplit.ledger.queries import LedgerQueries
from autosplit.persistence.database import MemoryKVStore

OWNER = "AU1owner"
ALICE = "AU1alice"
BOB = "AU1bob"
CAROL = "AU1carol"
PAYER = "AU1payer"

T0 = 1_000_000


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "conformance: API contract conformance tests")
    config.addinivalue_line("markers", "slow: Slow running tests")


def ctx(caller: str, timestamp: int = T0, amount: int = 0) -> CallContext:
    return CallContext(caller=caller, timestamp=timestamp, attached_amount=amount)


@pytest.fixture
def store():
    return MemoryKVStore()


@pytest.fixture
def bank():
    return NativeBank()


@pytest.fixture
def event_log():
    return EventLog()


@pytest.fixture
def ledger(store, bank, event_log):
    return SplitLedger(store, bank=bank, event_log=event_log)


@pytest.fixture
def queries(ledger):
    return LedgerQueries(ledger.storage)


@pytest.fixture
def team_id(ledger):
    """A team owned by OWNER with ALICE 6000 bp and BOB 4000 bp."""
    team_id = ledger.create_team(ctx(OWNER), "Studio", "Design studio", "", "", ["design"], "")
    ledger.add_member(ctx(OWNER), team_id, ALICE, "design", 6000)
    ledger.add_member(ctx(OWNER), team_id, BOB, "dev", 4000)
    return team_id
