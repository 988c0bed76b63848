"""Shared fixtures for engine, ledger and storage tests."""

import pytest

from wager.clock import ManualClock
from wager.config import EngineConfig, get_settings
from wager.engine import WagerEngine
from wager.ledger import InMemoryLedger

OWNER = "owner"
ENGINE_ACCOUNT = "wager-escrow"
START_HEIGHT = 100
STARTING_BALANCE = 10_000


@pytest.fixture
def ledger():
    """Ledger with three funded bettors."""
    return InMemoryLedger(
        {
            "alice": STARTING_BALANCE,
            "bob": STARTING_BALANCE,
            "carol": STARTING_BALANCE,
        }
    )


@pytest.fixture
def clock():
    return ManualClock(START_HEIGHT)


@pytest.fixture
def config():
    return EngineConfig(owner=OWNER, engine_account=ENGINE_ACCOUNT, fee_rate_bps=250)


@pytest.fixture
def engine(ledger, clock, config):
    return WagerEngine(ledger, clock, config=config)


@pytest.fixture
def open_bet(engine):
    """Alice backs True with 1000, expiring 10 blocks from now."""
    return engine.create("A beats B", 1000, True, 10, "alice")


@pytest.fixture
def accepted_bet(engine, open_bet):
    engine.accept(open_bet, "bob")
    return open_bet


@pytest.fixture
def env_settings(tmp_path, monkeypatch):
    """Settings pointed at a fresh data directory through the environment."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("DATA_DIR", str(data_dir))
    monkeypatch.delenv("LOGFIRE_TOKEN", raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()
