"""
Shared fixtures for the spotgrid test suite.

The reference grid is BTCUSDT, 3 levels between 40000 and 42000,
300 USDT invested, 1% profit per grid:
levels 40000 / 41000 / 42000, order size 100 USDT.
"""
import pytest

from spotgrid.audit.journal import MemoryAuditJournal
from spotgrid.config.schema import GridConfiguration, RuntimeConfig
from spotgrid.execution.reconciler import ReconciliationEngine
from spotgrid.execution.sim_exchange import SimExchange
from spotgrid.grid_engine.grid_builder import build_grid_layout
from spotgrid.grid_engine.level_store import GridLevelStore
from spotgrid.runtime.controller import StrategyController


SYMBOL = "BTCUSDT"
SESSION_ID = "s20250101_000000"


@pytest.fixture
def grid_config():
    """Reference 3-level grid."""
    return GridConfiguration(
        symbol=SYMBOL,
        grid_count=3,
        lower_price=40000.0,
        upper_price=42000.0,
        investment=300.0,
        profit_per_grid=1.0,
    )


@pytest.fixture
def sim():
    """Simulated exchange with plenty of quote balance."""
    return SimExchange(quote_balance=10000.0)


@pytest.fixture
def journal():
    return MemoryAuditJournal()


@pytest.fixture
def store(grid_config):
    return GridLevelStore(build_grid_layout(grid_config))


@pytest.fixture
def engine(grid_config, store, sim, journal):
    return ReconciliationEngine(
        config=grid_config,
        store=store,
        client=sim,
        session_id=SESSION_ID,
        audit_journal=journal,
    )


@pytest.fixture
def controller(grid_config, sim, journal):
    return StrategyController(
        config=grid_config,
        client=sim,
        runtime=RuntimeConfig(poll_interval_seconds=0.01, health_check_interval_seconds=60.0),
        audit_journal=journal,
        session_id=SESSION_ID,
    )


def level_by_price(store, price):
    """Snapshot of the level at ``price`` (fails the test if missing)."""
    level = store.find_level(price)
    assert level is not None, f"no level at {price}"
    return level
