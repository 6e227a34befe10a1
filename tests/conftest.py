"""
Pytest fixtures for the compliance accounting test suite.

Provides:
- Structured logging setup and captured JSON log records
- The active regulatory config and a deterministic clock
- In-memory stores, the BankingLedger and the accounting service
- SQLite-backed SQL stores (one fresh database per test)

Environment Variables:
- FUELEU_TEST_DATABASE_URL: database URL for the SQL-store tests.
  Defaults to an in-memory SQLite database.
"""

import json
import logging
import os
from decimal import Decimal
from io import StringIO

import pytest

from fueleu_config import get_active_config
from fueleu_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from fueleu_kernel.domain.clock import DeterministicClock
from fueleu_kernel.domain.dtos import ComplianceRecord
from fueleu_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from fueleu_services.accounting import ComplianceAccountingService
from fueleu_services.banking_ledger import BankingLedger
from fueleu_services.locks import ShipLockManager
from fueleu_services.memory_store import (
    InMemoryComplianceStore,
    InMemoryLedgerStore,
    InMemoryPoolStore,
    InMemoryRouteStore,
)
from fueleu_services.sql_store import (
    SqlComplianceStore,
    SqlLedgerStore,
    SqlPoolStore,
    SqlRouteStore,
)

DEFAULT_TEST_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    """Get the test database URL from the environment, or in-memory SQLite."""
    return os.environ.get("FUELEU_TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture fueleu logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.deposit(...)
            logs = captured_logs()
            assert any(r["message"] == "ledger_deposit_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("fueleu")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Configuration and time
# =============================================================================


@pytest.fixture(scope="session")
def config():
    return get_active_config()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


# =============================================================================
# In-memory stores and services
# =============================================================================


@pytest.fixture
def compliance_store():
    return InMemoryComplianceStore()


@pytest.fixture
def ledger_store():
    return InMemoryLedgerStore()


@pytest.fixture
def pool_store():
    return InMemoryPoolStore()


@pytest.fixture
def route_store():
    return InMemoryRouteStore()


@pytest.fixture
def locks(config):
    return ShipLockManager(config.lock_timeout_seconds)


@pytest.fixture
def ledger(config, compliance_store, ledger_store, pool_store, locks, deterministic_clock):
    return BankingLedger(
        config=config,
        compliance_store=compliance_store,
        ledger_store=ledger_store,
        pool_store=pool_store,
        locks=locks,
        clock=deterministic_clock,
    )


@pytest.fixture
def service(
    config, compliance_store, ledger_store, pool_store, route_store, locks, deterministic_clock
):
    return ComplianceAccountingService(
        config=config,
        compliance_store=compliance_store,
        ledger_store=ledger_store,
        pool_store=pool_store,
        clock=deterministic_clock,
        locks=locks,
        route_store=route_store,
    )


@pytest.fixture
def make_record(config):
    """
    Build a ComplianceRecord with a chosen CB and upsert it into a store.

    Usage::

        make_record(compliance_store, "S1", 2025, "1000")
    """

    def _make(store, ship_id: str, year: int, cb) -> ComplianceRecord:
        record = ComplianceRecord(
            ship_id=ship_id,
            year=year,
            actual_intensity=Decimal("89.0"),
            fuel_consumption=Decimal("1"),
            energy_in_scope=Decimal("41000"),
            target_intensity=config.target_intensities[year],
            cb=Decimal(str(cb)),
            schedule_version=config.schedule_version,
        )
        return store.upsert(record)

    return _make


# =============================================================================
# SQL stores
# =============================================================================


@pytest.fixture
def sql_session_factory():
    """Fresh schema per test on the configured database."""
    init_engine_from_url(get_database_url())
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def sql_compliance_store(sql_session_factory, deterministic_clock):
    return SqlComplianceStore(sql_session_factory, clock=deterministic_clock)


@pytest.fixture
def sql_ledger_store(sql_session_factory):
    return SqlLedgerStore(sql_session_factory)


@pytest.fixture
def sql_pool_store(sql_session_factory):
    return SqlPoolStore(sql_session_factory)


@pytest.fixture
def sql_route_store(sql_session_factory):
    return SqlRouteStore(sql_session_factory)


@pytest.fixture
def sql_service(
    config,
    sql_compliance_store,
    sql_ledger_store,
    sql_pool_store,
    sql_route_store,
    deterministic_clock,
):
    return ComplianceAccountingService(
        config=config,
        compliance_store=sql_compliance_store,
        ledger_store=sql_ledger_store,
        pool_store=sql_pool_store,
        clock=deterministic_clock,
        route_store=sql_route_store,
    )
