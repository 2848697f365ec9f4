"""
Shared test fixtures.

The Supabase client is replaced by an in-memory store that applies
filters, ordering and limits, so services can be exercised end to end
without a database.
"""

import os
import sys
import threading
from pathlib import Path

# Add project root to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings require these before config is imported
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from datetime import datetime, timezone
from typing import Any, Callable, Generator, Optional
from uuid import uuid4

# ===================
# IN-MEMORY SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data if data is not None else []
        self.count = count


class MockSupabaseQuery:
    """
    Chainable query against one in-memory table.

    Supports the subset of the PostgREST builder the services use.
    """

    def __init__(self, client: "MockSupabaseClient", table: str):
        self._client = client
        self._table = table
        self._operation = "select"
        self._payload: Any = None
        self._filters: list[Callable[[dict], bool]] = []
        self._order: list[tuple[str, bool]] = []
        self._limit: Optional[int] = None
        self._count = False

    # Operations

    def select(self, *args, count: Optional[str] = None, **kwargs):
        self._operation = "select"
        self._count = count is not None
        return self

    def insert(self, data):
        self._operation = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._operation = "update"
        self._payload = data
        return self

    def delete(self):
        self._operation = "delete"
        return self

    # Filters

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def gt(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) > value)
        return self

    def gte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def lt(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) < value)
        return self

    def lte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) <= value)
        return self

    def in_(self, column, values):
        allowed = list(values)
        self._filters.append(lambda row: row.get(column) in allowed)
        return self

    def is_(self, column, value):
        if value == "null":
            self._filters.append(lambda row: row.get(column) is None)
        else:
            self._filters.append(lambda row: row.get(column) is value)
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order.append((column, desc))
        return self

    def limit(self, count):
        self._limit = count
        return self

    # Execution

    def _matching(self) -> list[dict]:
        return [row for row in self._client.rows(self._table) if all(f(row) for f in self._filters)]

    def execute(self) -> MockSupabaseResponse:
        with self._client.lock:
            return self._execute()

    def _execute(self) -> MockSupabaseResponse:
        self._client.calls.append((self._table, self._operation))
        self._client.raise_if_failing(self._table, self._operation)

        if self._operation == "insert":
            rows = self._payload if isinstance(self._payload, list) else [self._payload]
            stored = []
            now = datetime.now(timezone.utc).isoformat()
            for row in rows:
                new_row = {"id": str(uuid4()), "created_at": now, **row}
                self._client.rows(self._table).append(new_row)
                stored.append(dict(new_row))
            return MockSupabaseResponse(stored)

        if self._operation == "update":
            updated = []
            for row in self._matching():
                row.update(self._payload)
                updated.append(dict(row))
            return MockSupabaseResponse(updated)

        if self._operation == "delete":
            doomed = self._matching()
            table = self._client.rows(self._table)
            table[:] = [row for row in table if row not in doomed]
            return MockSupabaseResponse([dict(row) for row in doomed])

        rows = self._matching()
        for column, desc in reversed(self._order):
            rows.sort(
                key=lambda row: (row.get(column) is None, row.get(column) if row.get(column) is not None else 0),
                reverse=desc,
            )
        total = len(rows)
        if self._limit is not None:
            rows = rows[:self._limit]

        return MockSupabaseResponse(
            [dict(row) for row in rows],
            count=total if self._count else None,
        )


class MockSupabaseClient:
    """In-memory Supabase client."""

    def __init__(self):
        self._tables: dict[str, list[dict]] = {}
        self._failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str]] = []
        # Propagation runs services on worker threads
        self.lock = threading.RLock()

    def set_table_data(self, table_name: str, data: list):
        """Seed a table (rows are copied)."""
        self._tables[table_name] = [dict(row) for row in data]

    def rows(self, table_name: str) -> list[dict]:
        return self._tables.setdefault(table_name, [])

    def fail_on(self, table_name: str, operation: str, error: Optional[Exception] = None):
        """Make every `operation` on `table_name` raise."""
        self._failures[(table_name, operation)] = error or RuntimeError(f"{operation} on {table_name} failed")

    def clear_failures(self):
        self._failures.clear()

    def raise_if_failing(self, table_name: str, operation: str):
        error = self._failures.get((table_name, operation))
        if error is not None:
            raise error

    def count_calls(self, table_name: str, operation: str = "select") -> int:
        return sum(1 for call in self.calls if call == (table_name, operation))

    def table(self, name: str) -> MockSupabaseQuery:
        return MockSupabaseQuery(self, name)


# ===================
# FIXTURES
# ===================

PATCHED_MODULES = [
    "config.database",
    "services.order_repository",
    "services.vendor_service",
    "services.client_service",
    "services.settings_service",
    "services.catalog_service",
]

SINGLETONS = [
    ("services.order_repository", "_order_repository"),
    ("services.vendor_service", "_vendor_service"),
    ("services.client_service", "_client_service"),
    ("services.settings_service", "_settings_service"),
    ("services.order_number_service", "_order_number_service"),
    ("services.delivery_date_service", "_delivery_date_service"),
    ("services.reconcile_service", "_reconcile_service"),
    ("services.catalog_service", "_catalog_service"),
    ("services.promotion_service", "_promotion_service"),
]


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create an in-memory Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("vendors", [VendorFactory.create()])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase, monkeypatch) -> Generator:
    """
    Patch the database client with the in-memory one.

    Service singletons are reset so each test builds fresh services
    against its own store.
    """
    import importlib

    for module_name, attribute in SINGLETONS:
        monkeypatch.setattr(importlib.import_module(module_name), attribute, None)

    patches = [patch(f"{module}.get_supabase_client", return_value=mock_supabase) for module in PATCHED_MODULES]
    for p in patches:
        p.start()
    try:
        yield mock_supabase
    finally:
        for p in reversed(patches):
            p.stop()


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    FastAPI test client backed by the in-memory store.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("clients", [...])
            response = test_client_with_mock_db.get("/api/clients/c1/upcoming-orders")
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
