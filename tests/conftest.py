"""Shared fixtures for the ledger tests."""

import asyncio

import pytest

from committee_ledger.audit import AuditLogger
from committee_ledger.config import get_settings
from committee_ledger.models.audit import AuditEvent, AuditEventType
from committee_ledger.services.storage import (
    InMemoryEntityStore,
    SqliteEntityStore,
    StorageError,
)
from committee_ledger.services.storage.memory import _MemoryTransaction
from committee_ledger.services.storage.sqlite import _SqliteTransaction


class RecordingAuditLogger(AuditLogger):
    """Keeps every event in memory so tests can assert on them."""

    def __init__(self):
        super().__init__()
        self.events: list[AuditEvent] = []

    async def log(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def of_type(self, event_type: AuditEventType) -> list[AuditEvent]:
        return [e for e in self.events if e.event_type == event_type]


@pytest.fixture
def audit_logger() -> RecordingAuditLogger:
    return RecordingAuditLogger()


@pytest.fixture
def run_with_store():
    """Run an async scenario against a fresh, open in-memory store."""

    def runner(scenario):
        async def main():
            async with InMemoryEntityStore() as store:
                return await scenario(store)

        return asyncio.run(main())

    return runner


@pytest.fixture(params=["memory", "sqlite"])
def make_store(request, tmp_path):
    """Factory for a fresh store of each backend in turn."""

    def factory():
        if request.param == "memory":
            return InMemoryEntityStore()
        return SqliteEntityStore(str(tmp_path / "ledger.db"))

    return factory


@pytest.fixture
def fail_transaction_call(monkeypatch):
    """
    Make a transaction method raise StorageError on its nth call.

    Counting starts when the fixture is called, so set up data first.
    """

    def install(store, method: str, call_number: int):
        if isinstance(store, InMemoryEntityStore):
            transaction_class = _MemoryTransaction
        else:
            transaction_class = _SqliteTransaction
        original = getattr(transaction_class, method)
        calls = 0

        async def failing(self, *args, **kwargs):
            nonlocal calls
            calls += 1
            if calls == call_number:
                raise StorageError(f"{method} failed on call {calls}")
            return await original(self, *args, **kwargs)

        monkeypatch.setattr(transaction_class, method, failing)

    return install


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Point settings at a throwaway directory and reload them per test."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "LEDGER_STORAGE_BACKEND",
        "LEDGER_STORAGE_DATABASE_PATH",
        "LEDGER_PAYMENT_DUE_DAY",
        "LEDGER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
