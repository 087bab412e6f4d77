"""Shared pytest fixtures for chatkeep tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from chatkeep.db.connection import Database
from chatkeep.db.records import RecordStore
from chatkeep.export.router import get_export_service
from chatkeep.export.service import ExportService
from chatkeep.importer.batching import BatchScheduler
from chatkeep.importer.router import get_import_service
from chatkeep.importer.service import ImportService
from chatkeep.main import app


@pytest.fixture
async def db():
    """In-memory database for tests."""
    database = await Database.connect(":memory:")
    yield database
    await database.close()


@pytest.fixture
async def store(db):
    """RecordStore backed by the in-memory database."""
    return RecordStore(db)


@pytest.fixture
async def import_service(db):
    """ImportService with small batches and no pause, so batching is exercised."""
    return ImportService(db, scheduler=BatchScheduler(batch_size=2, pause_seconds=0))


@pytest.fixture
async def export_service(store):
    return ExportService(store)


@pytest.fixture
async def client(import_service, export_service):
    """Async test client with in-memory DB wired into the app."""
    app.dependency_overrides[get_import_service] = lambda: import_service
    app.dependency_overrides[get_export_service] = lambda: export_service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
