"""chatkeep FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatkeep.config import Settings
from chatkeep.db.connection import Database
from chatkeep.db.records import RecordStore
from chatkeep.export.router import get_export_service
from chatkeep.export.router import router as export_router
from chatkeep.export.service import ExportService
from chatkeep.importer.router import get_import_service
from chatkeep.importer.router import router as import_router
from chatkeep.importer.service import ImportService

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

settings = Settings.from_env()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage database lifecycle and service wiring."""
    db = await Database.connect(settings.database_path)
    logger.info("Database opened at %s", settings.database_path)

    export_service = ExportService(RecordStore(db))
    app.dependency_overrides[get_export_service] = lambda: export_service

    import_service = ImportService.from_settings(db, settings)
    app.dependency_overrides[get_import_service] = lambda: import_service

    app.state.db = db
    yield

    await db.close()


app = FastAPI(
    title="chatkeep",
    description="Persona and chat archive with portable snapshot export and reconciling import",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(export_router)
app.include_router(import_router)


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok", "version": VERSION}
