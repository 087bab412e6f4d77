"""Database import API routes."""

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException, UploadFile

from chatkeep.db.connection import StoreUnavailableError
from chatkeep.importer.schemas import ImportResponse, StagedImportResponse
from chatkeep.importer.service import (
    ImportService,
    PendingImportNotFoundError,
    UploadTooLargeError,
)
from chatkeep.snapshot.codec import SnapshotFormatError

router = APIRouter(prefix="/api/database/import", tags=["import"])


def get_import_service() -> ImportService:
    """Dependency placeholder, overridden at startup."""
    raise RuntimeError("ImportService not configured")


@contextmanager
def _request_errors() -> Iterator[None]:
    """Map request-level failures onto HTTP errors."""
    try:
        yield
    except UploadTooLargeError as e:
        raise HTTPException(
            status_code=413, detail={"error": "File too large", "details": str(e)}
        ) from e
    except SnapshotFormatError as e:
        raise HTTPException(
            status_code=400, detail={"error": e.error, "details": e.details}
        ) from e
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=503, detail={"error": "Database unavailable", "details": e.reason}
        ) from e
    except PendingImportNotFoundError as e:
        raise HTTPException(
            status_code=404, detail={"error": "Pending import not found", "details": str(e)}
        ) from e


async def _read_upload(file: UploadFile, service: ImportService) -> bytes:
    """Read at most one byte past the ceiling so oversize uploads stop early."""
    content = await file.read(service.max_upload_bytes + 1)
    service.check_size(len(content))
    return content


@router.post("")
async def import_database(
    file: UploadFile,
    service: ImportService = Depends(get_import_service),
) -> ImportResponse:
    """Import a .json or .zip export, merging it into the current database."""
    with _request_errors():
        content = await _read_upload(file, service)
        report = await service.import_snapshot(content, file.filename or "unknown")
    return ImportResponse.model_validate(report.model_dump())


@router.post("/stage")
async def stage_import(
    file: UploadFile,
    service: ImportService = Depends(get_import_service),
) -> StagedImportResponse:
    """Validate an export file and hold it for a later apply call."""
    with _request_errors():
        content = await _read_upload(file, service)
        return await service.stage_snapshot(content, file.filename or "unknown")


@router.post("/{token}/apply")
async def apply_staged_import(
    token: str,
    service: ImportService = Depends(get_import_service),
) -> ImportResponse:
    """Reconcile a previously staged export file."""
    with _request_errors():
        report = await service.apply_staged(token)
    return ImportResponse.model_validate(report.model_dump())
