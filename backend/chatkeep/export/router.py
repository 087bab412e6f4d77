"""Export API routes."""

from typing import Literal

from fastapi import APIRouter, Depends, Query, Response

from chatkeep.export.service import ExportService

router = APIRouter(prefix="/api/database", tags=["export"])

_MEDIA_TYPES = {"json": "application/json", "zip": "application/zip"}


def get_export_service() -> ExportService:
    """Dependency placeholder, overridden at startup."""
    raise RuntimeError("ExportService not configured")


@router.get("/export")
async def export_database(
    format: Literal["zip", "json"] = Query("zip"),
    service: ExportService = Depends(get_export_service),
) -> Response:
    """Download the whole database as a zip archive or a flat JSON file."""
    filename, content = await service.export_file(format)
    return Response(
        content=content,
        media_type=_MEDIA_TYPES[format],
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
        },
    )
