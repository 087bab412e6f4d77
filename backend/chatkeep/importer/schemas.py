"""Pydantic schemas for the database import API."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from chatkeep.importer.report import ImportReport


class ImportResponse(ImportReport):
    success: bool = True
    message: str = "Database import completed"


class StagedImportResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token: str
    format_version: str
    exported_at: str | None
    total_records: dict[str, int]
    expires_at: str
