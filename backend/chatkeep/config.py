"""Runtime configuration read from the environment (and backend/.env)."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

ENV_FILE = Path(__file__).resolve().parent.parent / ".env"

_MIB = 1024 * 1024


class Settings(BaseModel):
    database_path: str = "chatkeep.db"
    import_batch_size: int = Field(default=100, ge=1)
    import_batch_pause_ms: int = Field(default=10, ge=0)
    max_upload_mb: float = Field(default=500, gt=0)
    pending_import_ttl_minutes: int = Field(default=30, ge=1)
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * _MIB)

    @property
    def import_batch_pause_seconds(self) -> float:
        return self.import_batch_pause_ms / 1000

    @classmethod
    def from_env(cls, *, load_env_file: bool = True) -> "Settings":
        """Build settings from CHATKEEP_* variables, loading backend/.env first.

        Raises pydantic.ValidationError for malformed values.
        """
        if load_env_file:
            load_dotenv(ENV_FILE)

        values: dict[str, object] = {}
        if path := os.environ.get("CHATKEEP_DB"):
            values["database_path"] = path
        if size := os.environ.get("CHATKEEP_IMPORT_BATCH_SIZE"):
            values["import_batch_size"] = size
        if pause := os.environ.get("CHATKEEP_IMPORT_BATCH_PAUSE_MS"):
            values["import_batch_pause_ms"] = pause
        if upload_mb := os.environ.get("CHATKEEP_MAX_UPLOAD_MB"):
            values["max_upload_mb"] = upload_mb
        if ttl := os.environ.get("CHATKEEP_PENDING_IMPORT_TTL_MINUTES"):
            values["pending_import_ttl_minutes"] = ttl
        if origins := os.environ.get("CHATKEEP_CORS_ORIGINS"):
            values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
        return cls.model_validate(values)
