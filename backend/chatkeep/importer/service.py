"""ImportService: decodes uploaded snapshots and reconciles them into the store.

Two entry points share the same pipeline. ``import_snapshot`` decodes and
reconciles in one call. ``stage_snapshot`` decodes, validates and parks the
snapshot in the ``pending_imports`` table under a random token;
``apply_staged`` later consumes that token exactly once. The handoff lives in
the database, so it works across processes and restarts.
"""

import logging
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from chatkeep.config import Settings
from chatkeep.db.connection import Database
from chatkeep.db.records import RecordStore
from chatkeep.importer.batching import BatchScheduler
from chatkeep.importer.reconciler import Reconciler
from chatkeep.importer.report import ImportReport
from chatkeep.importer.schemas import StagedImportResponse
from chatkeep.snapshot.codec import decode_snapshot
from chatkeep.snapshot.schemas import SnapshotEnvelope

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 500 * 1024 * 1024


class UploadTooLargeError(Exception):
    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"Upload of {size} bytes exceeds the {limit} byte limit")


class PendingImportNotFoundError(Exception):
    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"Pending import not found or expired: {token}")


class ImportService:
    def __init__(
        self,
        db: Database,
        *,
        scheduler: BatchScheduler | None = None,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        pending_ttl: timedelta = timedelta(minutes=30),
    ) -> None:
        self._db = db
        self._store = RecordStore(db)
        self._reconciler = Reconciler(self._store, scheduler)
        self.max_upload_bytes = max_upload_bytes
        self._pending_ttl = pending_ttl

    @classmethod
    def from_settings(cls, db: Database, settings: Settings) -> "ImportService":
        return cls(
            db,
            scheduler=BatchScheduler(
                batch_size=settings.import_batch_size,
                pause_seconds=settings.import_batch_pause_seconds,
            ),
            max_upload_bytes=settings.max_upload_bytes,
            pending_ttl=timedelta(minutes=settings.pending_import_ttl_minutes),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check_size(self, size: int) -> None:
        """Raise UploadTooLargeError if ``size`` exceeds the upload ceiling."""
        if size > self.max_upload_bytes:
            raise UploadTooLargeError(size, self.max_upload_bytes)

    async def import_snapshot(self, content: bytes, filename: str) -> ImportReport:
        """Decode, validate and reconcile an uploaded snapshot.

        Raises SnapshotFormatError / UploadTooLargeError before anything is
        written, and StoreUnavailableError if the database cannot be reached.
        Record-level failures are reported, not raised.
        """
        envelope = self._decode(content, filename)
        await self._store.ping()
        return await self._reconciler.run(envelope)

    async def stage_snapshot(self, content: bytes, filename: str) -> StagedImportResponse:
        """Validate a snapshot and park it for a later ``apply_staged`` call."""
        envelope = self._decode(content, filename)
        await self._store.ping()
        await self._purge_expired()

        token = uuid4().hex
        now = datetime.now(UTC)
        expires_at = _stamp(now + self._pending_ttl)
        await self._db.execute(
            """
            INSERT INTO pending_imports (token, filename, payload, created_at, expires_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (token, filename, envelope.model_dump_json(by_alias=True), _stamp(now), expires_at),
        )
        logger.info("Staged import %s from %s", token, filename)
        return StagedImportResponse(
            token=token,
            format_version=envelope.format_version,
            exported_at=envelope.exported_at,
            total_records=envelope.data.counts(),
            expires_at=expires_at,
        )

    async def apply_staged(self, token: str) -> ImportReport:
        """Reconcile a staged snapshot. Each token can be applied once."""
        await self._store.ping()
        row = await self._db.fetchone(
            "SELECT payload FROM pending_imports WHERE token = ? AND expires_at > ?",
            (token, _stamp(datetime.now(UTC))),
        )
        if row is None:
            raise PendingImportNotFoundError(token)

        cursor = await self._db.execute(
            "DELETE FROM pending_imports WHERE token = ?", (token,)
        )
        if cursor.rowcount != 1:
            # Consumed concurrently by another request.
            raise PendingImportNotFoundError(token)

        envelope = SnapshotEnvelope.model_validate_json(row["payload"])
        return await self._reconciler.run(envelope)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _decode(self, content: bytes, filename: str) -> SnapshotEnvelope:
        self.check_size(len(content))
        logger.info(
            "Processing import file %s: %.1fMB", filename, len(content) / (1024 * 1024)
        )
        return decode_snapshot(content, filename)

    async def _purge_expired(self) -> None:
        await self._db.execute(
            "DELETE FROM pending_imports WHERE expires_at <= ?",
            (_stamp(datetime.now(UTC)),),
        )


def _stamp(moment: datetime) -> str:
    """Fixed-width UTC text so expiry comparisons can be done as strings."""
    return moment.astimezone(UTC).isoformat(timespec="microseconds")
