"""Reconciler: applies a decoded snapshot to a live store, stage by stage.

Stages run in a fixed dependency order and each one completes, with its
cross-reference entries in place, before the next begins. Inside a stage the
records are fanned out through the BatchScheduler. Every record is handled
the same way:

    validate -> resolve parents -> natural key -> find in store
        found:     register "linked",   skipped += 1
        not found: create, register "imported", imported += 1

A failure anywhere in that chain is recorded against the single record and
never aborts the stage or the run.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from chatkeep.db.records import RecordStore
from chatkeep.importer.batching import BatchScheduler
from chatkeep.importer.keys import (
    NaturalKey,
    describe_key,
    exported_parent_key,
    index_by_id,
    key_lookup,
    natural_key,
)
from chatkeep.importer.report import ImportReport, ReportAggregator
from chatkeep.importer.xref import CrossReferenceTable, Resolution
from chatkeep.models import (
    ENTITY_SPECS,
    SENSITIVE_SETTING_KEYS,
    EntityRecord,
    EntityType,
)
from chatkeep.snapshot.schemas import SnapshotData, SnapshotEnvelope
from chatkeep.utils.timestamps import utc_now

logger = logging.getLogger(__name__)

STAGE_ORDER: list[EntityType] = [
    EntityType.CHARACTER_GROUP,
    EntityType.PERSONA,
    EntityType.CHARACTER,
    EntityType.USER_PROMPT,
    EntityType.SETTING,
    EntityType.CHAT_SESSION,
    EntityType.CHAT_MESSAGE,
    EntityType.MESSAGE_VERSION,
]


class UnresolvedReferenceError(Exception):
    """Raised when a record's parent has no resolution in the target store."""

    def __init__(self, parent: EntityType, exported_id: int, reason: str) -> None:
        self.parent = parent
        self.exported_id = exported_id
        super().__init__(f"{parent.label} {exported_id} {reason}")


@dataclass
class _Run:
    """State scoped to a single reconciliation run."""

    data: SnapshotData
    xref: CrossReferenceTable = field(default_factory=CrossReferenceTable)
    report: ReportAggregator = field(default_factory=ReportAggregator)
    _indexes: dict[EntityType, dict[int, dict]] = field(default_factory=dict)
    _locks: dict[tuple[EntityType, NaturalKey], asyncio.Lock] = field(default_factory=dict)

    def index(self, entity: EntityType) -> dict[int, dict]:
        if entity not in self._indexes:
            self._indexes[entity] = index_by_id(self.data.records(entity))
        return self._indexes[entity]

    def lock_for(self, entity: EntityType, key: NaturalKey) -> asyncio.Lock:
        """One lock per natural key, so concurrent same-key records link."""
        return self._locks.setdefault((entity, key), asyncio.Lock())


class Reconciler:
    """Runs the import stage pipeline against a RecordStore."""

    def __init__(
        self, store: RecordStore, scheduler: BatchScheduler | None = None
    ) -> None:
        self._store = store
        self._scheduler = scheduler or BatchScheduler()

    async def run(self, envelope: SnapshotEnvelope) -> ImportReport:
        """Reconcile every stage and return the report. Never raises per record."""
        run = _Run(envelope.data)
        for entity in STAGE_ORDER:
            await self._run_stage(run, entity)
        report = run.report.build()
        logger.info(
            "Import finished: %d imported, %d skipped, %d errors",
            report.summary.total_imported,
            report.summary.total_skipped,
            report.summary.total_errors,
        )
        return report

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run_stage(self, run: _Run, entity: EntityType) -> None:
        records = list(enumerate(run.data.records(entity)))
        if not records:
            return
        logger.info("Import stage %s: %d record(s)", entity.label, len(records))

        async def process(item: tuple[int, Any]) -> None:
            position, raw = item
            await self._reconcile_record(run, entity, position, raw)

        await self._scheduler.run(records, process)
        counts = run.report.counts(entity)
        logger.info(
            "Import stage %s done: %d imported, %d skipped",
            entity.label, counts.imported, counts.skipped,
        )

    async def _reconcile_record(
        self, run: _Run, entity: EntityType, position: int, raw: Any
    ) -> None:
        exported_id = _exported_id(raw)
        reference: object = exported_id if exported_id is not None else _fallback_reference(
            entity, position, raw
        )
        try:
            if _is_sensitive(entity, raw):
                run.report.skipped(entity)
                return

            if exported_id is not None:
                run.xref.claim(entity, exported_id)

            record = ENTITY_SPECS[entity].model.model_validate(raw)
            record = self._resolve_parents(run, entity, record)
            key = natural_key(entity, record)
            if exported_id is None:
                reference = describe_key(key)

            async with run.lock_for(entity, key):
                existing = await self._store.find(entity, **key_lookup(entity, key))
                if existing is not None:
                    target, outcome = existing, "linked"
                else:
                    target = await self._store.create(entity, _row_for(record))
                    outcome = "imported"

            target_id = target["key"] if entity is EntityType.SETTING else target["id"]
            run.xref.register(entity, exported_id, Resolution(target_id, key, outcome))
            if outcome == "imported":
                run.report.imported(entity)
            else:
                run.report.skipped(entity)
        except Exception as e:
            run.report.error(entity, reference, e)

    # ------------------------------------------------------------------
    # Parent resolution
    # ------------------------------------------------------------------

    def _resolve_parents(
        self, run: _Run, entity: EntityType, record: EntityRecord
    ) -> EntityRecord:
        """Return the record with parent ids re-pointed into the target store."""
        if entity is EntityType.CHARACTER and record.group_id is not None:
            return record.model_copy(update={
                "group_id": self._optional_group(run, record),
            })
        if entity is EntityType.CHAT_SESSION:
            return record.model_copy(update={
                "persona_id": self._via_natural_key(run, EntityType.PERSONA, record.persona_id),
                "character_id": self._via_natural_key(run, EntityType.CHARACTER, record.character_id),
            })
        if entity is EntityType.CHAT_MESSAGE:
            return record.model_copy(update={
                "session_id": self._via_exported_id(run, EntityType.CHAT_SESSION, record.session_id),
            })
        if entity is EntityType.MESSAGE_VERSION:
            return record.model_copy(update={
                "message_id": self._via_exported_id(run, EntityType.CHAT_MESSAGE, record.message_id),
            })
        return record

    @classmethod
    def _optional_group(cls, run: _Run, record: EntityRecord) -> int | None:
        """Target group id, or None when the exported group did not make it.

        The group is an optional parent: an unknown, malformed or failed group
        leaves the character ungrouped instead of failing it.
        """
        try:
            return cls._via_natural_key(run, EntityType.CHARACTER_GROUP, record.group_id)
        except (UnresolvedReferenceError, ValidationError) as e:
            logger.warning(
                "Character %r imported without its group: %s", record.name, e
            )
            return None

    @staticmethod
    def _via_natural_key(run: _Run, parent: EntityType, exported_id: int) -> int:
        """Exported id -> exported parent's natural key -> target id."""
        key = exported_parent_key(parent, run.index(parent), exported_id)
        if key is None:
            raise UnresolvedReferenceError(parent, exported_id, "is not in the snapshot")
        target = run.xref.target_for_key(parent, key)
        if target is None:
            raise UnresolvedReferenceError(parent, exported_id, "was not imported")
        return int(target)

    @staticmethod
    def _via_exported_id(run: _Run, parent: EntityType, exported_id: int) -> int:
        target = run.xref.target_for_id(parent, exported_id)
        if target is None:
            raise UnresolvedReferenceError(parent, exported_id, "was not imported")
        return int(target)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _exported_id(raw: Any) -> int | None:
    if isinstance(raw, dict) and isinstance(raw.get("id"), int) and not isinstance(raw["id"], bool):
        return raw["id"]
    return None


def _is_sensitive(entity: EntityType, raw: Any) -> bool:
    return (
        entity is EntityType.SETTING
        and isinstance(raw, dict)
        and raw.get("key") in SENSITIVE_SETTING_KEYS
    )


def _fallback_reference(entity: EntityType, position: int, raw: Any) -> str:
    if entity is EntityType.SETTING and isinstance(raw, dict) and raw.get("key"):
        return repr(raw["key"])
    return f"#{position}"


def _row_for(record: EntityRecord) -> dict[str, Any]:
    """Column values for a new row, filling missing timestamps with now."""
    row = record.model_dump(exclude={"id"})
    now = utc_now()
    for column in ("created_at", "updated_at"):
        if column in row and row[column] is None:
            row[column] = now
    return row
