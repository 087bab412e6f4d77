"""Report aggregation for a reconciliation run."""

import logging

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chatkeep.models import EntityType

logger = logging.getLogger(__name__)


class EntityCounts(BaseModel):
    imported: int = 0
    skipped: int = 0


class ImportSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_imported: int
    total_skipped: int
    total_errors: int


class ImportReport(BaseModel):
    results: dict[str, EntityCounts]
    errors: list[str] = Field(default_factory=list)
    summary: ImportSummary


class ReportAggregator:
    """Accumulates per-entity counts and a flat error list across all stages."""

    def __init__(self) -> None:
        self._counts: dict[EntityType, EntityCounts] = {
            entity: EntityCounts() for entity in EntityType
        }
        self._errors: list[str] = []

    def imported(self, entity: EntityType) -> None:
        self._counts[entity].imported += 1

    def skipped(self, entity: EntityType) -> None:
        self._counts[entity].skipped += 1

    def error(self, entity: EntityType, reference: object, exc: BaseException | str) -> None:
        """Record a record-level failure as ``"<EntityType> <ref>: <message>"``."""
        message = exc if isinstance(exc, str) else (str(exc) or type(exc).__name__)
        line = f"{entity.label} {reference}: {message}"
        logger.warning("Import record error: %s", line)
        self._errors.append(line)

    def counts(self, entity: EntityType) -> EntityCounts:
        return self._counts[entity].model_copy()

    @property
    def errors(self) -> list[str]:
        return list(self._errors)

    def build(self) -> ImportReport:
        results = {entity.value: counts.model_copy() for entity, counts in self._counts.items()}
        return ImportReport(
            results=results,
            errors=list(self._errors),
            summary=ImportSummary(
                total_imported=sum(c.imported for c in results.values()),
                total_skipped=sum(c.skipped for c in results.values()),
                total_errors=len(self._errors),
            ),
        )
