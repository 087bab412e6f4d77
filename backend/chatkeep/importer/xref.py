"""Cross-reference table: exported ids -> resolved target-store records.

Run-scoped. Built stage by stage so that later stages can re-point their
foreign keys into the target store's id space.
"""

from dataclasses import dataclass, field
from typing import Literal

from chatkeep.importer.keys import NaturalKey
from chatkeep.models import EntityType

Outcome = Literal["imported", "linked"]


@dataclass(frozen=True)
class Resolution:
    """Where one exported record ended up in the target store."""

    target_id: int | str
    natural_key: NaturalKey
    outcome: Outcome


class DuplicateResolutionError(Exception):
    """Raised when an exported id is resolved a second time in one run."""

    def __init__(self, entity: EntityType, exported_id: int) -> None:
        self.entity = entity
        self.exported_id = exported_id
        super().__init__(
            f"exported id {exported_id} already resolved for {entity.label}"
        )


@dataclass
class CrossReferenceTable:
    _by_id: dict[EntityType, dict[int, Resolution]] = field(default_factory=dict)
    _by_key: dict[EntityType, dict[NaturalKey, int | str]] = field(default_factory=dict)
    _claimed: dict[EntityType, set[int]] = field(default_factory=dict)

    def claim(self, entity: EntityType, exported_id: int) -> None:
        """Reserve an exported id before any I/O is done for it.

        Raises DuplicateResolutionError if the id was already claimed in this
        run, which makes concurrent duplicates within a batch fail fast.
        """
        claimed = self._claimed.setdefault(entity, set())
        if exported_id in claimed:
            raise DuplicateResolutionError(entity, exported_id)
        claimed.add(exported_id)

    def register(
        self,
        entity: EntityType,
        exported_id: int | None,
        resolution: Resolution,
    ) -> None:
        """Record a resolution. Write-once per exported id.

        Records without an exported id (settings) are only indexed by key.
        """
        if exported_id is not None:
            by_id = self._by_id.setdefault(entity, {})
            if exported_id in by_id:
                raise DuplicateResolutionError(entity, exported_id)
            by_id[exported_id] = resolution
        self._by_key.setdefault(entity, {}).setdefault(
            resolution.natural_key, resolution.target_id
        )

    def is_resolved(self, entity: EntityType, exported_id: int) -> bool:
        return exported_id in self._by_id.get(entity, {})

    def get(self, entity: EntityType, exported_id: int) -> Resolution | None:
        return self._by_id.get(entity, {}).get(exported_id)

    def target_for_id(self, entity: EntityType, exported_id: int) -> int | str | None:
        resolution = self.get(entity, exported_id)
        return resolution.target_id if resolution is not None else None

    def target_for_key(self, entity: EntityType, key: NaturalKey) -> int | str | None:
        """Second hop of parent resolution: natural key -> target id."""
        return self._by_key.get(entity, {}).get(key)

    def resolutions(self, entity: EntityType) -> dict[int, Resolution]:
        return dict(self._by_id.get(entity, {}))
