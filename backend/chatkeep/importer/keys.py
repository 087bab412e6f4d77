"""Natural keys: content-derived identities used to dedup across id spaces.

Pure functions, no I/O. A parent-scoped key (session, message, version)
must be computed from a record whose parent ids are already resolved into
the target store's id space.
"""

from collections.abc import Iterable
from typing import Any

from chatkeep.models import ENTITY_SPECS, EntityRecord, EntityType

NaturalKey = tuple[Any, ...]

# Column names making up each entity's natural key, in key-tuple order.
KEY_COLUMNS: dict[EntityType, tuple[str, ...]] = {
    EntityType.CHARACTER_GROUP: ("name",),
    EntityType.PERSONA: ("name", "profile_name"),
    EntityType.CHARACTER: ("name", "profile_name"),
    EntityType.USER_PROMPT: ("title",),
    EntityType.SETTING: ("key",),
    EntityType.CHAT_SESSION: ("persona_id", "character_id", "created_at"),
    EntityType.CHAT_MESSAGE: ("session_id", "role", "content", "created_at"),
    EntityType.MESSAGE_VERSION: ("message_id", "version", "content"),
}


def natural_key(entity: EntityType, record: EntityRecord | dict) -> NaturalKey:
    """Compute the natural key of a record.

    Accepts a validated record or a wire-format dict (camelCase). Raises
    pydantic.ValidationError if a dict is missing fields the entity needs.
    """
    if isinstance(record, dict):
        record = ENTITY_SPECS[entity].model.model_validate(record)
    return tuple(getattr(record, column) for column in KEY_COLUMNS[entity])


def key_lookup(entity: EntityType, key: NaturalKey) -> dict[str, Any]:
    """Column -> value mapping for querying the store by natural key."""
    return dict(zip(KEY_COLUMNS[entity], key, strict=True))


def describe_key(key: NaturalKey) -> str:
    """Short printable form of a key for error messages."""
    parts = [repr(part) for part in key if part is not None]
    return parts[0] if len(parts) == 1 else f"({', '.join(parts)})"


# ---------------------------------------------------------------------------
# Two-hop parent resolution, first hop: exported id -> exported natural key
# ---------------------------------------------------------------------------


def index_by_id(records: Iterable[Any]) -> dict[int, dict]:
    """Index exported wire records by their exported ``id``.

    Records without an integer id (booleans included) are left out; the first
    record wins for a repeated id.
    """
    index: dict[int, dict] = {}
    for record in records:
        if not isinstance(record, dict):
            continue
        exported_id = record.get("id")
        if isinstance(exported_id, int) and not isinstance(exported_id, bool):
            index.setdefault(exported_id, record)
    return index


def exported_parent_key(
    entity: EntityType, index: dict[int, dict], exported_id: int
) -> NaturalKey | None:
    """Natural key of the exported parent with ``exported_id``.

    Returns None if the snapshot holds no such parent. Raises
    pydantic.ValidationError if the parent record itself is malformed.
    """
    parent = index.get(exported_id)
    if parent is None:
        return None
    return natural_key(entity, parent)
