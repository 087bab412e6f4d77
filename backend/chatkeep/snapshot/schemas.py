"""Pydantic schemas for the snapshot envelope."""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chatkeep.models import EntityType

FORMAT_VERSION = "1.0.0"
SUPPORTED_MAJOR_VERSION = "1"

# Collection order inside ``data`` for exported documents.
COLLECTION_ORDER: list[EntityType] = [
    EntityType.CHARACTER_GROUP,
    EntityType.PERSONA,
    EntityType.CHARACTER,
    EntityType.CHAT_SESSION,
    EntityType.CHAT_MESSAGE,
    EntityType.MESSAGE_VERSION,
    EntityType.USER_PROMPT,
    EntityType.SETTING,
]


class SnapshotData(BaseModel):
    """Raw per-collection record lists.

    Records stay as decoded JSON here; each one is validated individually
    during reconciliation so that one malformed record cannot sink the file.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    character_groups: list[Any] = Field(default_factory=list)
    personas: list[Any] = Field(default_factory=list)
    characters: list[Any] = Field(default_factory=list)
    chat_sessions: list[Any] = Field(default_factory=list)
    chat_messages: list[Any] = Field(default_factory=list)
    message_versions: list[Any] = Field(default_factory=list)
    user_prompts: list[Any] = Field(default_factory=list)
    settings: list[Any] = Field(default_factory=list)

    def records(self, entity: EntityType) -> list[Any]:
        return getattr(self, _FIELD_FOR[entity])

    def counts(self) -> dict[str, int]:
        return {entity.value: len(self.records(entity)) for entity in COLLECTION_ORDER}


_FIELD_FOR: dict[EntityType, str] = {
    EntityType.CHARACTER_GROUP: "character_groups",
    EntityType.PERSONA: "personas",
    EntityType.CHARACTER: "characters",
    EntityType.CHAT_SESSION: "chat_sessions",
    EntityType.CHAT_MESSAGE: "chat_messages",
    EntityType.MESSAGE_VERSION: "message_versions",
    EntityType.USER_PROMPT: "user_prompts",
    EntityType.SETTING: "settings",
}


class SnapshotEnvelope(BaseModel):
    """A decoded snapshot. ``version`` is accepted for older exports."""

    model_config = ConfigDict(populate_by_name=True)

    format_version: str = Field(
        validation_alias=AliasChoices("formatVersion", "version", "format_version"),
        serialization_alias="formatVersion",
    )
    exported_at: str | None = Field(default=None, alias="exportedAt")
    data: SnapshotData
    metadata: dict[str, Any] = Field(default_factory=dict)
