"""Canonical entity records for chatkeep.

Defined once here, referenced everywhere else. Field names match the SQL
columns (snake_case); the camelCase aliases are the snapshot wire format.
"""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from chatkeep.utils.timestamps import canonical_timestamp


class EntityType(str, Enum):
    """Entity types, valued by their snapshot collection name."""

    CHARACTER_GROUP = "characterGroups"
    PERSONA = "personas"
    CHARACTER = "characters"
    USER_PROMPT = "userPrompts"
    SETTING = "settings"
    CHAT_SESSION = "chatSessions"
    CHAT_MESSAGE = "chatMessages"
    MESSAGE_VERSION = "messageVersions"

    @property
    def label(self) -> str:
        return ENTITY_SPECS[self].label


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class EntityRecord(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("created_at", "updated_at", mode="before", check_fields=False)
    @classmethod
    def _canonical_timestamps(cls, value: object) -> object:
        if value is None or isinstance(value, str) and not value.strip():
            return None
        return canonical_timestamp(value)  # type: ignore[arg-type]


class CharacterGroup(EntityRecord):
    id: int | None = None
    name: str
    color: str = "#6366f1"
    is_collapsed: bool = False
    sort_order: int = 0
    created_at: str | None = None
    updated_at: str | None = None


class Persona(EntityRecord):
    id: int | None = None
    name: str
    profile_name: str | None = None
    profile: str
    created_at: str | None = None
    updated_at: str | None = None


class Character(EntityRecord):
    id: int | None = None
    name: str
    profile_name: str | None = None
    bio: str | None = None
    scenario: str
    personality: str
    first_message: str
    example_dialogue: str
    group_id: int | None = None
    sort_order: int = 0
    created_at: str | None = None
    updated_at: str | None = None


class UserPrompt(EntityRecord):
    id: int | None = None
    title: str
    body: str
    created_at: str | None = None
    updated_at: str | None = None


class Setting(EntityRecord):
    key: str
    value: str
    created_at: str | None = None
    updated_at: str | None = None


class ChatSession(EntityRecord):
    id: int | None = None
    persona_id: int
    character_id: int
    summary: str | None = None
    description: str | None = None
    last_summary: int | None = None
    notes: str | None = None
    last_api_request: str | None = None
    last_api_response: str | None = None
    created_at: str
    updated_at: str | None = None


class ChatMessage(EntityRecord):
    id: int | None = None
    session_id: int
    role: str
    content: str
    created_at: str


class MessageVersion(EntityRecord):
    id: int | None = None
    message_id: int
    content: str
    version: int
    is_active: bool = False
    created_at: str | None = None


# ---------------------------------------------------------------------------
# Entity registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EntitySpec:
    label: str
    table: str
    model: type[EntityRecord]
    order_by: str = "id"


ENTITY_SPECS: dict[EntityType, EntitySpec] = {
    EntityType.CHARACTER_GROUP: EntitySpec("CharacterGroup", "character_groups", CharacterGroup),
    EntityType.PERSONA: EntitySpec("Persona", "personas", Persona),
    EntityType.CHARACTER: EntitySpec("Character", "characters", Character),
    EntityType.USER_PROMPT: EntitySpec("UserPrompt", "user_prompts", UserPrompt),
    EntityType.SETTING: EntitySpec("Setting", "settings", Setting, order_by="key"),
    EntityType.CHAT_SESSION: EntitySpec("ChatSession", "chat_sessions", ChatSession),
    EntityType.CHAT_MESSAGE: EntitySpec("ChatMessage", "chat_messages", ChatMessage),
    EntityType.MESSAGE_VERSION: EntitySpec("MessageVersion", "message_versions", MessageVersion),
}

# Setting keys that import never creates or overwrites.
SENSITIVE_SETTING_KEYS = frozenset({
    "authPassword",
    "authPasswordVersion",
    "authJwtSecret",
})
