"""Shared test helpers: wire-format records, snapshot envelopes, store seeding."""

import json
from typing import Any

from chatkeep.db.records import RecordStore
from chatkeep.models import EntityType

TS = "2025-01-15T10:30:00.000Z"


# -- Wire-format records (camelCase, as found in a snapshot) --


def make_group(id: int, name: str = "Fantasy", **overrides: Any) -> dict:
    return {
        "id": id,
        "name": name,
        "color": "#6366f1",
        "isCollapsed": False,
        "sortOrder": 0,
        "createdAt": TS,
        "updatedAt": TS,
        **overrides,
    }


def make_persona(id: int, name: str = "Alex", profile_name: str | None = None, **overrides: Any) -> dict:
    return {
        "id": id,
        "name": name,
        "profileName": profile_name,
        "profile": f"{name} is curious.",
        "createdAt": TS,
        "updatedAt": TS,
        **overrides,
    }


def make_character(
    id: int,
    name: str = "Aria",
    profile_name: str | None = None,
    group_id: int | None = None,
    **overrides: Any,
) -> dict:
    return {
        "id": id,
        "name": name,
        "profileName": profile_name,
        "bio": None,
        "scenario": "A quiet tavern.",
        "personality": "Warm and witty.",
        "firstMessage": "Welcome, traveller.",
        "exampleDialogue": "<START>",
        "groupId": group_id,
        "sortOrder": 0,
        "createdAt": TS,
        "updatedAt": TS,
        **overrides,
    }


def make_prompt(id: int, title: str = "Default", body: str = "Be concise.", **overrides: Any) -> dict:
    return {"id": id, "title": title, "body": body, "createdAt": TS, "updatedAt": TS, **overrides}


def make_setting(key: str, value: str, **overrides: Any) -> dict:
    return {"key": key, "value": value, "createdAt": TS, "updatedAt": TS, **overrides}


def make_session(
    id: int,
    persona_id: int,
    character_id: int,
    created_at: str = TS,
    **overrides: Any,
) -> dict:
    return {
        "id": id,
        "personaId": persona_id,
        "characterId": character_id,
        "summary": None,
        "description": None,
        "lastSummary": None,
        "notes": None,
        "lastApiRequest": None,
        "lastApiResponse": None,
        "createdAt": created_at,
        "updatedAt": created_at,
        **overrides,
    }


def make_message(
    id: int,
    session_id: int,
    content: str = "Hello",
    role: str = "user",
    created_at: str = TS,
    **overrides: Any,
) -> dict:
    return {
        "id": id,
        "sessionId": session_id,
        "role": role,
        "content": content,
        "createdAt": created_at,
        **overrides,
    }


def make_version(
    id: int,
    message_id: int,
    version: int = 1,
    content: str = "Hello",
    is_active: bool = True,
    **overrides: Any,
) -> dict:
    return {
        "id": id,
        "messageId": message_id,
        "content": content,
        "version": version,
        "isActive": is_active,
        "createdAt": TS,
        **overrides,
    }


def make_snapshot(**collections: list[dict]) -> dict:
    """Build an envelope. Keyword names are collection names (camelCase)."""
    data = {entity.value: list(collections.get(entity.value, [])) for entity in EntityType}
    return {
        "formatVersion": "1.0.0",
        "exportedAt": TS,
        "data": data,
        "metadata": {"totalRecords": {k: len(v) for k, v in data.items()}},
    }


def make_full_snapshot() -> dict:
    """One of everything, linked through exported ids that differ from 1..n."""
    return make_snapshot(
        characterGroups=[make_group(10, "Fantasy")],
        personas=[make_persona(20, "Alex")],
        characters=[make_character(30, "Aria", group_id=10)],
        userPrompts=[make_prompt(40, "Default")],
        settings=[make_setting("theme", "dark")],
        chatSessions=[make_session(50, persona_id=20, character_id=30, notes="n")],
        chatMessages=[
            make_message(60, 50, "Hi Aria", role="user", created_at="2025-01-15T10:31:00.000Z"),
            make_message(61, 50, "Hello!", role="assistant", created_at="2025-01-15T10:31:05.000Z"),
        ],
        messageVersions=[
            make_version(70, 61, version=1, content="Hello!", is_active=False),
            make_version(71, 61, version=2, content="Hello there!", is_active=True),
        ],
    )


def to_json_bytes(envelope: dict) -> bytes:
    return json.dumps(envelope).encode("utf-8")


# -- Store seeding (target-side rows, snake_case) --


async def seed_group(store: RecordStore, name: str = "Fantasy") -> dict:
    return await store.create(EntityType.CHARACTER_GROUP, {
        "name": name,
        "color": "#ff0000",
        "is_collapsed": False,
        "sort_order": 5,
        "created_at": TS,
        "updated_at": TS,
    })


async def seed_persona(store: RecordStore, name: str = "Alex", profile_name: str | None = None) -> dict:
    return await store.create(EntityType.PERSONA, {
        "name": name,
        "profile_name": profile_name,
        "profile": "pre-existing",
        "created_at": TS,
        "updated_at": TS,
    })


async def seed_setting(store: RecordStore, key: str, value: str) -> dict:
    return await store.create(EntityType.SETTING, {
        "key": key,
        "value": value,
        "created_at": TS,
        "updated_at": TS,
    })
