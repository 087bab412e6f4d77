"""Tests for natural keys and the cross-reference table."""

import pytest
from pydantic import ValidationError

from chatkeep.importer.keys import (
    describe_key,
    exported_parent_key,
    index_by_id,
    key_lookup,
    natural_key,
)
from chatkeep.importer.xref import CrossReferenceTable, DuplicateResolutionError, Resolution
from chatkeep.models import EntityType
from tests.fixtures import (
    TS,
    make_character,
    make_group,
    make_message,
    make_persona,
    make_session,
    make_setting,
    make_version,
)


class TestNaturalKey:
    def test_group_key_is_name(self):
        assert natural_key(EntityType.CHARACTER_GROUP, make_group(1, "Fantasy")) == ("Fantasy",)

    def test_persona_key_includes_absent_profile_name(self):
        assert natural_key(EntityType.PERSONA, make_persona(1, "Alex")) == ("Alex", None)

    def test_character_key_ignores_group_and_id(self):
        a = make_character(1, "Aria", profile_name="v2", group_id=3)
        b = make_character(99, "Aria", profile_name="v2", group_id=None)
        assert natural_key(EntityType.CHARACTER, a) == natural_key(EntityType.CHARACTER, b)

    def test_setting_key_is_key(self):
        assert natural_key(EntityType.SETTING, make_setting("theme", "dark")) == ("theme",)

    def test_session_key_uses_canonical_timestamp(self):
        a = make_session(1, persona_id=2, character_id=3, created_at="2025-01-15T10:30:00Z")
        b = make_session(1, persona_id=2, character_id=3, created_at="2025-01-15T11:30:00+01:00")
        assert natural_key(EntityType.CHAT_SESSION, a) == (2, 3, TS)
        assert natural_key(EntityType.CHAT_SESSION, b) == (2, 3, TS)

    def test_message_key(self):
        record = make_message(1, 8, "Hi", role="assistant")
        assert natural_key(EntityType.CHAT_MESSAGE, record) == (8, "assistant", "Hi", TS)

    def test_version_key(self):
        record = make_version(1, 4, version=2, content="v2")
        assert natural_key(EntityType.MESSAGE_VERSION, record) == (4, 2, "v2")

    def test_missing_field_raises(self):
        record = make_character(1)
        del record["personality"]
        with pytest.raises(ValidationError):
            natural_key(EntityType.CHARACTER, record)

    def test_key_lookup_maps_columns(self):
        assert key_lookup(EntityType.PERSONA, ("Alex", None)) == {
            "name": "Alex",
            "profile_name": None,
        }

    def test_describe_key(self):
        assert describe_key(("Fantasy",)) == "'Fantasy'"
        assert describe_key(("Alex", None)) == "'Alex'"
        assert describe_key(("Aria", "v2")) == "('Aria', 'v2')"


class TestExportedParentKey:
    def test_index_skips_records_without_integer_id(self):
        index = index_by_id([
            make_group(True, "Flag"), make_group(1), {"id": "2"}, "junk", make_group(1, "Other"),
        ])
        assert list(index) == [1]
        assert index[1]["name"] == "Fantasy"

    def test_first_hop_resolves_parent_key(self):
        index = index_by_id([make_group(10, "Fantasy")])
        assert exported_parent_key(EntityType.CHARACTER_GROUP, index, 10) == ("Fantasy",)

    def test_absent_parent_returns_none(self):
        assert exported_parent_key(EntityType.PERSONA, {}, 99) is None


class TestCrossReferenceTable:
    def test_register_and_lookup(self):
        xref = CrossReferenceTable()
        xref.register(EntityType.PERSONA, 20, Resolution(1, ("Alex", None), "imported"))

        assert xref.is_resolved(EntityType.PERSONA, 20)
        assert xref.target_for_id(EntityType.PERSONA, 20) == 1
        assert xref.target_for_key(EntityType.PERSONA, ("Alex", None)) == 1
        assert xref.target_for_id(EntityType.CHARACTER, 20) is None

    def test_register_is_write_once(self):
        xref = CrossReferenceTable()
        xref.register(EntityType.PERSONA, 20, Resolution(1, ("Alex", None), "imported"))
        with pytest.raises(DuplicateResolutionError):
            xref.register(EntityType.PERSONA, 20, Resolution(2, ("Bo", None), "imported"))
        assert xref.target_for_id(EntityType.PERSONA, 20) == 1

    def test_claim_rejects_second_claim(self):
        xref = CrossReferenceTable()
        xref.claim(EntityType.CHAT_MESSAGE, 5)
        xref.claim(EntityType.CHAT_SESSION, 5)
        with pytest.raises(DuplicateResolutionError):
            xref.claim(EntityType.CHAT_MESSAGE, 5)

    def test_first_key_resolution_wins(self):
        xref = CrossReferenceTable()
        xref.register(EntityType.CHARACTER_GROUP, 1, Resolution(7, ("Fantasy",), "imported"))
        xref.register(EntityType.CHARACTER_GROUP, 2, Resolution(7, ("Fantasy",), "linked"))
        assert xref.target_for_key(EntityType.CHARACTER_GROUP, ("Fantasy",)) == 7
        assert set(xref.resolutions(EntityType.CHARACTER_GROUP)) == {1, 2}

    def test_setting_registered_by_key_only(self):
        xref = CrossReferenceTable()
        xref.register(EntityType.SETTING, None, Resolution("theme", ("theme",), "linked"))
        assert xref.target_for_key(EntityType.SETTING, ("theme",)) == "theme"
        assert xref.resolutions(EntityType.SETTING) == {}
