"""Snapshot codec: envelope construction, JSON/zip containers, decoding.

Export produces either the flat JSON envelope or a zip archive holding
``database.json`` plus a README manifest. Import accepts either, extracts
and parses the envelope, and validates its top-level structure. Decoding
is the only step of an import that fails as a whole.
"""

import io
import json
import zipfile
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import ValidationError

from chatkeep.models import EntityType
from chatkeep.snapshot.schemas import (
    COLLECTION_ORDER,
    FORMAT_VERSION,
    SUPPORTED_MAJOR_VERSION,
    SnapshotEnvelope,
)
from chatkeep.utils.timestamps import canonical_timestamp, filename_timestamp

ARCHIVE_DOCUMENT = "database.json"
ARCHIVE_MANIFEST = "README.txt"

SnapshotContainer = Literal["json", "zip"]


class SnapshotFormatError(Exception):
    """Raised when an uploaded snapshot is structurally unusable."""

    def __init__(self, error: str, details: str) -> None:
        self.error = error
        self.details = details
        super().__init__(f"{error}: {details}")


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def build_envelope(
    records: dict[EntityType, list[dict]],
    *,
    exported_at: datetime | None = None,
) -> dict[str, Any]:
    """Wrap per-entity wire records in the versioned envelope."""
    data = {entity.value: records.get(entity, []) for entity in COLLECTION_ORDER}
    return {
        "formatVersion": FORMAT_VERSION,
        "exportedAt": canonical_timestamp(exported_at or datetime.now(UTC)),
        "data": data,
        "metadata": {
            "totalRecords": {name: len(items) for name, items in data.items()},
        },
    }


def encode_json(envelope: dict[str, Any]) -> bytes:
    return json.dumps(envelope, indent=2, ensure_ascii=False).encode("utf-8")


def build_manifest(envelope: dict[str, Any]) -> str:
    """Human-readable README listing per-collection record counts."""
    totals = envelope.get("metadata", {}).get("totalRecords", {})
    lines = [
        "chatkeep database export",
        f"Generated: {envelope.get('exportedAt')}",
        f"Format Version: {envelope.get('formatVersion')}",
        "",
        "Contents:",
        f"- {ARCHIVE_DOCUMENT}: complete database export in JSON format",
        "- This archive can be imported back into chatkeep",
        "",
        "Total Records:",
    ]
    lines.extend(f"- {name}: {count}" for name, count in totals.items())
    return "\n".join(lines) + "\n"


def encode_archive(envelope: dict[str, Any]) -> bytes:
    """Zip the envelope and its manifest with maximum DEFLATE compression."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        zf.writestr(ARCHIVE_DOCUMENT, encode_json(envelope))
        zf.writestr(ARCHIVE_MANIFEST, build_manifest(envelope))
    return buffer.getvalue()


def export_filename(container: SnapshotContainer, moment: datetime | None = None) -> str:
    return f"chatkeep-export-{filename_timestamp(moment)}.{container}"


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def detect_container(filename: str) -> SnapshotContainer:
    """Pick the container by file extension."""
    lowered = filename.lower()
    if lowered.endswith(".zip"):
        return "zip"
    if lowered.endswith(".json"):
        return "json"
    raise SnapshotFormatError(
        "Invalid file type", "Please upload a .zip or .json export file"
    )


def decode_snapshot(content: bytes, filename: str) -> SnapshotEnvelope:
    """Decode and structurally validate an uploaded snapshot.

    Raises SnapshotFormatError if the container cannot be opened, the JSON
    cannot be parsed, or required top-level fields are missing.
    """
    container = detect_container(filename)
    document = _read_archive(content) if container == "zip" else content
    raw = _load_json(document)
    return validate_envelope(raw)


def validate_envelope(raw: Any) -> SnapshotEnvelope:
    """Validate a parsed document as a snapshot envelope."""
    if not isinstance(raw, dict):
        raise SnapshotFormatError(
            "Invalid export file format", "Top level must be a JSON object"
        )
    if not isinstance(raw.get("data"), dict) or not (
        raw.get("formatVersion") or raw.get("version")
    ):
        raise SnapshotFormatError(
            "Invalid export file format",
            "File must contain data and formatVersion fields",
        )

    raw = {**raw, "data": _flatten_nested(raw["data"])}
    try:
        envelope = SnapshotEnvelope.model_validate(raw)
    except ValidationError as e:
        raise SnapshotFormatError("Invalid export file format", _describe(e)) from e

    major = envelope.format_version.split(".", 1)[0]
    if major != SUPPORTED_MAJOR_VERSION:
        raise SnapshotFormatError(
            "Unsupported format version",
            f"Expected {SUPPORTED_MAJOR_VERSION}.x, got {envelope.format_version}",
        )
    return envelope


def _read_archive(content: bytes) -> bytes:
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            if ARCHIVE_DOCUMENT not in zf.namelist():
                raise SnapshotFormatError(
                    "Invalid zip file format",
                    f"Zip file must contain {ARCHIVE_DOCUMENT}",
                )
            return zf.read(ARCHIVE_DOCUMENT)
    except (
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
        OSError,
        EOFError,
        NotImplementedError,
        RuntimeError,
    ) as e:
        # NotImplementedError: unsupported compression. RuntimeError: encrypted entry.
        raise SnapshotFormatError("Failed to read zip file", str(e)) from e


def _load_json(content: bytes) -> Any:
    try:
        return json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SnapshotFormatError("Invalid JSON file format", str(e)) from e


def _flatten_nested(data: dict[str, Any]) -> dict[str, Any]:
    """Derive flat message/version lists from sessions that nest them.

    Only applies when the flat collection is absent; a snapshot that carries
    both keeps its flat lists untouched.
    """
    sessions = data.get("chatSessions")
    if not isinstance(sessions, list) or "chatMessages" in data:
        return data

    messages: list[Any] = []
    for session in sessions:
        if not isinstance(session, dict):
            continue
        for message in _nested_list(session, "messages"):
            if isinstance(message, dict):
                messages.append({"sessionId": session.get("id"), **message})
    flattened = {**data, "chatMessages": messages}

    if "messageVersions" not in data:
        flattened["messageVersions"] = [
            {"messageId": message.get("id"), **version}
            for message in messages
            for version in _nested_list(message, "versions")
            if isinstance(version, dict)
        ]
    return flattened


def _nested_list(parent: dict[str, Any], field: str) -> list[Any]:
    value = parent.get(field)
    if value is None:
        return []
    if not isinstance(value, list):
        raise SnapshotFormatError(
            "Invalid export file format",
            f"{field} of record {parent.get('id')!r} must be a list",
        )
    return value


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}"
