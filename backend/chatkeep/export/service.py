"""Export service: reads the whole store into a snapshot envelope."""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any

from chatkeep.db.records import RecordStore
from chatkeep.models import ENTITY_SPECS, EntityType
from chatkeep.snapshot.codec import (
    SnapshotContainer,
    build_envelope,
    encode_archive,
    encode_json,
    export_filename,
)

logger = logging.getLogger(__name__)


class ExportService:
    """Builds snapshot artifacts from materialized state. Read-only."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def export_envelope(self, *, exported_at: datetime | None = None) -> dict[str, Any]:
        """Read every entity type and wrap the records in the envelope.

        Sessions carry their messages, and messages their versions, nested
        underneath. The nesting is assembled from the flat message and version
        reads rather than queried per session.
        """
        records: dict[EntityType, list[dict]] = {}
        for entity in EntityType:
            rows = await self._store.list_all(entity)
            model = ENTITY_SPECS[entity].model
            records[entity] = [
                model.model_validate(row).model_dump(by_alias=True) for row in rows
            ]

        versions_by_message: dict[int, list[dict]] = defaultdict(list)
        for version in records[EntityType.MESSAGE_VERSION]:
            versions_by_message[version["messageId"]].append(version)

        messages_by_session: dict[int, list[dict]] = defaultdict(list)
        for message in records[EntityType.CHAT_MESSAGE]:
            versions = sorted(
                versions_by_message.get(message["id"], []), key=lambda v: v["version"]
            )
            messages_by_session[message["sessionId"]].append({**message, "versions": versions})

        records[EntityType.CHAT_SESSION] = [
            {**session, "messages": messages_by_session.get(session["id"], [])}
            for session in records[EntityType.CHAT_SESSION]
        ]

        envelope = build_envelope(records, exported_at=exported_at)
        logger.info("Export built: %s", envelope["metadata"]["totalRecords"])
        return envelope

    async def export_file(
        self,
        container: SnapshotContainer = "zip",
        *,
        exported_at: datetime | None = None,
    ) -> tuple[str, bytes]:
        """Return (filename, content) for a download in the given container."""
        envelope = await self.export_envelope(exported_at=exported_at)
        if container == "json":
            content = encode_json(envelope)
        else:
            content = encode_archive(envelope)
        return export_filename(container, exported_at), content
