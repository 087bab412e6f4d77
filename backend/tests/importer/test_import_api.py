"""Tests for the database import HTTP API."""

from chatkeep.importer.router import get_import_service
from chatkeep.importer.service import ImportService
from chatkeep.main import app
from chatkeep.snapshot.codec import encode_archive
from tests.fixtures import (
    make_character,
    make_full_snapshot,
    make_session,
    make_snapshot,
    to_json_bytes,
)


def _upload(content: bytes, filename: str = "backup.json") -> dict:
    return {"file": (filename, content, "application/octet-stream")}


class TestImportEndpoint:
    async def test_import_json(self, client):
        resp = await client.post(
            "/api/database/import", files=_upload(to_json_bytes(make_full_snapshot()))
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Database import completed"
        assert body["results"]["personas"] == {"imported": 1, "skipped": 0}
        assert body["summary"] == {"totalImported": 10, "totalSkipped": 0, "totalErrors": 0}
        assert body["errors"] == []

    async def test_import_zip_twice(self, client):
        archive = encode_archive(make_full_snapshot())
        await client.post("/api/database/import", files=_upload(archive, "backup.zip"))
        resp = await client.post("/api/database/import", files=_upload(archive, "backup.zip"))

        assert resp.status_code == 200
        assert resp.json()["summary"]["totalImported"] == 0
        assert resp.json()["summary"]["totalSkipped"] == 10

    async def test_record_errors_still_succeed(self, client):
        raw = make_snapshot(
            characters=[make_character(30)],
            chatSessions=[make_session(50, persona_id=99, character_id=30)],
        )
        resp = await client.post("/api/database/import", files=_upload(to_json_bytes(raw)))

        assert resp.status_code == 200
        body = resp.json()
        assert body["summary"]["totalErrors"] == 1
        assert body["errors"][0].startswith("ChatSession 50:")

    async def test_wrong_extension(self, client):
        resp = await client.post("/api/database/import", files=_upload(b"{}", "backup.txt"))
        assert resp.status_code == 400
        assert resp.json()["detail"]["error"] == "Invalid file type"

    async def test_invalid_json(self, client):
        resp = await client.post("/api/database/import", files=_upload(b"{oops"))
        assert resp.status_code == 400
        assert resp.json()["detail"]["error"] == "Invalid JSON file format"

    async def test_archive_without_document(self, client):
        resp = await client.post(
            "/api/database/import", files=_upload(b"PK\x05\x06" + b"\x00" * 18, "backup.zip")
        )
        assert resp.status_code == 400
        assert resp.json()["detail"]["error"] == "Invalid zip file format"

    async def test_malformed_nesting_is_a_bad_request(self, client):
        raw = {"formatVersion": "1.0.0", "data": {"chatSessions": [{"id": 1, "messages": 5}]}}
        resp = await client.post("/api/database/import", files=_upload(to_json_bytes(raw)))
        assert resp.status_code == 400
        assert resp.json()["detail"]["error"] == "Invalid export file format"

    async def test_oversize(self, client, db):
        app.dependency_overrides[get_import_service] = lambda: ImportService(
            db, max_upload_bytes=64
        )
        resp = await client.post(
            "/api/database/import", files=_upload(to_json_bytes(make_full_snapshot()))
        )
        assert resp.status_code == 413
        assert resp.json()["detail"]["error"] == "File too large"

    async def test_store_unavailable(self, client, db):
        await db.close()
        resp = await client.post(
            "/api/database/import", files=_upload(to_json_bytes(make_full_snapshot()))
        )
        assert resp.status_code == 503

    async def test_missing_file(self, client):
        resp = await client.post("/api/database/import")
        assert resp.status_code == 422


class TestStagedEndpoints:
    async def test_stage_then_apply(self, client):
        resp = await client.post(
            "/api/database/import/stage", files=_upload(to_json_bytes(make_full_snapshot()))
        )
        assert resp.status_code == 200
        staged = resp.json()
        assert staged["formatVersion"] == "1.0.0"
        assert staged["totalRecords"]["chatSessions"] == 1

        resp = await client.post(f"/api/database/import/{staged['token']}/apply")
        assert resp.status_code == 200
        assert resp.json()["summary"]["totalImported"] == 10

        resp = await client.post(f"/api/database/import/{staged['token']}/apply")
        assert resp.status_code == 404

    async def test_stage_rejects_bad_file(self, client):
        resp = await client.post("/api/database/import/stage", files=_upload(b"[]"))
        assert resp.status_code == 400
        assert resp.json()["detail"]["error"] == "Invalid export file format"

    async def test_apply_unknown_token(self, client):
        resp = await client.post("/api/database/import/deadbeef/apply")
        assert resp.status_code == 404
        assert resp.json()["detail"]["error"] == "Pending import not found"
