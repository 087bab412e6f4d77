"""
Back up or restore the chatkeep database from the command line.

``export`` writes a snapshot file (zip by default); ``import`` merges a
snapshot file into the configured database and prints the import report.
The database path comes from CHATKEEP_DB / backend/.env, as for the server.

Usage:
    cd backend
    python scripts/snapshot.py export backups/ [--format json]
    python scripts/snapshot.py import backups/chatkeep-export-....zip
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from chatkeep.config import Settings
from chatkeep.db.connection import Database, StoreUnavailableError
from chatkeep.db.records import RecordStore
from chatkeep.export.service import ExportService
from chatkeep.importer.service import ImportService, UploadTooLargeError
from chatkeep.snapshot.codec import SnapshotFormatError


async def run_export(settings: Settings, target: Path, container: str) -> int:
    db = await Database.connect(settings.database_path)
    try:
        filename, content = await ExportService(RecordStore(db)).export_file(container)
    finally:
        await db.close()

    path = target / filename if target.is_dir() else target
    path.write_bytes(content)
    print(f"Export written: {path} ({len(content)} bytes)")
    return 0


async def run_import(settings: Settings, source: Path) -> int:
    if not source.exists():
        print(f"Snapshot not found at {source}")
        return 1

    db = await Database.connect(settings.database_path)
    try:
        service = ImportService.from_settings(db, settings)
        report = await service.import_snapshot(source.read_bytes(), source.name)
    except (SnapshotFormatError, UploadTooLargeError, StoreUnavailableError) as e:
        print(f"Import failed: {e}")
        return 1
    finally:
        await db.close()

    for collection, counts in report.results.items():
        print(f"  {collection}: {counts.imported} imported, {counts.skipped} skipped")
    for error in report.errors:
        print(f"  ERROR {error}")
    summary = report.summary
    print(
        f"Done. {summary.total_imported} imported, {summary.total_skipped} skipped, "
        f"{summary.total_errors} error(s)."
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="chatkeep snapshot backup and restore")
    sub = parser.add_subparsers(dest="command", required=True)

    export_parser = sub.add_parser("export", help="write a snapshot of the database")
    export_parser.add_argument("target", type=Path, help="output file or directory")
    export_parser.add_argument("--format", choices=["zip", "json"], default="zip")

    import_parser = sub.add_parser("import", help="merge a snapshot into the database")
    import_parser.add_argument("source", type=Path, help="snapshot .zip or .json file")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    settings = Settings.from_env()
    print(f"Database: {settings.database_path}")

    if args.command == "export":
        return asyncio.run(run_export(settings, args.target, args.format))
    return asyncio.run(run_import(settings, args.source))


if __name__ == "__main__":
    sys.exit(main())
