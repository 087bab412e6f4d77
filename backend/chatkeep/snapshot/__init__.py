"""Snapshot envelope and its JSON/zip containers."""

from chatkeep.snapshot.codec import SnapshotFormatError, decode_snapshot
from chatkeep.snapshot.schemas import FORMAT_VERSION, SnapshotEnvelope

__all__ = ["FORMAT_VERSION", "SnapshotEnvelope", "SnapshotFormatError", "decode_snapshot"]
