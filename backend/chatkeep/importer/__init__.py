"""Snapshot import: natural keys, cross-references, staged reconciliation."""

from chatkeep.importer.reconciler import Reconciler
from chatkeep.importer.report import ImportReport
from chatkeep.importer.service import ImportService

__all__ = ["ImportReport", "ImportService", "Reconciler"]
