"""
kgprox - Entity canonicalization and proximity-ranked fact retrieval.

Facts (subject-action-object triples extracted from a document corpus) are
resolved through a flat alias registry, connected into an undirected entity
graph, and ranked by hop distance from one principal entity, so that a
request for K facts out of tens of thousands returns the K most central ones.

The SQLite backend is imported lazily so that the lightweight models and
algorithms can be used without loading SQLModel/SQLAlchemy:

    # This does NOT import sqlmodel:
    from kgprox import CanonicalRegistry, DistanceIndex

    # This DOES import sqlmodel (when the symbol is accessed):
    from kgprox import SQLiteStore
"""

from typing import TYPE_CHECKING

from kgprox.config import Settings, load_settings
from kgprox.distance import DistanceIndex
from kgprox.errors import (
    AliasIntegrityError,
    DataIntegrityError,
    KgproxError,
    QueryValidationError,
    RebuildCancelled,
    RebuildError,
    SnapshotNotReadyError,
)
from kgprox.graph import EntityGraph, build_graph
from kgprox.models import AliasMapping, DocumentRecord, Fact, TagCluster
from kgprox.query.spec import QuerySpec
from kgprox.registry import CanonicalRegistry
from kgprox.service import QueryService
from kgprox.snapshot import Snapshot, SnapshotHandle, SnapshotManager, build_snapshot

if TYPE_CHECKING:
    from kgprox.storage.sqlite import SQLiteStore

__all__ = [
    "AliasIntegrityError",
    "AliasMapping",
    "CanonicalRegistry",
    "DataIntegrityError",
    "DistanceIndex",
    "DocumentRecord",
    "EntityGraph",
    "Fact",
    "KgproxError",
    "QuerySpec",
    "QueryService",
    "QueryValidationError",
    "RebuildCancelled",
    "RebuildError",
    "SQLiteStore",
    "Settings",
    "Snapshot",
    "SnapshotHandle",
    "SnapshotManager",
    "SnapshotNotReadyError",
    "TagCluster",
    "build_graph",
    "build_snapshot",
    "load_settings",
]

__version__ = "0.1.0"


def __getattr__(name: str):
    """Lazy import for the SQLite backend to avoid loading sqlmodel on light imports."""
    if name == "SQLiteStore":
        from kgprox.storage.sqlite import SQLiteStore

        return SQLiteStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
