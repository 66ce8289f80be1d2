"""Shared fixtures: a small corpus around one principal entity.

The sample corpus forms this canonical graph::

    Jeffrey Epstein -- Alice -- Bob
    Jeffrey Epstein -- Carol
    Dave -- Erin                     (a separate component)

"Jeff E." and "J. Epstein" are registered aliases of "Jeffrey Epstein".
Fact 6 duplicates fact 1 and fact 5 carries a pre-1970 date, so it is part of
the graph but never served.
"""

from datetime import datetime, timezone

import pytest

from kgprox.clock import SnapshotClock
from kgprox.clusters import TagClusterIndex
from kgprox.config import Settings
from kgprox.models import AliasMapping, DocumentRecord, Fact, TagCluster
from kgprox.service import QueryService
from kgprox.snapshot import SnapshotManager
from kgprox.storage.memory import InMemoryAliasStore, InMemoryFactStore

PRINCIPAL = "Jeffrey Epstein"


def make_fact(fact_id: int, actor: str, target: str, **kwargs) -> Fact:
    """Create a fact with sensible defaults for the fields a test does not care about."""
    kwargs.setdefault("doc_id", "doc")
    kwargs.setdefault("action", "met")
    return Fact(id=fact_id, actor=actor, target=target, **kwargs)


@pytest.fixture
def fixed_clock() -> SnapshotClock:
    return SnapshotClock(now=datetime(2024, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> Settings:
    return Settings(principal=PRINCIPAL, database_url="sqlite:///:memory:")


@pytest.fixture
def sample_facts() -> list[Fact]:
    return [
        make_fact(1, "Jeffrey Epstein", "Alice", doc_id="d1", timestamp="2005-03-14", action="flew with", tags=("travel",)),
        make_fact(2, "Alice", "Bob", doc_id="d1", timestamp="2006", action="called", tags=("phone",)),
        make_fact(3, "Jeff E.", "Carol", doc_id="d2", action="paid", location="New York", tags=("finance",)),
        make_fact(4, "Dave", "Erin", doc_id="d3", timestamp="1999-07-01", action="emailed", tags=("email",)),
        make_fact(5, "Alice", "Bob", doc_id="d2", timestamp="1965-01-01", action="visited"),
        make_fact(6, "Jeffrey Epstein", "Alice", doc_id="d1", timestamp="2005-03-14", action="flew with", tags=("travel",)),
    ]


@pytest.fixture
def sample_documents() -> list[DocumentRecord]:
    return [
        DocumentRecord(doc_id="d1", category="flight_log"),
        DocumentRecord(doc_id="d2", category="financial"),
        DocumentRecord(doc_id="d3", category="email"),
    ]


@pytest.fixture
def sample_mappings() -> list[AliasMapping]:
    return [
        AliasMapping(original_name="Jeff E.", canonical_name=PRINCIPAL, created_by="dedupe"),
        AliasMapping(original_name="J. Epstein", canonical_name=PRINCIPAL, created_by="dedupe"),
    ]


@pytest.fixture
def sample_clusters() -> TagClusterIndex:
    return TagClusterIndex(
        [
            TagCluster(id=1, name="Travel & contact", exemplars=("travel",), tags=("travel", "phone")),
            TagCluster(id=2, name="Money", exemplars=("finance",), tags=("finance",)),
        ]
    )


@pytest.fixture
def fact_store(sample_facts, sample_documents) -> InMemoryFactStore:
    return InMemoryFactStore(sample_facts, sample_documents)


@pytest.fixture
def alias_store(sample_mappings) -> InMemoryAliasStore:
    return InMemoryAliasStore(sample_mappings)


@pytest.fixture
def manager(fact_store, alias_store, settings, sample_clusters, fixed_clock) -> SnapshotManager:
    return SnapshotManager(fact_store, alias_store, settings, clusters=sample_clusters, clock_factory=lambda: fixed_clock)


@pytest.fixture
def snapshot(manager):
    return manager.rebuild()


@pytest.fixture
def service(manager, settings, snapshot) -> QueryService:
    return QueryService(manager.handle, settings)


@pytest.fixture
def sqlite_store(tmp_path):
    """A file-backed SQLite store that may be used from worker threads."""
    from kgprox.storage.sqlite import SQLiteStore

    store = SQLiteStore(str(tmp_path / "kgprox.db"), check_same_thread=False)
    yield store
    store.close()
