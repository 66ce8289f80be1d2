"""Snapshot construction and lifecycle.

A ``Snapshot`` bundles everything the read path needs: the validated alias
registry, the deduplicated facts, the entity graph, the hop distances, the
document attributes and the tag clusters. It is built in one pass by
``build_snapshot`` and never modified afterwards, so any number of query
threads can read it without locking.

``SnapshotHandle`` holds the snapshot currently being served. Swapping is a
single reference assignment under a lock; readers either see the previous
snapshot or the new one, never a mixture.

``SnapshotManager`` owns the write path. Only one rebuild runs at a time.
Requests that arrive while a rebuild is running are coalesced into a single
follow-up rebuild, and every caller gets back a snapshot at least as new as
its request. A failed rebuild leaves the active snapshot in place.
"""

from __future__ import annotations

import threading
from collections import Counter
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from kgprox.clock import SnapshotClock
from kgprox.clusters import TagClusterIndex
from kgprox.config import Settings
from kgprox.dedupe import dedupe_facts
from kgprox.distance import DistanceIndex
from kgprox.errors import DataIntegrityError, RebuildCancelled, RebuildError, SnapshotNotReadyError
from kgprox.graph import EntityGraph, build_graph
from kgprox.logging import setup_logging
from kgprox.models import AliasMapping, DocumentRecord, Fact
from kgprox.registry import CanonicalRegistry
from kgprox.storage.interfaces import AliasStoreInterface, FactStoreInterface

logger = setup_logging()


class Snapshot(BaseModel):
    """Immutable state served to queries between two rebuilds.

    Attributes:
        version: Monotonically increasing build number.
        built_at: When the build started.
        principal: Canonical name of the principal entity.
        registry: Alias registry including self-reference backfill.
        graph: Canonical entity graph.
        distances: Hop distances from the principal.
        facts: Deduplicated facts in id order.
        documents: Parent-document attributes by doc_id.
        clusters: Tag cluster lookup.
        actor_counts: Number of facts per canonical actor.
        duplicates_removed: Facts dropped by dedupe during this build.
        backfilled: Self-reference rows added to the registry during this build.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    version: int
    built_at: datetime
    principal: str
    registry: CanonicalRegistry
    graph: EntityGraph
    distances: DistanceIndex
    facts: tuple[Fact, ...]
    documents: dict[str, DocumentRecord]
    clusters: TagClusterIndex
    actor_counts: dict[str, int]
    duplicates_removed: int = 0
    backfilled: int = 0

    @property
    def principal_found(self) -> bool:
        return self.distances.principal_found


class RebuildResult(BaseModel):
    """A built snapshot plus the registry rows that still need persisting."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    snapshot: Snapshot
    backfilled_rows: tuple[AliasMapping, ...] = ()


def _check_cancel(cancel: Optional[threading.Event], stage: str) -> None:
    if cancel is not None and cancel.is_set():
        raise RebuildCancelled(f"rebuild cancelled before {stage}")


def build_snapshot(
    fact_store: FactStoreInterface,
    alias_store: AliasStoreInterface,
    settings: Settings,
    clusters: TagClusterIndex,
    version: int = 1,
    clock: Optional[SnapshotClock] = None,
    cancel: Optional[threading.Event] = None,
) -> RebuildResult:
    """Build a complete snapshot from the stores. Reads only; writes nothing.

    Calling this repeatedly on unchanged stores yields equivalent snapshots.

    Raises:
        AliasIntegrityError: If the alias table has chains or conflicts.
        RebuildCancelled: If ``cancel`` is set between stages.
    """
    clock = clock or SnapshotClock.utcnow()

    _check_cancel(cancel, "loading facts")
    report = dedupe_facts(fact_store.scan_facts())
    if report.removed_count:
        logger.warning(
            {
                "message": "Dropped duplicate facts from snapshot",
                "removed": report.removed_count,
                "sample_groups": [list(g) for g in report.duplicate_groups[:5]],
            }
        )
    facts = report.kept
    documents = {doc.doc_id: doc for doc in fact_store.list_documents()}

    _check_cancel(cancel, "validating aliases")
    registry = CanonicalRegistry.from_mappings(alias_store.list_mappings())

    endpoints: set[str] = set()
    for fact in facts:
        endpoints.add(fact.actor)
        endpoints.add(fact.target)
    registry, added = registry.backfill(endpoints, clock=clock)

    _check_cancel(cancel, "building graph")
    graph: EntityGraph = build_graph(
        facts,
        registry,
        skip_self_loops=settings.skip_self_loops,
        excluded_prefixes=settings.excluded_name_prefixes,
    )

    _check_cancel(cancel, "computing distances")
    principal = registry.resolve(settings.principal)
    distances = DistanceIndex.compute(graph, principal, sentinel=settings.disconnected_distance)
    if not distances.principal_found:
        logger.warning(
            {
                "message": "Principal not found in graph; every entity is disconnected",
                "principal": settings.principal,
                "canonical": principal,
            }
        )

    actor_counts = Counter(registry.resolve(fact.actor) for fact in facts)
    snapshot = Snapshot(
        version=version,
        built_at=clock.now,
        principal=principal,
        registry=registry,
        graph=graph,
        distances=distances,
        facts=facts,
        documents=documents,
        clusters=clusters,
        actor_counts=dict(actor_counts),
        duplicates_removed=report.removed_count,
        backfilled=len(added),
    )
    return RebuildResult(snapshot=snapshot, backfilled_rows=tuple(added))


class SnapshotHandle:
    """Reference to the snapshot currently being served."""

    def __init__(self, snapshot: Optional[Snapshot] = None):
        self._lock = threading.Lock()
        self._snapshot = snapshot

    def current(self) -> Optional[Snapshot]:
        return self._snapshot

    def require(self) -> Snapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise SnapshotNotReadyError("no snapshot has been built yet")
        return snapshot

    def swap(self, snapshot: Snapshot) -> bool:
        """Install ``snapshot`` unless a same-or-newer version is already active."""
        with self._lock:
            if self._snapshot is not None and snapshot.version <= self._snapshot.version:
                return False
            self._snapshot = snapshot
            return True


class SnapshotManager:
    """Single-writer rebuild coordinator.

    Example:
        ```python
        manager = SnapshotManager(store, store, settings)
        manager.rebuild()
        service = QueryService(manager.handle, settings)
        ```
    """

    def __init__(
        self,
        fact_store: FactStoreInterface,
        alias_store: AliasStoreInterface,
        settings: Settings,
        clusters: Optional[TagClusterIndex] = None,
        handle: Optional[SnapshotHandle] = None,
        clock_factory: Callable[[], SnapshotClock] = SnapshotClock.utcnow,
    ):
        self._fact_store = fact_store
        self._alias_store = alias_store
        self._settings = settings
        self._clusters = clusters
        self.handle = handle or SnapshotHandle()
        self._clock_factory = clock_factory
        self._cond = threading.Condition()
        self._closing = threading.Event()
        self._running = False
        self._requested = 0
        self._completed = 0
        self._failed: Optional[tuple[int, RebuildError]] = None
        self._version = 0 if self.handle.current() is None else self.handle.require().version

    @property
    def is_rebuilding(self) -> bool:
        return self._running

    def rebuild(self) -> Snapshot:
        """Rebuild the snapshot, or join a rebuild that will cover this request.

        Returns:
            The active snapshot after a build that started after this call.

        Raises:
            RebuildError: If the build covering this request failed. The
                previously active snapshot is still being served.
            RebuildCancelled: If the manager is shut down.
        """
        with self._cond:
            if self._closing.is_set():
                raise RebuildCancelled("snapshot manager is shut down")
            self._requested += 1
            ticket = self._requested
            while self._running:
                self._cond.wait()
            if self._completed >= ticket:
                return self.handle.require()
            if self._failed is not None and self._failed[0] >= ticket:
                raise self._failed[1]
            self._running = True
            target = self._requested

        try:
            snapshot = self._run_once()
        except RebuildError as e:
            self._finish(target, e)
            raise
        except DataIntegrityError as e:
            logger.error({"message": "Rebuild rejected: data integrity error", "error": str(e)})
            error = RebuildError(f"data integrity error: {e}", cause=e)
            self._finish(target, error)
            raise error from e
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.exception({"message": "Rebuild failed", "error": str(e)})
            error = RebuildError(f"rebuild failed: {e}", cause=e)
            self._finish(target, error)
            raise error from e
        self._finish(target, None)
        return snapshot

    def _finish(self, target: int, error: Optional[RebuildError]) -> None:
        with self._cond:
            self._running = False
            if error is None:
                self._completed = target
            else:
                self._failed = (target, error)
            self._cond.notify_all()

    def shutdown(self) -> None:
        """Abort any in-progress rebuild and refuse new ones.

        The active snapshot keeps being served.
        """
        self._closing.set()
        with self._cond:
            self._cond.notify_all()

    def _run_once(self) -> Snapshot:
        self._version += 1
        version = self._version
        clock = self._clock_factory()
        clusters = self._clusters if self._clusters is not None else TagClusterIndex.load(self._settings.tag_clusters_path)
        logger.info({"message": "Rebuilding snapshot", "version": version, "principal": self._settings.principal})

        result = build_snapshot(
            self._fact_store,
            self._alias_store,
            self._settings,
            clusters,
            version=version,
            clock=clock,
            cancel=self._closing,
        )
        snapshot = result.snapshot

        active = self.handle.current()
        if active is not None and active.version >= snapshot.version:
            return self._superseded(snapshot, active)

        # Last cancellation point: once results are persisted the snapshot is swapped in.
        _check_cancel(self._closing, "persisting results")
        if result.backfilled_rows:
            inserted = self._alias_store.add_mappings(result.backfilled_rows)
            logger.info({"message": "Backfilled canonical self-references", "inserted": inserted})
        if self._settings.persist_hop_distances:
            self._alias_store.save_hop_distances(snapshot.distances.as_dict(), clock)

        if not self.handle.swap(snapshot):
            return self._superseded(snapshot, self.handle.require())
        logger.info(
            {
                "message": "Snapshot active",
                "version": snapshot.version,
                "facts": len(snapshot.facts),
                "entities": snapshot.graph.node_count,
                "principal_found": snapshot.principal_found,
                "hop_distribution": snapshot.distances.distribution(),
            }
        )
        return snapshot

    def _superseded(self, snapshot: Snapshot, active: Snapshot) -> Snapshot:
        logger.warning(
            {
                "message": "Built snapshot superseded by a newer active snapshot",
                "built_version": snapshot.version,
                "active_version": active.version,
            }
        )
        return active
