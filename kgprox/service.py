"""Query service: the per-request facade over the active snapshot.

Each call grabs the snapshot reference once and works only on it, so a
rebuild swapping in a new snapshot mid-request cannot mix old and new state.
Parameters may be given as a validated ``QuerySpec`` or as the raw string
mapping a transport received.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Mapping, Optional, Union

from kgprox.config import Settings
from kgprox.errors import QueryValidationError
from kgprox.logging import setup_logging
from kgprox.models import ActorRelationshipsResult, RelationshipsResult
from kgprox.query.pipeline import filter_facts, run_pipeline, scan, serve_fact
from kgprox.query.spec import QuerySpec
from kgprox.snapshot import Snapshot, SnapshotHandle

logger = setup_logging()

Params = Union[QuerySpec, Mapping[str, Optional[str]], None]

DEFAULT_TOP_ACTORS = 100
DEFAULT_SEARCH_LIMIT = 20


class QueryService:
    """Read-only entry point used by the CLI and the HTTP layer.

    Example:
        ```python
        service = QueryService(manager.handle, settings)
        result = service.relationships({"limit": "200", "clusters": "3,7"})
        result.count_before_truncation
        ```
    """

    def __init__(self, handle: SnapshotHandle, settings: Settings):
        self._handle = handle
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings

    def snapshot(self) -> Snapshot:
        """The active snapshot.

        Raises:
            SnapshotNotReadyError: If nothing has been built yet.
        """
        return self._handle.require()

    def _spec(self, params: Params) -> QuerySpec:
        if isinstance(params, QuerySpec):
            return params
        return QuerySpec.from_params(params or {}, self._settings)

    def relationships(self, params: Params = None) -> RelationshipsResult:
        """Bounded query: the ``limit`` facts closest to the principal.

        Raises:
            QueryValidationError: On invalid parameters.
            SnapshotNotReadyError: If no snapshot is active.
        """
        spec = self._spec(params)
        snapshot = self.snapshot()
        outcome = run_pipeline(snapshot, spec, self._settings)
        logger.debug(
            {
                "message": "Served relationships",
                "snapshot": snapshot.version,
                "returned": len(outcome.facts),
                "before_truncation": outcome.count_before_truncation,
                "before_filter": outcome.count_before_filter,
            }
        )
        return RelationshipsResult(
            facts=[serve_fact(fact, snapshot) for fact in outcome.facts],
            count_before_truncation=outcome.count_before_truncation,
            count_before_filter=outcome.count_before_filter,
            scan_truncated=outcome.scan_truncated,
            principal_found=snapshot.principal_found,
        )

    def actor_relationships(self, name: str, params: Params = None) -> ActorRelationshipsResult:
        """Every fact touching any spelling of ``name``, filtered but never pruned.

        Facts are matched on their raw actor/target names against the full
        alias set of ``name``. ``limit`` and ``maxHops`` do not apply here.
        Results are ordered by timestamp (undated first), then id.

        Raises:
            QueryValidationError: On an empty or overlong name, or invalid parameters.
            SnapshotNotReadyError: If no snapshot is active.
        """
        name = self._validate_name(name)
        spec = self._spec(params)
        snapshot = self.snapshot()

        aliases = snapshot.registry.aliases_of(name)
        names = set(aliases)
        servable, _ = scan(snapshot, self._settings)
        touching = [fact for fact in servable if fact.actor in names or fact.target in names]
        filtered = filter_facts(touching, spec, snapshot)
        filtered.sort(key=lambda f: (f.timestamp is not None, f.timestamp or "", f.id))
        return ActorRelationshipsResult(
            canonical_name=snapshot.registry.resolve(name),
            aliases=aliases,
            facts=[serve_fact(fact, snapshot) for fact in filtered],
            count_before_filter=len(touching),
        )

    def _validate_name(self, name: Optional[str]) -> str:
        if name is None or name.strip() == "":
            raise QueryValidationError("name", "entity name must not be empty")
        if len(name) > self._settings.max_name_length:
            raise QueryValidationError("name", f"longer than {self._settings.max_name_length} characters")
        return name.strip()

    def entity_distance(self, name: str) -> dict[str, Any]:
        """Canonical name and hop distance of ``name``."""
        name = self._validate_name(name)
        snapshot = self.snapshot()
        canonical = snapshot.registry.resolve(name)
        distance = snapshot.distances.distance(canonical)
        return {
            "name": name,
            "canonicalName": canonical,
            "hopDistance": distance,
            "connected": distance != snapshot.distances.sentinel,
        }

    def top_actors(self, limit: int = DEFAULT_TOP_ACTORS) -> list[dict[str, Any]]:
        """Canonical actors with the most facts, most connected first."""
        if limit < 1:
            raise QueryValidationError("limit", f"must be a positive integer, got {limit}")
        counts = self.snapshot().actor_counts
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [{"name": name, "connection_count": count} for name, count in ranked[:limit]]

    def search_actors(self, query: Optional[str], limit: int = DEFAULT_SEARCH_LIMIT) -> list[dict[str, Any]]:
        """Canonical actors whose name contains ``query`` (case-insensitive)."""
        if not query:
            return []
        if limit < 1:
            raise QueryValidationError("limit", f"must be a positive integer, got {limit}")
        needle = query.lower()
        counts = self.snapshot().actor_counts
        matches = [(name, count) for name, count in counts.items() if needle in name.lower()]
        matches.sort(key=lambda item: (-item[1], item[0]))
        return [{"name": name, "connection_count": count} for name, count in matches[:limit]]

    def stats(self) -> dict[str, Any]:
        """Corpus totals for the active snapshot."""
        snapshot = self.snapshot()
        categories = Counter(doc.category for doc in snapshot.documents.values() if doc.category)
        return {
            "totalDocuments": len(snapshot.documents),
            "totalTriples": len(snapshot.facts),
            "totalActors": len(snapshot.actor_counts),
            "categories": [
                {"category": category, "count": count}
                for category, count in sorted(categories.items(), key=lambda item: (-item[1], item[0]))
            ],
            "snapshotVersion": snapshot.version,
            "principalFound": snapshot.principal_found,
        }

    def tag_clusters(self) -> list[dict[str, Any]]:
        return self.snapshot().clusters.summaries()
