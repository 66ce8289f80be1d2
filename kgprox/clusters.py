"""Read-only lookup over the offline tag clustering.

The clustering job writes a JSON list of ``{"id", "name", "exemplars", "tags"}``
objects. Queries select clusters by id; a fact passes the cluster filter when
one of its tags belongs to any selected cluster.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError

from kgprox.logging import setup_logging
from kgprox.models import TagCluster

logger = setup_logging()


class TagClusterIndex:
    """Cluster id → tag set lookup. Unknown ids contribute no tags."""

    def __init__(self, clusters: Iterable[TagCluster] = ()):
        self._clusters: dict[int, TagCluster] = {}
        for cluster in clusters:
            self._clusters.setdefault(cluster.id, cluster)
        self._tags: dict[int, frozenset[str]] = {cid: frozenset(c.tags) for cid, c in self._clusters.items()}

    @classmethod
    def load(cls, path: Path) -> TagClusterIndex:
        """Load clusters from a JSON file.

        A missing or unreadable file, or a malformed document, yields an empty
        index and a logged error; queries then behave as if no cluster matched.
        Individually malformed entries are skipped.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning({"message": "Tag cluster file not found, cluster filtering disabled", "path": str(path)})
            return cls()
        except (OSError, json.JSONDecodeError) as e:
            logger.error({"message": "Failed to load tag clusters", "path": str(path), "error": str(e)})
            return cls()
        if not isinstance(data, list):
            logger.error({"message": "Tag cluster file must contain a JSON list", "path": str(path)})
            return cls()

        clusters: list[TagCluster] = []
        for entry in data:
            try:
                clusters.append(TagCluster.model_validate(entry))
            except ValidationError as e:
                logger.warning({"message": "Skipping malformed tag cluster", "entry": entry, "error": str(e)})
        logger.info({"message": "Loaded tag clusters", "path": str(path), "clusters": len(clusters)})
        return cls(clusters)

    def tags_for(self, cluster_ids: Iterable[int]) -> frozenset[str]:
        """Union of the tags of the given clusters, ignoring unknown ids."""
        selected: set[str] = set()
        for cluster_id in cluster_ids:
            selected.update(self._tags.get(cluster_id, ()))
        return frozenset(selected)

    def summaries(self) -> list[dict]:
        return [self._clusters[cid].summary() for cid in sorted(self._clusters)]

    def __contains__(self, cluster_id: object) -> bool:
        return cluster_id in self._clusters

    def __len__(self) -> int:
        return len(self._clusters)
