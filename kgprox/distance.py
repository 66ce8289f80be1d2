"""Hop distances from the principal entity.

A single breadth-first search over the entity graph assigns every reachable
entity its hop count from the principal. Entities in other components, and
every entity when the principal is absent from the graph, get the
disconnected sentinel. The sentinel only has to sort after every finite
distance; it is configurable rather than fixed.
"""

from __future__ import annotations

from collections import Counter, deque
from typing import Optional

from kgprox.config import DEFAULT_DISCONNECTED_DISTANCE
from kgprox.graph import EntityGraph


class DistanceIndex:
    """Total map from entity name to hop distance.

    Build with ``DistanceIndex.compute``. ``principal_found`` distinguishes
    "the principal is not in the graph" (everything disconnected) from an
    ordinary graph that happens to have few reachable nodes.
    """

    def __init__(
        self,
        graph: EntityGraph,
        distances: tuple[int, ...],
        principal: str,
        principal_found: bool,
        sentinel: int,
    ):
        self._graph = graph
        self._distances = distances
        self.principal = principal
        self.principal_found = principal_found
        self.sentinel = sentinel

    @classmethod
    def compute(
        cls,
        graph: EntityGraph,
        principal: str,
        sentinel: int = DEFAULT_DISCONNECTED_DISTANCE,
    ) -> DistanceIndex:
        """Run BFS from ``principal`` (a canonical name) over ``graph``.

        Raises:
            ValueError: If some reachable entity is at least ``sentinel`` hops
                away, so the sentinel would not sort after it.
        """
        unvisited = -1
        distances = [unvisited] * graph.node_count
        start: Optional[int] = graph.index.get(principal)
        if start is not None:
            distances[start] = 0
            queue = deque([start])
            while queue:
                current = queue.popleft()
                next_distance = distances[current] + 1
                for neighbor in graph.adjacency[current]:
                    if distances[neighbor] == unvisited:
                        distances[neighbor] = next_distance
                        queue.append(neighbor)
        deepest = max(distances, default=unvisited)
        if deepest >= sentinel:
            raise ValueError(f"disconnected sentinel {sentinel} does not exceed the deepest hop distance ({deepest})")
        resolved = tuple(sentinel if d == unvisited else d for d in distances)
        return cls(graph, resolved, principal, start is not None, sentinel)

    def distance(self, name: str) -> int:
        """Hop distance of ``name``; the sentinel for unknown or unreachable names."""
        entity_id = self._graph.index.get(name)
        if entity_id is None:
            return self.sentinel
        return self._distances[entity_id]

    def is_connected(self, name: str) -> bool:
        return self.distance(name) != self.sentinel

    @property
    def reachable_count(self) -> int:
        return sum(1 for d in self._distances if d != self.sentinel)

    @property
    def disconnected_count(self) -> int:
        return len(self._distances) - self.reachable_count

    def distribution(self) -> dict[int, int]:
        """Entity count per distance, ascending (sentinel last)."""
        return dict(sorted(Counter(self._distances).items()))

    def as_dict(self) -> dict[str, int]:
        return dict(zip(self._graph.names, self._distances))
