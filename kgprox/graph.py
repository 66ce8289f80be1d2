"""Undirected entity graph over canonical names.

Each fact contributes one undirected edge between the canonical forms of its
actor and target. Names are interned to integer ids at build time and the
adjacency table is a flat tuple of neighbor-id frozensets, so a built graph
holds no object references back into facts or the registry and can be shared
freely between threads.

Edge multiplicity is not tracked: ten facts between the same pair produce one
adjacency entry in each direction.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from kgprox.logging import setup_logging
from kgprox.models import Fact
from kgprox.registry import CanonicalRegistry

logger = setup_logging()


class EntityGraph:
    """Immutable interned adjacency structure.

    Attributes:
        names: Canonical entity names, indexed by entity id.
        index: Reverse lookup from name to entity id.
        adjacency: ``adjacency[i]`` is the frozenset of neighbor ids of entity ``i``.
    """

    def __init__(self, names: Sequence[str], adjacency: Sequence[frozenset[int]]):
        if len(names) != len(adjacency):
            raise ValueError("names and adjacency must have the same length")
        self.names: tuple[str, ...] = tuple(names)
        self.index: dict[str, int] = {name: i for i, name in enumerate(self.names)}
        self.adjacency: tuple[frozenset[int], ...] = tuple(adjacency)

    @classmethod
    def from_edges(cls, edges: Iterable[tuple[str, str]]) -> EntityGraph:
        """Build a graph from ``(a, b)`` name pairs.

        Entities are numbered in order of first appearance. A pair with
        ``a == b`` registers the entity without adding a neighbor.
        """
        index: dict[str, int] = {}
        neighbors: list[set[int]] = []

        def intern(name: str) -> int:
            entity_id = index.get(name)
            if entity_id is None:
                entity_id = index[name] = len(neighbors)
                neighbors.append(set())
            return entity_id

        for a, b in edges:
            ia, ib = intern(a), intern(b)
            if ia != ib:
                neighbors[ia].add(ib)
                neighbors[ib].add(ia)
        return cls(list(index), [frozenset(n) for n in neighbors])

    @property
    def node_count(self) -> int:
        return len(self.names)

    @property
    def edge_count(self) -> int:
        """Number of distinct undirected entity pairs."""
        return sum(len(n) for n in self.adjacency) // 2

    def has_entity(self, name: str) -> bool:
        return name in self.index

    def neighbors(self, name: str) -> set[str]:
        """Neighbor names of ``name``; empty for unknown names."""
        entity_id = self.index.get(name)
        if entity_id is None:
            return set()
        return {self.names[i] for i in self.adjacency[entity_id]}

    def as_adjacency(self) -> dict[str, set[str]]:
        return {name: {self.names[i] for i in self.adjacency[entity_id]} for entity_id, name in enumerate(self.names)}


def _is_excluded(name: str, prefixes: tuple[str, ...]) -> bool:
    lowered = name.lower()
    return any(lowered.startswith(prefix) for prefix in prefixes)


def build_graph(
    facts: Iterable[Fact],
    registry: CanonicalRegistry,
    skip_self_loops: bool = False,
    excluded_prefixes: Sequence[str] = (),
) -> EntityGraph:
    """Build the canonical entity graph from a (deduplicated) fact scan.

    Args:
        facts: Facts to connect.
        registry: Resolves raw actor/target names to canonical names.
        skip_self_loops: If True, facts whose endpoints resolve to the same
            entity are ignored entirely. By default they are kept: the entity
            gets an adjacency entry but no neighbor.
        excluded_prefixes: Facts with a raw actor or target starting with any
            of these (case-insensitive) are left out, e.g. ``("unknown", "redacted")``
            for placeholder names that would otherwise join unrelated people.

    Returns:
        An ``EntityGraph`` in which every canonical endpoint of every included
        fact has an entry.
    """
    prefixes = tuple(p.lower() for p in excluded_prefixes)
    skipped_loops = 0
    skipped_placeholders = 0

    def edges() -> Iterable[tuple[str, str]]:
        nonlocal skipped_loops, skipped_placeholders
        for fact in facts:
            if prefixes and (_is_excluded(fact.actor, prefixes) or _is_excluded(fact.target, prefixes)):
                skipped_placeholders += 1
                continue
            actor = registry.resolve(fact.actor)
            target = registry.resolve(fact.target)
            if skip_self_loops and actor == target:
                skipped_loops += 1
                continue
            yield actor, target

    graph = EntityGraph.from_edges(edges())
    logger.info(
        {
            "message": "Built entity graph",
            "nodes": graph.node_count,
            "edges": graph.edge_count,
            "skipped_self_loops": skipped_loops,
            "skipped_placeholders": skipped_placeholders,
        }
    )
    return graph
