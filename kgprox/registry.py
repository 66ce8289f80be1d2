"""Canonical registry: flat, single-hop alias resolution.

Every entity spelling resolves to a canonical name in exactly one lookup.
Names with no row resolve to themselves. The registry never walks pointers:
a table that would need more than one hop (``A -> B`` and ``B -> C``) is
rejected at construction time with ``AliasIntegrityError``, which keeps
``resolve`` O(1), total and idempotent.

Registries are immutable once built. ``backfill`` returns a new registry
instead of modifying the existing one, so a registry referenced by a live
snapshot never changes underneath a query.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Iterator, Optional

from kgprox.clock import SnapshotClock
from kgprox.errors import AliasIntegrityError
from kgprox.models import AliasMapping

BACKFILL_SOURCE = "snapshot_backfill"
BACKFILL_REASONING = "Self-reference for canonical entity (created during snapshot rebuild)"


class CanonicalRegistry:
    """Maps raw entity names to canonical names.

    Example:
        ```python
        registry = CanonicalRegistry.from_mappings([
            AliasMapping(original_name="Jeff E.", canonical_name="Jeffrey Epstein", created_by="dedupe"),
        ])
        registry.resolve("Jeff E.")        # "Jeffrey Epstein"
        registry.resolve("Someone Else")   # "Someone Else"
        registry.aliases_of("Jeff E.")     # ["Jeff E.", "Jeffrey Epstein"]
        ```
    """

    def __init__(self, rows: dict[str, AliasMapping]):
        """Use ``from_mappings``; this constructor trusts already-validated rows."""
        self._rows = rows
        self._canonical: dict[str, str] = {name: row.canonical_name for name, row in rows.items()}
        members: dict[str, set[str]] = defaultdict(set)
        for original, canonical in self._canonical.items():
            members[canonical].add(original)
        self._members: dict[str, frozenset[str]] = {k: frozenset(v) for k, v in members.items()}

    @classmethod
    def empty(cls) -> CanonicalRegistry:
        return cls({})

    @classmethod
    def from_mappings(cls, mappings: Iterable[AliasMapping]) -> CanonicalRegistry:
        """Validate alias rows and build a registry.

        Exact duplicate rows (same original and canonical) are tolerated; the
        first one seen is kept.

        Raises:
            AliasIntegrityError: If any row's canonical name is itself mapped
                elsewhere (a chain), or one original name is mapped to two
                different canonical names.
        """
        rows: dict[str, AliasMapping] = {}
        targets: dict[str, list[str]] = defaultdict(list)
        for mapping in mappings:
            existing = rows.get(mapping.original_name)
            if existing is None:
                rows[mapping.original_name] = mapping
                targets[mapping.original_name].append(mapping.canonical_name)
            elif existing.canonical_name != mapping.canonical_name:
                if mapping.canonical_name not in targets[mapping.original_name]:
                    targets[mapping.original_name].append(mapping.canonical_name)

        conflicts = [(name, sorted(found)) for name, found in sorted(targets.items()) if len(found) > 1]

        chains: list[tuple[str, str, str]] = []
        for original, row in sorted(rows.items()):
            if row.is_self_reference:
                continue
            onward = rows.get(row.canonical_name)
            if onward is not None and not onward.is_self_reference:
                chains.append((original, row.canonical_name, onward.canonical_name))

        if chains or conflicts:
            raise AliasIntegrityError(chains=chains, conflicts=conflicts)
        return cls(rows)

    def resolve(self, name: str) -> str:
        """Return the canonical name for ``name`` (``name`` itself if unmapped)."""
        return self._canonical.get(name, name)

    def aliases_of(self, name: str) -> list[str]:
        """Return every spelling equivalent to ``name``, sorted.

        The set holds the canonical name plus every original name that
        resolves to it, so an alias and its canonical form yield the same list.
        """
        canonical = self.resolve(name)
        return sorted(self._members.get(canonical, frozenset()) | {canonical})

    def mapping_for(self, name: str) -> Optional[AliasMapping]:
        return self._rows.get(name)

    def canonical_names(self) -> set[str]:
        """Canonical names that have at least one registry row."""
        return set(self._members)

    def mappings(self) -> list[AliasMapping]:
        return [self._rows[name] for name in sorted(self._rows)]

    def backfill(
        self,
        names: Iterable[str],
        created_by: str = BACKFILL_SOURCE,
        clock: Optional[SnapshotClock] = None,
    ) -> tuple[CanonicalRegistry, list[AliasMapping]]:
        """Ensure every canonical form of ``names`` has a self-referencing row.

        Existing rows are never overwritten. Returns the new registry and the
        rows that were added (for persisting to the alias store).
        """
        clock = clock or SnapshotClock.utcnow()
        added: list[AliasMapping] = []
        rows = dict(self._rows)
        for canonical in sorted({self.resolve(name) for name in names}):
            if canonical in rows:
                continue
            row = AliasMapping(
                original_name=canonical,
                canonical_name=canonical,
                reasoning=BACKFILL_REASONING,
                created_by=created_by,
                created_at=clock.now,
            )
            rows[canonical] = row
            added.append(row)
        if not added:
            return self, []
        return CanonicalRegistry(rows), added

    def __contains__(self, name: object) -> bool:
        return name in self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._rows))
