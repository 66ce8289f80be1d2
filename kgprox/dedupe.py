"""Collapse duplicate fact extractions.

The extraction service sometimes emits the same triple twice for one document.
Duplicates are facts with identical (doc_id, timestamp, actor, action, target,
location); the lowest id in each group survives. Left in place they would
double-count edges and bias relevance ordering.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from pydantic import BaseModel, ConfigDict

from kgprox.models import DedupeKey, Fact


class DedupeReport(BaseModel):
    """Outcome of a dedupe pass.

    Attributes:
        kept: Surviving facts, ordered by id.
        removed_ids: Ids of dropped duplicates, ascending.
        duplicate_groups: One sorted id list per group that had duplicates.
    """

    model_config = ConfigDict(frozen=True)

    kept: tuple[Fact, ...]
    removed_ids: tuple[int, ...]
    duplicate_groups: tuple[tuple[int, ...], ...]

    @property
    def removed_count(self) -> int:
        return len(self.removed_ids)


def dedupe_facts(facts: Iterable[Fact]) -> DedupeReport:
    groups: dict[DedupeKey, list[Fact]] = defaultdict(list)
    for fact in facts:
        groups[fact.dedupe_key()].append(fact)

    kept: list[Fact] = []
    removed: list[int] = []
    duplicate_groups: list[tuple[int, ...]] = []
    for members in groups.values():
        members.sort(key=lambda f: f.id)
        kept.append(members[0])
        if len(members) > 1:
            duplicate_groups.append(tuple(f.id for f in members))
            removed.extend(f.id for f in members[1:])

    kept.sort(key=lambda f: f.id)
    duplicate_groups.sort()
    return DedupeReport(kept=tuple(kept), removed_ids=tuple(sorted(removed)), duplicate_groups=tuple(duplicate_groups))
