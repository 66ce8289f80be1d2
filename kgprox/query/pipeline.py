"""Filter, rank and prune facts against a snapshot.

Stages, each of which only narrows or reorders:

1. Scan: facts dated before ``min_timestamp`` are dropped and at most
   ``max_scan_rows`` facts (in id order) are considered.
2. Filter: tag-cluster, category, date-range and keyword predicates, AND-ed.
   A missing filter value imposes no constraint, and so does a cluster or
   category list in which no id is known.
3. Score: each surviving fact's relevance key is the smaller hop distance of
   its two canonical endpoints. ``maxHops`` drops facts scoring above it.
4. Order: ascending relevance key, ties broken by fact id.
5. Truncate: keep the first ``result_limit`` facts.

A predicate that raises on one fact (unparseable timestamp, corrupt tags)
filters that fact out instead of failing the query.

Everything here is pure computation over an immutable snapshot.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from kgprox.config import Settings
from kgprox.logging import setup_logging
from kgprox.models import Fact, ServedFact
from kgprox.query.spec import QuerySpec
from kgprox.snapshot import Snapshot

logger = setup_logging()

Predicate = Callable[[Fact], bool]

_YEAR = re.compile(r"^\s*(\d{4})")


class PipelineOutcome(BaseModel):
    """Ordered, truncated facts plus the counts callers need for transparency."""

    model_config = ConfigDict(frozen=True)

    facts: tuple[Fact, ...]
    count_before_filter: int
    count_before_truncation: int
    scan_truncated: bool = False


def fact_year(fact: Fact) -> Optional[int]:
    """Leading four-digit year of the fact's timestamp, None if undated.

    Raises:
        ValueError: If the timestamp is present but has no leading year.
    """
    if fact.timestamp is None or fact.timestamp.strip() == "":
        return None
    match = _YEAR.match(fact.timestamp)
    if match is None:
        raise ValueError(f"unparseable timestamp {fact.timestamp!r}")
    return int(match.group(1))


def is_servable(fact: Fact, settings: Settings) -> bool:
    """False for facts carrying an implausible pre-``min_timestamp`` date."""
    return fact.timestamp is None or fact.timestamp >= settings.min_timestamp


def scan(snapshot: Snapshot, settings: Settings, ceiling: Optional[int] = None) -> tuple[list[Fact], bool]:
    """Servable facts in id order, cut at ``ceiling`` rows.

    Returns the facts and whether the ceiling was hit.
    """
    servable = [fact for fact in snapshot.facts if is_servable(fact, settings)]
    if ceiling is not None and len(servable) > ceiling:
        return servable[:ceiling], True
    return servable, False


def build_predicates(spec: QuerySpec, snapshot: Snapshot) -> list[Predicate]:
    """Compile the active filters of ``spec`` into per-fact predicates."""
    predicates: list[Predicate] = []

    # Unknown cluster or category ids contribute nothing; when none are known the filter is off.
    selected_tags = snapshot.clusters.tags_for(spec.cluster_ids) if spec.cluster_ids else frozenset()
    if selected_tags:

        def in_clusters(fact: Fact) -> bool:
            if fact.malformed_tags:
                raise ValueError("malformed tag payload")
            return not selected_tags.isdisjoint(fact.tags)

        predicates.append(in_clusters)

    known_categories = {doc.category for doc in snapshot.documents.values() if doc.category}
    categories = spec.category_ids & known_categories
    if categories:
        documents = snapshot.documents

        def in_categories(fact: Fact) -> bool:
            document = documents.get(fact.doc_id)
            return document is not None and document.category in categories

        predicates.append(in_categories)

    if spec.has_date_range:
        year_min, year_max, include_undated = spec.year_min, spec.year_max, spec.include_undated

        def in_date_range(fact: Fact) -> bool:
            year = fact_year(fact)
            if year is None:
                return include_undated
            if year_min is not None and year < year_min:
                return False
            return year_max is None or year <= year_max

        predicates.append(in_date_range)
    elif not spec.include_undated:

        def is_dated(fact: Fact) -> bool:
            return fact_year(fact) is not None

        predicates.append(is_dated)

    if spec.keywords:
        keywords = tuple(spec.keywords)
        resolve = snapshot.registry.resolve

        def matches_keyword(fact: Fact) -> bool:
            fields = [fact.action, fact.actor, fact.target, resolve(fact.actor), resolve(fact.target)]
            if fact.location:
                fields.append(fact.location)
            fields.extend(fact.tags)
            haystack = "\n".join(fields).lower()
            return any(keyword in haystack for keyword in keywords)

        predicates.append(matches_keyword)

    return predicates


def _passes(fact: Fact, predicates: Sequence[Predicate]) -> bool:
    try:
        return all(predicate(fact) for predicate in predicates)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.debug({"message": "Fact filtered out after predicate error", "fact_id": fact.id, "error": str(e)})
        return False


def filter_facts(facts: Iterable[Fact], spec: QuerySpec, snapshot: Snapshot) -> list[Fact]:
    predicates = build_predicates(spec, snapshot)
    if not predicates:
        return list(facts)
    return [fact for fact in facts if _passes(fact, predicates)]


def relevance_key(fact: Fact, snapshot: Snapshot) -> int:
    """Smaller hop distance of the fact's two canonical endpoints."""
    resolve = snapshot.registry.resolve
    distances = snapshot.distances
    return min(distances.distance(resolve(fact.actor)), distances.distance(resolve(fact.target)))


def rank_facts(facts: Iterable[Fact], snapshot: Snapshot, max_hops: Optional[int] = None) -> list[Fact]:
    """Order facts by (relevance key, id), dropping those beyond ``max_hops``."""
    scored = [(relevance_key(fact, snapshot), fact.id, fact) for fact in facts]
    if max_hops is not None:
        scored = [entry for entry in scored if entry[0] <= max_hops]
    scored.sort(key=lambda entry: (entry[0], entry[1]))
    return [fact for _, _, fact in scored]


def run_pipeline(snapshot: Snapshot, spec: QuerySpec, settings: Settings) -> PipelineOutcome:
    """Run all five stages for a bounded query."""
    scanned, scan_truncated = scan(snapshot, settings, ceiling=settings.max_scan_rows)
    filtered = filter_facts(scanned, spec, snapshot)
    ranked = rank_facts(filtered, snapshot, max_hops=spec.max_hops)
    limit = min(spec.result_limit, settings.max_result_limit)
    return PipelineOutcome(
        facts=tuple(ranked[:limit]),
        count_before_filter=len(scanned),
        count_before_truncation=len(ranked),
        scan_truncated=scan_truncated,
    )


def serve_fact(fact: Fact, snapshot: Snapshot) -> ServedFact:
    """Output form of a fact, with canonical actor and target."""
    resolve = snapshot.registry.resolve
    return ServedFact(
        id=fact.id,
        doc_id=fact.doc_id,
        timestamp=fact.timestamp,
        actor=resolve(fact.actor),
        action=fact.action,
        target=resolve(fact.target),
        location=fact.location,
        tags=list(fact.tags),
    )
