"""Tests for the filter / rank / truncate pipeline.

Tests build snapshots directly through build_snapshot with in-memory stores,
so every case controls its own graph.
"""

import pytest

from kgprox.clusters import TagClusterIndex
from kgprox.config import Settings
from kgprox.models import Fact, TagCluster
from kgprox.query.pipeline import fact_year, is_servable, rank_facts, relevance_key, run_pipeline
from kgprox.query.spec import QuerySpec
from kgprox.snapshot import build_snapshot
from kgprox.storage.memory import InMemoryAliasStore, InMemoryFactStore

from tests.conftest import make_fact


def _snapshot(facts, settings, mappings=(), clusters=None, documents=(), clock=None):
    return build_snapshot(
        InMemoryFactStore(facts, documents),
        InMemoryAliasStore(mappings),
        settings,
        clusters or TagClusterIndex(),
        clock=clock,
    ).snapshot


@pytest.fixture
def chain_settings() -> Settings:
    return Settings(principal="P", max_result_limit=1000, default_result_limit=500)


@pytest.fixture
def chain_facts() -> list[Fact]:
    # Relevance keys: id 5 -> 0, ids 1 and 2 -> 1, id 3 -> 2, id 4 -> 3
    return [
        make_fact(5, "P", "A"),
        make_fact(2, "A", "B"),
        make_fact(1, "A", "Y"),
        make_fact(3, "B", "C"),
        make_fact(4, "C", "D"),
    ]


class TestFactYear:
    """Tests for timestamp year extraction."""

    @pytest.mark.parametrize(
        "timestamp, year",
        [("2005", 2005), ("2005-03-14", 2005), ("1999-07", 1999), (None, None), ("", None)],
    )
    def test_years(self, timestamp, year):
        assert fact_year(make_fact(1, "A", "B", timestamp=timestamp)) == year

    def test_unparseable_timestamp_raises(self):
        with pytest.raises(ValueError):
            fact_year(make_fact(1, "A", "B", timestamp="spring of 05"))

    def test_pre_epoch_facts_are_not_servable(self, chain_settings):
        assert not is_servable(make_fact(1, "A", "B", timestamp="1965-01-01"), chain_settings)
        assert is_servable(make_fact(1, "A", "B", timestamp="1970-01-01"), chain_settings)
        assert is_servable(make_fact(1, "A", "B"), chain_settings)


class TestRanking:
    """Tests for proximity ordering and truncation."""

    def test_limit_keeps_closest_facts_with_id_tie_break(self, chain_facts, chain_settings):
        snapshot = _snapshot(chain_facts, chain_settings)
        outcome = run_pipeline(snapshot, QuerySpec(result_limit=2), chain_settings)

        assert [f.id for f in outcome.facts] == [5, 1]
        assert outcome.count_before_truncation == 5
        assert outcome.count_before_filter == 5

    def test_relevance_keys(self, chain_facts, chain_settings):
        snapshot = _snapshot(chain_facts, chain_settings)
        keys = {f.id: relevance_key(f, snapshot) for f in chain_facts}
        assert keys == {5: 0, 2: 1, 1: 1, 3: 2, 4: 3}

    def test_ordering_is_non_decreasing(self, chain_facts, chain_settings):
        snapshot = _snapshot(chain_facts, chain_settings)
        ranked = rank_facts(chain_facts, snapshot)
        keys = [relevance_key(f, snapshot) for f in ranked]
        assert keys == sorted(keys)

    def test_max_hops_drops_distant_facts(self, chain_facts, chain_settings):
        snapshot = _snapshot(chain_facts, chain_settings)
        outcome = run_pipeline(snapshot, QuerySpec(max_hops=1), chain_settings)
        assert [f.id for f in outcome.facts] == [5, 1, 2]
        assert outcome.count_before_truncation == 3

    def test_disconnected_facts_sort_last(self, chain_settings):
        facts = [make_fact(1, "X", "Z"), make_fact(2, "P", "A")]
        snapshot = _snapshot(facts, chain_settings)
        outcome = run_pipeline(snapshot, QuerySpec(), chain_settings)
        assert [f.id for f in outcome.facts] == [2, 1]

    def test_missing_principal_falls_back_to_id_order(self, chain_facts):
        settings = Settings(principal="Nobody")
        snapshot = _snapshot(chain_facts, settings)
        outcome = run_pipeline(snapshot, QuerySpec(), settings)
        assert not snapshot.principal_found
        assert [f.id for f in outcome.facts] == [1, 2, 3, 4, 5]

    def test_scan_ceiling(self, chain_facts):
        settings = Settings(principal="P", max_scan_rows=3)
        snapshot = _snapshot(chain_facts, settings)
        outcome = run_pipeline(snapshot, QuerySpec(), settings)
        assert outcome.scan_truncated
        assert outcome.count_before_filter == 3
        assert sorted(f.id for f in outcome.facts) == [1, 2, 3]

    def test_counts_are_ordered(self, chain_facts, chain_settings):
        snapshot = _snapshot(chain_facts, chain_settings)
        for limit in (1, 2, 5, 50):
            outcome = run_pipeline(snapshot, QuerySpec(result_limit=limit, max_hops=2), chain_settings)
            assert outcome.count_before_filter >= outcome.count_before_truncation >= len(outcome.facts)
            assert len(outcome.facts) <= limit

    def test_deterministic(self, chain_facts, chain_settings):
        snapshot = _snapshot(chain_facts, chain_settings)
        spec = QuerySpec(result_limit=3)
        assert run_pipeline(snapshot, spec, chain_settings) == run_pipeline(snapshot, spec, chain_settings)


class TestFilters:
    """Tests for the individual predicates."""

    @pytest.fixture
    def clusters(self) -> TagClusterIndex:
        return TagClusterIndex([TagCluster(id=1, name="travel", tags=("flight", "island"))])

    def test_cluster_filter(self, chain_settings, clusters):
        facts = [make_fact(1, "P", "A", tags=("flight",)), make_fact(2, "P", "B", tags=("dinner",))]
        snapshot = _snapshot(facts, chain_settings, clusters=clusters)
        outcome = run_pipeline(snapshot, QuerySpec(cluster_ids=frozenset({1})), chain_settings)
        assert [f.id for f in outcome.facts] == [1]
        assert outcome.count_before_filter == 2

    def test_unknown_cluster_is_ignored(self, chain_settings, clusters):
        facts = [make_fact(1, "P", "A", tags=("flight",)), make_fact(2, "P", "B", tags=("dinner",))]
        snapshot = _snapshot(facts, chain_settings, clusters=clusters)
        for params in ({"clusters": "42"}, {"clusters": "abc"}):
            outcome = run_pipeline(snapshot, QuerySpec.from_params(params, chain_settings), chain_settings)
            assert [f.id for f in outcome.facts] == [1, 2]
            assert outcome.count_before_filter == 2

    def test_unknown_cluster_alongside_known_one(self, chain_settings, clusters):
        facts = [make_fact(1, "P", "A", tags=("flight",)), make_fact(2, "P", "B", tags=("dinner",))]
        snapshot = _snapshot(facts, chain_settings, clusters=clusters)
        outcome = run_pipeline(snapshot, QuerySpec(cluster_ids=frozenset({1, 42})), chain_settings)
        assert [f.id for f in outcome.facts] == [1]

    def test_category_filter(self, chain_settings):
        from kgprox.models import DocumentRecord

        facts = [make_fact(1, "P", "A", doc_id="d1"), make_fact(2, "P", "B", doc_id="d2"), make_fact(3, "P", "C", doc_id="d9")]
        documents = [DocumentRecord(doc_id="d1", category="email"), DocumentRecord(doc_id="d2", category="court")]
        snapshot = _snapshot(facts, chain_settings, documents=documents)

        known = run_pipeline(snapshot, QuerySpec(category_ids=frozenset({"email", "nope"})), chain_settings)
        unknown = run_pipeline(snapshot, QuerySpec.from_params({"categories": "nope"}, chain_settings), chain_settings)

        assert [f.id for f in known.facts] == [1]
        assert [f.id for f in unknown.facts] == [1, 2, 3]

    def test_malformed_tags_filtered_out_not_fatal(self, chain_settings, clusters):
        facts = [
            make_fact(1, "P", "A", tags=("flight",)),
            make_fact(2, "P", "B", malformed_tags=True),
        ]
        snapshot = _snapshot(facts, chain_settings, clusters=clusters)
        outcome = run_pipeline(snapshot, QuerySpec(cluster_ids=frozenset({1})), chain_settings)
        assert [f.id for f in outcome.facts] == [1]

    def test_date_range_with_undated(self, chain_settings):
        facts = [
            make_fact(1, "P", "A", timestamp="1999"),
            make_fact(2, "P", "B", timestamp="2003-05-01"),
            make_fact(3, "P", "C"),
            make_fact(4, "P", "D", timestamp="unknown date"),
        ]
        snapshot = _snapshot(facts, chain_settings)
        with_undated = run_pipeline(snapshot, QuerySpec(year_min=2000, year_max=2005), chain_settings)
        without_undated = run_pipeline(
            snapshot, QuerySpec(year_min=2000, year_max=2005, include_undated=False), chain_settings
        )
        assert [f.id for f in with_undated.facts] == [2, 3]
        assert [f.id for f in without_undated.facts] == [2]

    def test_exclude_undated_without_range(self, chain_settings):
        facts = [make_fact(1, "P", "A", timestamp="1999"), make_fact(2, "P", "B")]
        snapshot = _snapshot(facts, chain_settings)
        outcome = run_pipeline(snapshot, QuerySpec(include_undated=False), chain_settings)
        assert [f.id for f in outcome.facts] == [1]

    def test_keywords_match_any_field_case_insensitively(self, chain_settings):
        facts = [
            make_fact(1, "P", "A", action="flew to", location="Little St. James"),
            make_fact(2, "P", "B", action="dined with"),
            make_fact(3, "P", "C", tags=("Island",)),
        ]
        snapshot = _snapshot(facts, chain_settings)
        outcome = run_pipeline(snapshot, QuerySpec(keywords=frozenset({"james", "island"})), chain_settings)
        assert [f.id for f in outcome.facts] == [1, 3]

    def test_keywords_match_canonical_names(self, chain_settings):
        from kgprox.models import AliasMapping

        facts = [make_fact(1, "P", "Bill")]
        mappings = [AliasMapping(original_name="Bill", canonical_name="William Smith")]
        snapshot = _snapshot(facts, chain_settings, mappings=mappings)
        outcome = run_pipeline(snapshot, QuerySpec(keywords=frozenset({"william"})), chain_settings)
        assert [f.id for f in outcome.facts] == [1]

    def test_pre_epoch_facts_never_served(self, chain_settings):
        facts = [make_fact(1, "P", "A", timestamp="1900-01-01"), make_fact(2, "P", "B")]
        snapshot = _snapshot(facts, chain_settings)
        outcome = run_pipeline(snapshot, QuerySpec(), chain_settings)
        assert [f.id for f in outcome.facts] == [2]
        assert outcome.count_before_filter == 1
