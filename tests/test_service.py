"""Tests for the QueryService facade over the sample corpus."""

import pytest

from kgprox.errors import QueryValidationError, SnapshotNotReadyError
from kgprox.query import QuerySpec
from kgprox.service import QueryService
from kgprox.snapshot import SnapshotHandle


class TestRelationships:
    """Tests for the bounded query."""

    def test_default_query(self, service):
        result = service.relationships()

        assert [f.id for f in result.facts] == [1, 3, 2, 4]
        assert result.count_before_filter == 4
        assert result.count_before_truncation == 4
        assert result.principal_found
        assert not result.scan_truncated

    def test_served_endpoints_are_canonical(self, service):
        facts = {f.id: f for f in service.relationships().facts}
        assert facts[3].actor == "Jeffrey Epstein"
        assert facts[3].target == "Carol"

    def test_raw_params(self, service):
        result = service.relationships({"limit": "1", "clusters": "1"})
        assert [f.id for f in result.facts] == [1]
        assert result.count_before_truncation == 2

    def test_spec_params(self, service):
        result = service.relationships(QuerySpec(category_ids=frozenset({"email"})))
        assert [f.id for f in result.facts] == [4]

    def test_serialized_with_wire_names(self, service):
        payload = service.relationships({"limit": "2"}).model_dump(by_alias=True)
        assert set(payload) == {"facts", "countBeforeTruncation", "countBeforeFilter", "scanTruncated", "principalFound"}
        assert payload["countBeforeTruncation"] == 4
        assert len(payload["facts"]) == 2

    def test_invalid_params(self, service):
        with pytest.raises(QueryValidationError):
            service.relationships({"limit": "0"})

    def test_no_snapshot_yet(self, settings):
        service = QueryService(SnapshotHandle(), settings)
        with pytest.raises(SnapshotNotReadyError):
            service.relationships()


class TestActorRelationships:
    """Tests for the actor-scoped query."""

    def test_alias_expands_to_every_spelling(self, service):
        result = service.actor_relationships("Jeff E.")

        assert result.canonical_name == "Jeffrey Epstein"
        assert result.aliases == ["J. Epstein", "Jeff E.", "Jeffrey Epstein"]
        # Undated fact first, then by timestamp.
        assert [f.id for f in result.facts] == [3, 1]
        assert result.count_before_filter == 2

    def test_alias_and_canonical_agree(self, service):
        by_alias = service.actor_relationships("Jeff E.")
        by_canonical = service.actor_relationships("Jeffrey Epstein")
        assert by_alias == by_canonical

    def test_filters_apply(self, service):
        result = service.actor_relationships("Jeffrey Epstein", {"clusters": "2"})
        assert [f.id for f in result.facts] == [3]
        assert result.count_before_filter == 2

    def test_limit_does_not_truncate(self, service):
        result = service.actor_relationships("Alice", {"limit": "1"})
        assert [f.id for f in result.facts] == [1, 2]

    def test_unknown_entity_is_empty_not_an_error(self, service):
        result = service.actor_relationships("Nobody")
        assert result.facts == []
        assert result.aliases == ["Nobody"]

    @pytest.mark.parametrize("name", ["", "   ", "x" * 201])
    def test_bad_names_rejected(self, service, name):
        with pytest.raises(QueryValidationError) as exc_info:
            service.actor_relationships(name)
        assert exc_info.value.field == "name"


class TestLookups:
    """Tests for the small lookup operations."""

    def test_entity_distance(self, service):
        assert service.entity_distance("Jeff E.") == {
            "name": "Jeff E.",
            "canonicalName": "Jeffrey Epstein",
            "hopDistance": 0,
            "connected": True,
        }
        assert service.entity_distance("Dave")["connected"] is False

    def test_top_actors(self, service):
        assert service.top_actors() == [
            {"name": "Alice", "connection_count": 2},
            {"name": "Jeffrey Epstein", "connection_count": 2},
            {"name": "Dave", "connection_count": 1},
        ]
        assert len(service.top_actors(1)) == 1

    def test_search_actors(self, service):
        assert service.search_actors("ALI") == [{"name": "Alice", "connection_count": 2}]
        assert service.search_actors("") == []
        assert service.search_actors(None) == []

    def test_stats(self, service):
        stats = service.stats()
        assert stats["totalDocuments"] == 3
        assert stats["totalTriples"] == 5
        assert stats["totalActors"] == 3
        assert [c["category"] for c in stats["categories"]] == ["email", "financial", "flight_log"]
        assert stats["principalFound"] is True

    def test_tag_clusters(self, service):
        assert service.tag_clusters() == [
            {"id": 1, "name": "Travel & contact", "exemplars": ["travel"], "tagCount": 2},
            {"id": 2, "name": "Money", "exemplars": ["finance"], "tagCount": 1},
        ]
