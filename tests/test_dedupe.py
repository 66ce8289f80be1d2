"""Tests for duplicate fact collapsing."""

from kgprox.dedupe import dedupe_facts

from tests.conftest import make_fact


class TestDedupeFacts:
    """Tests for dedupe_facts."""

    def test_identical_facts_collapse_to_lowest_id(self):
        facts = [
            make_fact(7, "A", "B", timestamp="2001", location="Paris"),
            make_fact(3, "A", "B", timestamp="2001", location="Paris"),
        ]
        report = dedupe_facts(facts)
        assert [f.id for f in report.kept] == [3]
        assert report.removed_ids == (7,)
        assert report.duplicate_groups == ((3, 7),)
        assert report.removed_count == 1

    def test_missing_timestamp_equals_empty_timestamp(self):
        facts = [make_fact(1, "A", "B", timestamp=None), make_fact(2, "A", "B", timestamp="")]
        assert dedupe_facts(facts).removed_ids == (2,)

    def test_missing_location_equals_empty_location(self):
        facts = [make_fact(1, "A", "B", location=None), make_fact(2, "A", "B", location="")]
        assert dedupe_facts(facts).removed_ids == (2,)

    def test_different_documents_are_not_duplicates(self):
        facts = [make_fact(1, "A", "B", doc_id="d1"), make_fact(2, "A", "B", doc_id="d2")]
        report = dedupe_facts(facts)
        assert report.removed_count == 0
        assert [f.id for f in report.kept] == [1, 2]

    def test_tags_do_not_affect_identity(self):
        facts = [make_fact(1, "A", "B", tags=("x",)), make_fact(2, "A", "B", tags=("y",))]
        assert dedupe_facts(facts).removed_ids == (2,)

    def test_kept_facts_are_in_id_order(self, sample_facts):
        report = dedupe_facts(reversed(sample_facts))
        assert [f.id for f in report.kept] == [1, 2, 3, 4, 5]
        assert report.removed_ids == (6,)

    def test_empty_input(self):
        report = dedupe_facts([])
        assert report.kept == ()
        assert report.removed_count == 0

    def test_survivors_have_distinct_identities(self, sample_facts):
        facts = sample_facts + [make_fact(10 + f.id, f.actor, f.target, doc_id=f.doc_id, action=f.action, timestamp=f.timestamp) for f in sample_facts]
        report = dedupe_facts(facts)
        keys = [f.dedupe_key() for f in report.kept]
        assert len(keys) == len(set(keys))
