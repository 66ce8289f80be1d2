"""Tests for query parameter parsing and validation."""

import pytest

from kgprox.config import Settings
from kgprox.errors import QueryValidationError
from kgprox.query import QuerySpec, parse_limit


@pytest.fixture
def settings() -> Settings:
    return Settings(default_result_limit=500, max_result_limit=20000, max_filter_items=3)


class TestParseLimit:
    """Tests for limit parsing."""

    def test_missing_limit_uses_default(self, settings):
        assert parse_limit(None, settings) == 500
        assert parse_limit("", settings) == 500

    def test_valid_limit(self, settings):
        assert parse_limit("200", settings) == 200

    def test_large_limit_is_capped(self, settings):
        assert parse_limit("999999", settings) == 20000

    @pytest.mark.parametrize("raw", ["0", "-5"])
    def test_non_positive_limit_rejected(self, settings, raw):
        with pytest.raises(QueryValidationError) as exc_info:
            parse_limit(raw, settings)
        assert exc_info.value.field == "limit"

    def test_non_integer_limit_rejected(self, settings):
        with pytest.raises(QueryValidationError, match="invalid limit"):
            parse_limit("lots", settings)


class TestFromParams:
    """Tests for QuerySpec.from_params."""

    def test_empty_params_mean_no_constraints(self, settings):
        spec = QuerySpec.from_params({}, settings)
        assert spec.result_limit == 500
        assert spec.cluster_ids == frozenset()
        assert spec.category_ids == frozenset()
        assert not spec.has_date_range
        assert spec.include_undated
        assert spec.keywords == frozenset()
        assert spec.max_hops is None

    def test_full_params(self, settings):
        spec = QuerySpec.from_params(
            {
                "limit": "10",
                "clusters": "1, 2",
                "categories": "email,financial",
                "yearMin": "2000",
                "yearMax": "2005",
                "includeUndated": "false",
                "keywords": "Island,Flight",
                "maxHops": "2",
            },
            settings,
        )
        assert spec.result_limit == 10
        assert spec.cluster_ids == frozenset({1, 2})
        assert spec.category_ids == frozenset({"email", "financial"})
        assert (spec.year_min, spec.year_max) == (2000, 2005)
        assert spec.include_undated is False
        assert spec.keywords == frozenset({"island", "flight"})
        assert spec.max_hops == 2

    def test_non_integer_cluster_ids_are_ignored(self, settings):
        spec = QuerySpec.from_params({"clusters": "1,abc,-2,3"}, settings)
        assert spec.cluster_ids == frozenset({1, 3})

    def test_too_many_filter_items_rejected(self, settings):
        with pytest.raises(QueryValidationError) as exc_info:
            QuerySpec.from_params({"clusters": "1,2,3,4"}, settings)
        assert exc_info.value.field == "clusters"

    def test_reversed_year_range_rejected(self, settings):
        with pytest.raises(QueryValidationError) as exc_info:
            QuerySpec.from_params({"yearMin": "2010", "yearMax": "2000"}, settings)
        assert exc_info.value.field == "yearMin"

    def test_bad_year_rejected(self, settings):
        with pytest.raises(QueryValidationError, match="yearMax"):
            QuerySpec.from_params({"yearMax": "last year"}, settings)

    def test_bad_boolean_rejected(self, settings):
        with pytest.raises(QueryValidationError, match="includeUndated"):
            QuerySpec.from_params({"includeUndated": "maybe"}, settings)

    @pytest.mark.parametrize("raw", ["any", "ANY", ""])
    def test_max_hops_any(self, settings, raw):
        assert QuerySpec.from_params({"maxHops": raw}, settings).max_hops is None

    @pytest.mark.parametrize("raw", ["-1", "far"])
    def test_bad_max_hops_rejected(self, settings, raw):
        with pytest.raises(QueryValidationError) as exc_info:
            QuerySpec.from_params({"maxHops": raw}, settings)
        assert exc_info.value.field == "maxHops"

    def test_validation_error_is_a_value_error(self, settings):
        with pytest.raises(ValueError):
            QuerySpec.from_params({"limit": "x"}, settings)

    def test_spec_is_immutable(self, settings):
        spec = QuerySpec.from_params({}, settings)
        with pytest.raises(Exception):
            spec.result_limit = 3
