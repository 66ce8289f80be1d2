"""Query specification: parsing and validation of request parameters.

Raw parameters arrive as strings (query-string values or CLI flags). They are
turned into a validated ``QuerySpec`` before anything touches the snapshot,
and every rejection is a ``QueryValidationError`` naming the parameter.

Recognized parameters:

    limit           1..max_result_limit (larger values are capped)
    clusters        comma list of integer cluster ids
    categories      comma list of document categories
    yearMin/yearMax inclusive year bounds
    includeUndated  whether facts without a timestamp pass a date filter
    keywords        comma list of terms (any may match)
    maxHops         integer >= 0, or "any"
"""

from __future__ import annotations

from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from kgprox.config import Settings
from kgprox.errors import QueryValidationError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class QuerySpec(BaseModel):
    """A validated query.

    Empty filter sets mean "no constraint" for that dimension.
    """

    model_config = ConfigDict(frozen=True)

    result_limit: int = Field(500, gt=0)
    cluster_ids: frozenset[int] = frozenset()
    category_ids: frozenset[str] = frozenset()
    year_min: Optional[int] = None
    year_max: Optional[int] = None
    include_undated: bool = True
    keywords: frozenset[str] = frozenset()
    max_hops: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def _year_range_is_ordered(self) -> QuerySpec:
        if self.year_min is not None and self.year_max is not None and self.year_min > self.year_max:
            raise ValueError("yearMin must not be greater than yearMax")
        return self

    @property
    def has_date_range(self) -> bool:
        return self.year_min is not None or self.year_max is not None

    @classmethod
    def from_params(cls, params: Mapping[str, Optional[str]], settings: Settings) -> QuerySpec:
        """Parse raw string parameters.

        Raises:
            QueryValidationError: On any malformed or out-of-range value.
        """
        year_min = _parse_year(params.get("yearMin"), "yearMin")
        year_max = _parse_year(params.get("yearMax"), "yearMax")
        if year_min is not None and year_max is not None and year_min > year_max:
            raise QueryValidationError("yearMin", f"{year_min} is greater than yearMax {year_max}")
        return cls(
            result_limit=parse_limit(params.get("limit"), settings),
            cluster_ids=frozenset(_parse_cluster_ids(params.get("clusters"), settings)),
            category_ids=frozenset(_split_list(params.get("categories"), "categories", settings)),
            year_min=year_min,
            year_max=year_max,
            include_undated=_parse_bool(params.get("includeUndated"), "includeUndated", default=True),
            keywords=frozenset(k.lower() for k in _split_list(params.get("keywords"), "keywords", settings)),
            max_hops=_parse_max_hops(params.get("maxHops")),
        )


def parse_limit(raw: Optional[str], settings: Settings) -> int:
    """Parse a result limit; missing means the default, too large is capped."""
    if raw is None or str(raw).strip() == "":
        return settings.default_result_limit
    try:
        limit = int(str(raw).strip())
    except ValueError:
        raise QueryValidationError("limit", f"{raw!r} is not an integer") from None
    if limit < 1:
        raise QueryValidationError("limit", f"must be a positive integer, got {limit}")
    return min(limit, settings.max_result_limit)


def _split_list(raw: Optional[str], field: str, settings: Settings) -> list[str]:
    if raw is None:
        return []
    items = [item.strip() for item in str(raw).split(",") if item.strip()]
    if len(items) > settings.max_filter_items:
        raise QueryValidationError(field, f"at most {settings.max_filter_items} entries allowed, got {len(items)}")
    return items


def _parse_cluster_ids(raw: Optional[str], settings: Settings) -> list[int]:
    # Non-integer ids can never name a cluster, so they are dropped like unknown ids.
    ids: list[int] = []
    for item in _split_list(raw, "clusters", settings):
        try:
            value = int(item)
        except ValueError:
            continue
        if value >= 0:
            ids.append(value)
    return ids


def _parse_year(raw: Optional[str], field: str) -> Optional[int]:
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        raise QueryValidationError(field, f"{raw!r} is not a year") from None


def _parse_bool(raw: Optional[str], field: str, default: bool) -> bool:
    if raw is None or str(raw).strip() == "":
        return default
    value = str(raw).strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise QueryValidationError(field, f"{raw!r} is not a boolean")


def _parse_max_hops(raw: Optional[str]) -> Optional[int]:
    if raw is None or str(raw).strip().lower() in ("", "any"):
        return None
    try:
        hops = int(str(raw).strip())
    except ValueError:
        raise QueryValidationError("maxHops", f"{raw!r} is neither an integer nor 'any'") from None
    if hops < 0:
        raise QueryValidationError("maxHops", f"must be >= 0, got {hops}")
    return hops
