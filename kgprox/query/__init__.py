"""Query parsing and the relevance pipeline."""

from kgprox.query.spec import QuerySpec, parse_limit

__all__ = ["QuerySpec", "parse_limit"]
