"""Value models shared by the stores, the snapshot builder and the query path.

All models are immutable pydantic models. A ``Fact`` is one extracted
subject-action-object triple with its provenance; an ``AliasMapping`` is one
row of the canonical registry; ``DocumentRecord`` carries the parent-document
attributes the query filters need; ``TagCluster`` is one entry of the
externally produced tag clustering.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

DedupeKey = tuple[str, str, str, str, str, str]


class Fact(BaseModel):
    """One subject-action-object triple extracted from a document.

    Attributes:
        id: Store-assigned identifier; the stable tie-breaker for ordering.
        doc_id: Source document identifier.
        timestamp: Free-form date string as extracted (``"2005"``, ``"2005-03-14"``...).
        actor: Raw actor name, as written in the document.
        action: The predicate phrase.
        target: Raw target name.
        location: Optional location string.
        tags: Tag set attached by extraction.
        sequence_order: Position of the triple within its document.
        malformed_tags: True when the stored tag payload could not be decoded.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    doc_id: str
    timestamp: Optional[str] = None
    actor: str
    action: str
    target: str
    location: Optional[str] = None
    tags: tuple[str, ...] = ()
    sequence_order: int = 0
    malformed_tags: bool = False

    def dedupe_key(self) -> DedupeKey:
        """Identity used to collapse duplicate extractions.

        Missing timestamp/location compare equal to empty strings.
        """
        return (
            self.doc_id,
            self.timestamp or "",
            self.actor,
            self.action,
            self.target,
            self.location or "",
        )


class AliasMapping(BaseModel):
    """A registry row mapping one spelling to its canonical name."""

    model_config = ConfigDict(frozen=True)

    original_name: str = Field(min_length=1)
    canonical_name: str = Field(min_length=1)
    reasoning: Optional[str] = None
    created_by: str = "unknown"
    created_at: Optional[datetime] = None

    @property
    def is_self_reference(self) -> bool:
        return self.original_name == self.canonical_name


class DocumentRecord(BaseModel):
    """Parent-document attributes used by category filtering and stats."""

    model_config = ConfigDict(frozen=True)

    doc_id: str
    category: Optional[str] = None
    date_range_earliest: Optional[str] = None
    date_range_latest: Optional[str] = None
    file_path: Optional[str] = None
    one_sentence_summary: Optional[str] = None


class TagCluster(BaseModel):
    """A group of semantically similar tags, produced offline."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str = ""
    exemplars: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    def summary(self) -> dict[str, Any]:
        """Cluster metadata without the (possibly long) tag list."""
        return {
            "id": self.id,
            "name": self.name,
            "exemplars": list(self.exemplars),
            "tagCount": len(self.tags),
        }


class ServedFact(BaseModel):
    """A fact as returned to callers, endpoints resolved to canonical names."""

    id: int
    doc_id: str
    timestamp: Optional[str] = None
    actor: str
    action: str
    target: str
    location: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class RelationshipsResult(BaseModel):
    """Result of a bounded, proximity-ranked query."""

    model_config = ConfigDict(populate_by_name=True)

    facts: list[ServedFact]
    count_before_truncation: int = Field(alias="countBeforeTruncation")
    count_before_filter: int = Field(alias="countBeforeFilter")
    scan_truncated: bool = Field(False, alias="scanTruncated")
    principal_found: bool = Field(True, alias="principalFound")


class ActorRelationshipsResult(BaseModel):
    """Result of an actor-scoped query (complete, never truncated)."""

    model_config = ConfigDict(populate_by_name=True)

    canonical_name: str = Field(alias="canonicalName")
    aliases: list[str]
    facts: list[ServedFact]
    count_before_filter: int = Field(alias="countBeforeFilter")
