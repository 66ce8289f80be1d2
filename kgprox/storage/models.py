"""
SQLModel tables for the persisted fact and registry state.

Table and column names follow the document-analysis database the extraction
pipeline writes: ``rdf_triples``, ``entity_aliases``, ``documents`` and the
derived ``canonical_entities``.
"""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class FactRow(SQLModel, table=True):
    """One extracted triple. ``triple_tags`` holds a JSON-encoded list of tags."""

    __tablename__ = "rdf_triples"

    id: Optional[int] = Field(default=None, primary_key=True)
    doc_id: str = Field(index=True)
    timestamp: Optional[str] = Field(default=None, index=True)
    actor: str = Field(index=True)
    action: str = Field()
    target: str = Field(index=True)
    location: Optional[str] = Field(default=None)
    triple_tags: Optional[str] = Field(default=None, description="JSON array of tag strings")
    sequence_order: int = Field(default=0)


class AliasRow(SQLModel, table=True):
    """One registry row: original spelling -> canonical name."""

    __tablename__ = "entity_aliases"

    id: Optional[int] = Field(default=None, primary_key=True)
    original_name: str = Field(index=True, unique=True)
    canonical_name: str = Field(index=True)
    reasoning: Optional[str] = Field(default=None)
    created_by: str = Field(default="unknown")
    created_at: Optional[datetime] = Field(default=None)


class DocumentRow(SQLModel, table=True):
    """Parent-document metadata needed for category filtering and stats."""

    __tablename__ = "documents"

    doc_id: str = Field(primary_key=True)
    file_path: Optional[str] = Field(default=None)
    one_sentence_summary: Optional[str] = Field(default=None)
    category: Optional[str] = Field(default=None, index=True)
    date_range_earliest: Optional[str] = Field(default=None)
    date_range_latest: Optional[str] = Field(default=None)


class CanonicalEntityRow(SQLModel, table=True):
    """Materialized hop distance of one canonical entity (derived, rewritten on rebuild)."""

    __tablename__ = "canonical_entities"

    canonical_name: str = Field(primary_key=True)
    hop_distance_from_principal: int = Field(index=True)
    created_at: datetime = Field()
