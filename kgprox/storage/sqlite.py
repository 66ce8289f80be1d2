"""
SQLite implementation of the fact and alias store interfaces.
"""

import json
from typing import Iterable, Iterator, Mapping, Optional, Sequence

from sqlalchemy import func
from sqlmodel import Session, SQLModel, col, create_engine, delete, select

from kgprox.clock import SnapshotClock
from kgprox.logging import setup_logging
from kgprox.models import AliasMapping, DocumentRecord, Fact
from kgprox.storage.interfaces import AliasStoreInterface, FactStoreInterface
from kgprox.storage.models import AliasRow, CanonicalEntityRow, DocumentRow, FactRow

logger = setup_logging()

SQLITE_URL_PREFIX = "sqlite:///"


def parse_tags(payload: Optional[str]) -> Optional[tuple[str, ...]]:
    """Decode a ``triple_tags`` payload.

    Returns an empty tuple for a missing payload and None when the payload is
    not a JSON list of strings.
    """
    if payload is None or payload.strip() == "":
        return ()
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, list) or not all(isinstance(tag, str) for tag in data):
        return None
    return tuple(data)


def _row_to_fact(row: FactRow) -> Fact:
    tags = parse_tags(row.triple_tags)
    if tags is None:
        logger.warning({"message": "Malformed triple_tags payload", "fact_id": row.id, "payload": row.triple_tags})
    return Fact(
        id=row.id,
        doc_id=row.doc_id,
        timestamp=row.timestamp,
        actor=row.actor,
        action=row.action,
        target=row.target,
        location=row.location,
        tags=tags or (),
        sequence_order=row.sequence_order,
        malformed_tags=tags is None,
    )


class SQLiteStore(FactStoreInterface, AliasStoreInterface):
    """
    SQLite-backed fact, document and alias storage.
    """

    def __init__(self, db_path: str, check_same_thread: bool = True):
        # Rebuilds may run on a worker thread; pass check_same_thread=False for that.
        connect_args = {"check_same_thread": check_same_thread}
        self.engine = create_engine(f"{SQLITE_URL_PREFIX}{db_path}", connect_args=connect_args)
        SQLModel.metadata.create_all(self.engine)
        self._session = Session(self.engine)

    @classmethod
    def from_url(cls, database_url: str, check_same_thread: bool = True) -> "SQLiteStore":
        """Open a store from a ``sqlite:///path`` URL."""
        if not database_url.startswith(SQLITE_URL_PREFIX):
            raise ValueError(f"Unsupported database URL scheme: {database_url!r}")
        db_path = database_url[len(SQLITE_URL_PREFIX):] or ":memory:"
        return cls(db_path, check_same_thread=check_same_thread)

    # -- facts ---------------------------------------------------------------

    def add_facts(self, facts: Iterable[Fact]) -> int:
        count = 0
        for fact in facts:
            self._session.add(
                FactRow(
                    id=fact.id,
                    doc_id=fact.doc_id,
                    timestamp=fact.timestamp,
                    actor=fact.actor,
                    action=fact.action,
                    target=fact.target,
                    location=fact.location,
                    triple_tags=json.dumps(list(fact.tags)),
                    sequence_order=fact.sequence_order,
                )
            )
            count += 1
        self._session.commit()
        return count

    def scan_facts(self) -> Iterator[Fact]:
        statement = select(FactRow).order_by(FactRow.id)
        for row in self._session.exec(statement).all():
            yield _row_to_fact(row)

    def count_facts(self) -> int:
        statement = select(func.count(FactRow.id))  # type: ignore[arg-type] # pylint: disable=not-callable
        return self._session.exec(statement).one()

    def delete_facts(self, fact_ids: Sequence[int]) -> int:
        if not fact_ids:
            return 0
        existing = self._session.exec(select(FactRow.id).where(col(FactRow.id).in_(fact_ids))).all()
        if existing:
            self._session.exec(delete(FactRow).where(col(FactRow.id).in_(existing)))
            self._session.commit()
        return len(existing)

    def add_documents(self, documents: Iterable[DocumentRecord]) -> int:
        count = 0
        for document in documents:
            self._session.merge(DocumentRow(**document.model_dump()))
            count += 1
        self._session.commit()
        return count

    def list_documents(self) -> list[DocumentRecord]:
        rows = self._session.exec(select(DocumentRow).order_by(DocumentRow.doc_id)).all()
        return [DocumentRecord.model_validate(row.model_dump()) for row in rows]

    # -- aliases -------------------------------------------------------------

    def list_mappings(self) -> list[AliasMapping]:
        rows = self._session.exec(select(AliasRow).order_by(AliasRow.id)).all()
        return [
            AliasMapping(
                original_name=row.original_name,
                canonical_name=row.canonical_name,
                reasoning=row.reasoning,
                created_by=row.created_by,
                created_at=row.created_at,
            )
            for row in rows
        ]

    def add_mappings(self, mappings: Iterable[AliasMapping]) -> int:
        pending = list(mappings)
        if not pending:
            return 0
        names = {m.original_name for m in pending}
        taken = set(self._session.exec(select(AliasRow.original_name).where(col(AliasRow.original_name).in_(names))).all())
        inserted = 0
        for mapping in pending:
            if mapping.original_name in taken:
                continue
            self._session.add(AliasRow(**mapping.model_dump()))
            taken.add(mapping.original_name)
            inserted += 1
        self._session.commit()
        return inserted

    def save_hop_distances(self, distances: Mapping[str, int], clock: SnapshotClock) -> int:
        self._session.exec(delete(CanonicalEntityRow))
        for name, distance in distances.items():
            self._session.add(
                CanonicalEntityRow(canonical_name=name, hop_distance_from_principal=distance, created_at=clock.now)
            )
        self._session.commit()
        logger.info({"message": "Materialized canonical entity distances", "entities": len(distances)})
        return len(distances)

    def get_hop_distances(self) -> dict[str, int]:
        rows = self._session.exec(select(CanonicalEntityRow)).all()
        return {row.canonical_name: row.hop_distance_from_principal for row in rows}

    def close(self) -> None:
        """
        Close connections and clean up resources.
        """
        self._session.close()
        self.engine.dispose()
