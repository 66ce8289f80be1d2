"""In-memory store implementations for testing and development.

Both interfaces are implemented on plain dictionaries. There is no
persistence and no locking; the snapshot builder reads them from a single
rebuild thread, which is all the core requires.
"""

from typing import Iterable, Iterator, Mapping, Sequence

from kgprox.clock import SnapshotClock
from kgprox.models import AliasMapping, DocumentRecord, Fact
from kgprox.storage.interfaces import AliasStoreInterface, FactStoreInterface


class InMemoryFactStore(FactStoreInterface):
    """Facts keyed by id, documents keyed by doc_id.

    Example:
        ```python
        store = InMemoryFactStore()
        store.add_facts([Fact(id=1, doc_id="d1", actor="A", action="met", target="B")])
        list(store.scan_facts())
        ```
    """

    def __init__(self, facts: Iterable[Fact] = (), documents: Iterable[DocumentRecord] = ()) -> None:
        self._facts: dict[int, Fact] = {}
        self._documents: dict[str, DocumentRecord] = {}
        self.add_facts(facts)
        self.add_documents(documents)

    def add_facts(self, facts: Iterable[Fact]) -> int:
        count = 0
        for fact in facts:
            if fact.id in self._facts:
                raise ValueError(f"fact id {fact.id} already stored")
            self._facts[fact.id] = fact
            count += 1
        return count

    def scan_facts(self) -> Iterator[Fact]:
        for fact_id in sorted(self._facts):
            yield self._facts[fact_id]

    def count_facts(self) -> int:
        return len(self._facts)

    def delete_facts(self, fact_ids: Sequence[int]) -> int:
        deleted = 0
        for fact_id in fact_ids:
            if self._facts.pop(fact_id, None) is not None:
                deleted += 1
        return deleted

    def add_documents(self, documents: Iterable[DocumentRecord]) -> int:
        count = 0
        for document in documents:
            self._documents[document.doc_id] = document
            count += 1
        return count

    def list_documents(self) -> list[DocumentRecord]:
        return [self._documents[doc_id] for doc_id in sorted(self._documents)]


class InMemoryAliasStore(AliasStoreInterface):
    """Alias rows keyed by original_name, plus the materialized distances."""

    def __init__(self, mappings: Iterable[AliasMapping] = ()) -> None:
        self._rows: list[AliasMapping] = []
        self._originals: set[str] = set()
        self._distances: dict[str, int] = {}
        for mapping in mappings:
            # Raw rows are kept as given so integrity problems reach the registry.
            self._rows.append(mapping)
            self._originals.add(mapping.original_name)

    def list_mappings(self) -> list[AliasMapping]:
        return list(self._rows)

    def add_mappings(self, mappings: Iterable[AliasMapping]) -> int:
        inserted = 0
        for mapping in mappings:
            if mapping.original_name in self._originals:
                continue
            self._rows.append(mapping)
            self._originals.add(mapping.original_name)
            inserted += 1
        return inserted

    def save_hop_distances(self, distances: Mapping[str, int], clock: SnapshotClock) -> int:
        self._distances = dict(distances)
        return len(self._distances)

    def get_hop_distances(self) -> dict[str, int]:
        return dict(self._distances)
