"""Storage interfaces for the fact and alias tables.

The core only needs two persisted relations: the fact table, scanned in full
at rebuild time, and the alias table (plus the derived hop-distance table it
feeds). These interfaces keep the snapshot builder independent of the
storage engine; ``kgprox.storage.memory`` and ``kgprox.storage.sqlite`` are
the two implementations.

Stores are read by the rebuild path only. Queries never touch them.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Iterator, Mapping, Sequence

from kgprox.clock import SnapshotClock
from kgprox.models import AliasMapping, DocumentRecord, Fact


class FactStoreInterface(ABC):
    """Abstract interface for the fact (triple) table."""

    @abstractmethod
    def add_facts(self, facts: Iterable[Fact]) -> int:
        """Insert facts with their ids. Returns the number inserted."""

    @abstractmethod
    def scan_facts(self) -> Iterator[Fact]:
        """Yield every stored fact in ascending id order."""

    @abstractmethod
    def count_facts(self) -> int:
        """Return the number of stored facts."""

    @abstractmethod
    def delete_facts(self, fact_ids: Sequence[int]) -> int:
        """Delete facts by id. Returns the number actually deleted."""

    @abstractmethod
    def add_documents(self, documents: Iterable[DocumentRecord]) -> int:
        """Insert or replace document records. Returns the number written."""

    @abstractmethod
    def list_documents(self) -> list[DocumentRecord]:
        """Return all document records."""


class AliasStoreInterface(ABC):
    """Abstract interface for the canonical registry table."""

    @abstractmethod
    def list_mappings(self) -> list[AliasMapping]:
        """Return every alias row."""

    @abstractmethod
    def add_mappings(self, mappings: Iterable[AliasMapping]) -> int:
        """Insert rows whose original_name is not present yet (insert-or-ignore).

        Returns the number of rows actually inserted.
        """

    @abstractmethod
    def save_hop_distances(self, distances: Mapping[str, int], clock: SnapshotClock) -> int:
        """Replace the materialized canonical-entity distances.

        Returns the number of canonical entities written.
        """

    @abstractmethod
    def get_hop_distances(self) -> dict[str, int]:
        """Return the last materialized canonical-entity distances."""
