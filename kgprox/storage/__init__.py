"""Storage backends for facts, documents and the alias registry."""

from kgprox.storage.interfaces import AliasStoreInterface, FactStoreInterface
from kgprox.storage.memory import InMemoryAliasStore, InMemoryFactStore

__all__ = [
    "AliasStoreInterface",
    "FactStoreInterface",
    "InMemoryAliasStore",
    "InMemoryFactStore",
]
