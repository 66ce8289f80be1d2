"""
Service factory: process-wide store, snapshot manager and query service.
"""

from typing import Optional

from kgprox.config import Settings, load_settings
from kgprox.service import QueryService
from kgprox.snapshot import SnapshotManager
from kgprox.storage.sqlite import SQLiteStore

# Singletons, created on first use
_settings: Optional[Settings] = None
_store: Optional[SQLiteStore] = None
_manager: Optional[SnapshotManager] = None
_service: Optional[QueryService] = None


def configure(settings: Settings, store: Optional[SQLiteStore] = None) -> None:
    """
    Install settings (and optionally an already-open store) before first use.
    """
    global _settings, _store
    close_service()
    _settings = settings
    _store = store


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def get_manager() -> SnapshotManager:
    """
    Returns the singleton snapshot manager, opening the store if needed.
    """
    global _store, _manager
    if _manager is None:
        settings = get_settings()
        if _store is None:
            # Rebuilds run on a worker thread, not the thread that opened the store.
            _store = SQLiteStore.from_url(settings.database_url, check_same_thread=False)
        _manager = SnapshotManager(_store, _store, settings)
    return _manager


def get_service() -> QueryService:
    """
    FastAPI dependency providing the query service.
    """
    global _service
    if _service is None:
        _service = QueryService(get_manager().handle, get_settings())
    return _service


def close_service() -> None:
    """
    Stops rebuilds and closes the store.
    """
    global _store, _manager, _service
    if _manager is not None:
        _manager.shutdown()
    if _store is not None:
        _store.close()
    _store = None
    _manager = None
    _service = None
