"""
Store Factory — picks the queue store backend named in ``database.store_backend``.

    database:
      url: "sqlite:///./message_queue.db"   # used by the "sql" backend
      store_backend: "memory"               # "sql" | "memory" | "file"
      store_file_dir: "./data"              # used by the "file" backend

Usage:
    store = create_store(settings.database)   # first call builds the process-wide store
    store = get_store()                       # same instance, built from settings if needed
"""
from __future__ import annotations

import structlog
from typing import Any, Optional, Union

from config.settings import DatabaseConfig, get_settings
from database.store_base import BaseQueueStore

logger = structlog.get_logger()

BACKENDS = ("sql", "memory", "file")

_instance: Optional[BaseQueueStore] = None


def _build(config: DatabaseConfig) -> BaseQueueStore:
    backend = (config.store_backend or "memory").lower()

    if backend == "sql":
        from database.session import create_engine_for_url, create_session_factory
        from database.store import SqlQueueStore
        return SqlQueueStore(create_session_factory(create_engine_for_url(config.url)))

    if backend == "file":
        from database.store_file import FileQueueStore
        return FileQueueStore(data_dir=config.store_file_dir)

    if backend == "memory":
        from database.store_memory import InMemoryQueueStore
        return InMemoryQueueStore()

    raise ValueError(f"Unknown store backend {config.store_backend!r}, expected one of {BACKENDS}")


def create_store(config: Union[DatabaseConfig, dict[str, Any], None] = None) -> BaseQueueStore:
    """Build the store once; later calls return it whatever ``config`` says."""
    global _instance
    if _instance is not None:
        return _instance

    if isinstance(config, dict):
        config = DatabaseConfig(**config)
    config = config or get_settings().database

    _instance = _build(config)
    logger.info("queue_store_created",
                backend=config.store_backend,
                store=type(_instance).__name__)
    return _instance


def get_store() -> BaseQueueStore:
    return _instance if _instance is not None else create_store()


def reset_store() -> None:
    """Forget the process-wide store (tests, reconfiguration)."""
    global _instance
    _instance = None
