"""
Queue persistence.

Backends behind one ``BaseQueueStore`` contract:
  - SqlQueueStore: PostgreSQL / MySQL / SQLite via SQLAlchemy async
  - InMemoryQueueStore: dicts, lost on restart
  - FileQueueStore: one JSON file, single process

    from database import create_store
    store = create_store(settings.database)
    due = await store.get_queued_messages(50, as_of)
"""
from database.models import Base, MessageQueueRow
from database.session import (
    close_db, create_engine_for_url, create_session_factory, get_engine, get_session,
    init_db, session_scope,
)
from database.store_base import BaseQueueStore
from database.store import SqlQueueStore
from database.store_memory import InMemoryQueueStore
from database.store_file import FileQueueStore
from database.store_factory import create_store, get_store, reset_store

__all__ = [
    "Base", "MessageQueueRow",
    "create_engine_for_url", "create_session_factory", "session_scope",
    "get_engine", "get_session", "init_db", "close_db",
    "BaseQueueStore", "SqlQueueStore", "InMemoryQueueStore", "FileQueueStore",
    "create_store", "get_store", "reset_store",
]
