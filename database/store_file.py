"""
FileQueueStore — JSON file-backed store with persistence across restarts.

Data layout:
  {data_dir}/
    message_queue.json     {entry_id: entry}

Features:
  - Survives process restarts (unlike InMemoryQueueStore)
  - No external dependencies (no database server)
  - Flushes on every save / save_all, written atomically via a temp file
  - Single-process only (no concurrent write safety)

Best for: small deployments, demos, edge devices, air-gapped environments.
"""
from __future__ import annotations

import json
import os
import structlog
from pathlib import Path
from typing import Any

from database.store_memory import InMemoryQueueStore
from models.schemas import QueueEntry

logger = structlog.get_logger()

_COLLECTION = "message_queue"


class FileQueueStore(InMemoryQueueStore):
    """
    Extends InMemoryQueueStore with JSON file persistence.

    On init: loads all entries from disk into memory.
    On every write: flushes the whole collection to disk.
    """

    def __init__(self, data_dir: str = "./data"):
        super().__init__()
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._load()
        logger.info("file_queue_store_initialized",
                    data_dir=str(self._data_dir),
                    entries=len(self._entries))

    @property
    def file_path(self) -> Path:
        return self._data_dir / f"{_COLLECTION}.json"

    def _load(self) -> None:
        path = self.file_path
        if not path.exists():
            return
        try:
            with open(path, "r") as f:
                data: dict[str, Any] = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("file_queue_store_load_error", path=str(path), error=str(e))
            return
        for raw in data.values():
            self._store(QueueEntry.model_validate(raw))

    def _flush(self) -> None:
        data = {eid: e.model_dump(mode="json") for eid, e in self._entries.items()}
        tmp = self.file_path.with_suffix(".json.tmp")
        with open(tmp, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, self.file_path)

    async def save(self, entry: QueueEntry) -> QueueEntry:
        await super().save(entry)
        self._flush()
        return entry

    async def save_all(self, entries: list[QueueEntry]) -> list[QueueEntry]:
        await super().save_all(entries)
        self._flush()
        return entries
