"""
Backing store media and the key/value adapter the storage cells sit on.

A medium is anything that can get, set and remove a string value by string key:
a Python dict, a directory of files, a database table. The store never talks to
a medium directly. It goes through ``KeyValueStore``, which adds JSON encoding
and the failure policy every caller relies on:

- ``get`` never raises. A missing key yields the caller's default; an
  unreadable or corrupt value yields the default plus a logged warning.
- ``set`` raises ``StorageWriteError`` when the value cannot be encoded or the
  medium refuses the write (full, read-only, disconnected). Dropping a write
  silently would break durability, so the caller must hear about it.
- ``remove`` is best-effort: failures are logged and swallowed.

Three included media:
1. InMemoryBackend - dict-based, optional byte capacity (testing, prototyping)
2. JsonFileBackend - one file per key in a directory (single-user persistence)
3. PostgresBackend - one table of key/value rows (shared or long-lived storage)

Keys are independent; no ordering is guaranteed across keys.

Usage pattern:
    store = KeyValueStore(JsonFileBackend("simstore_data"))
    await store.initialize()
    await store.set("sim-ids", [])
    ids = await store.get("sim-ids", [])
    await store.close()
"""

import asyncio
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from .config import Config
from .logging_utils import log_error, log_warning

try:  # Optional dependency (only needed for PostgresBackend)
    import asyncpg
except ImportError:  # pragma: no cover - asyncpg may not be installed for json/memory usage
    asyncpg = None


class StorageError(RuntimeError):
    """Base class for backing store failures."""


class StorageWriteError(StorageError):
    """Raised when a value could not be durably written."""


class StorageQuotaExceededError(StorageWriteError):
    """Raised when a write would push a medium past its capacity."""


class StorageBackend(ABC):
    """Abstract string-keyed medium holding string values.

    Lifecycle methods mirror the rest of the store: ``initialize()`` before
    first use, ``close()`` when done. All methods are async so that file and
    database media never block the event loop; the in-memory medium simply
    returns immediately.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the medium (create directories, tables, pools)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by the medium."""
        pass

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """
        Read the raw value stored under ``key``.

        Returns:
            The stored string, or None if the key is absent

        Raises:
            Exception: If the medium cannot be read
        """
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """
        Store ``value`` under ``key``, replacing any previous value.

        Raises:
            Exception: If the write fails
        """
        pass

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """
        Delete ``key``. Removing an absent key is not an error.

        Raises:
            Exception: If the medium cannot be modified
        """
        pass


class InMemoryBackend(StorageBackend):
    """Dict-based medium, data lost on exit.

    ``max_bytes`` caps the UTF-8 size of all keys plus values, the way a browser
    storage quota does. A write that would exceed it raises
    ``StorageQuotaExceededError`` and leaves the previous value in place.
    """

    def __init__(self, max_bytes: Optional[int] = None):
        self.items: Dict[str, str] = {}
        self.max_bytes = max_bytes

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        # Data is kept so callers can inspect it after close
        pass

    async def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if self.max_bytes is not None:
            previous = self.items.get(key)
            projected = self.used_bytes() + _entry_size(key, value)
            if previous is not None:
                projected -= _entry_size(key, previous)
            if projected > self.max_bytes:
                raise StorageQuotaExceededError(
                    f"Writing '{key}' needs {projected} bytes, capacity is {self.max_bytes}"
                )
        self.items[key] = value

    async def remove_item(self, key: str) -> None:
        self.items.pop(key, None)

    def used_bytes(self) -> int:
        return sum(_entry_size(key, value) for key, value in self.items.items())


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class JsonFileBackend(StorageBackend):
    """File-based medium: one JSON document per key.

    Directory structure:
    ```
    {base_path}/
      sim-ids.json                 # entity index
      sim-<uuid>.json              # one Sim record
      metadata-<uuid>.json         # that Sim's metadata collection
    ```

    Writes go to a temporary file first and are moved into place with
    ``os.replace`` so a crash mid-write never leaves a half-written value.
    All file I/O runs in a worker thread (``asyncio.to_thread``).
    """

    def __init__(self, base_path: Path | str = "simstore_data"):
        self.base_path = Path(base_path)

    async def initialize(self) -> None:
        await asyncio.to_thread(self.base_path.mkdir, parents=True, exist_ok=True)

    async def close(self) -> None:
        # Nothing to clean up for file persistence
        return None

    async def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return await asyncio.to_thread(path.read_text, "utf-8")

    async def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_name(path.name + ".tmp")

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, "utf-8")
            os.replace(tmp_path, path)

        await asyncio.to_thread(_write)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._path(key).unlink, missing_ok=True)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Key '{key}' cannot be used as a file name")
        return self.base_path / f"{key}.json"


class PostgresBackend(StorageBackend):
    """PostgreSQL-backed medium using an asyncpg connection pool.

    Schema (created by ``initialize()`` if missing):
        simstore_items(key TEXT PRIMARY KEY, value TEXT NOT NULL)
    """

    TABLE = "simstore_items"

    def __init__(self, database_url: Optional[str] = None):
        if asyncpg is None:  # pragma: no cover - handled during runtime when dependency missing
            raise ImportError(
                "asyncpg is required for PostgresBackend. Install with `pip install asyncpg`."
            )

        self.database_url = database_url or Config.DATABASE_URL
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self) -> None:
        if self.pool is None:
            self.pool = await asyncpg.create_pool(self.database_url)
            async with self.pool.acquire() as conn:
                await conn.execute(
                    f"CREATE TABLE IF NOT EXISTS {self.TABLE} "
                    "(key TEXT PRIMARY KEY, value TEXT NOT NULL)"
                )

    async def close(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    async def get_item(self, key: str) -> Optional[str]:
        assert self.pool is not None, "Backend not initialized"

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT value FROM {self.TABLE} WHERE key = $1", key)
        return row["value"] if row else None

    async def set_item(self, key: str, value: str) -> None:
        assert self.pool is not None, "Backend not initialized"

        query = f"""
            INSERT INTO {self.TABLE} (key, value)
            VALUES ($1, $2)
            ON CONFLICT (key) DO UPDATE SET value = $2
        """
        async with self.pool.acquire() as conn:
            await conn.execute(query, key, value)

    async def remove_item(self, key: str) -> None:
        assert self.pool is not None, "Backend not initialized"

        async with self.pool.acquire() as conn:
            await conn.execute(f"DELETE FROM {self.TABLE} WHERE key = $1", key)


class KeyValueStore:
    """JSON key/value adapter over a ``StorageBackend``.

    This is the only component that calls a medium. See the module docstring
    for its read/write/remove failure policy.
    """

    def __init__(self, backend: StorageBackend):
        self.backend = backend

    async def initialize(self) -> None:
        await self.backend.initialize()

    async def close(self) -> None:
        await self.backend.close()

    async def get(self, key: str, default: Any = None) -> Any:
        try:
            raw = await self.backend.get_item(key)
        except Exception as exc:
            log_warning(f"Failed to read key '{key}' from storage: {exc}")
            return default

        if raw is None:
            return default

        try:
            return json.loads(raw)
        except ValueError as exc:
            log_warning(f"Corrupt value for key '{key}', using default: {exc}")
            return default

    async def set(self, key: str, value: Any) -> None:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as exc:
            log_error(f"Failed to serialize value for key '{key}': {exc}")
            raise StorageWriteError(f"Cannot serialize value for key '{key}'") from exc

        try:
            await self.backend.set_item(key, raw)
        except StorageWriteError as exc:
            log_error(f"Failed to write key '{key}' to storage: {exc}")
            raise
        except Exception as exc:
            log_error(f"Failed to write key '{key}' to storage: {exc}")
            raise StorageWriteError(f"Failed to write key '{key}'") from exc

    async def remove(self, key: str) -> None:
        try:
            await self.backend.remove_item(key)
        except Exception as exc:
            log_warning(f"Failed to remove key '{key}' from storage: {exc}")


def backend_from_config() -> StorageBackend:
    """Build the medium selected by ``Config.BACKEND``."""
    Config.validate()

    if Config.BACKEND == "json":
        return JsonFileBackend(Config.DATA_DIR)
    if Config.BACKEND == "postgres":
        return PostgresBackend(Config.DATABASE_URL)
    return InMemoryBackend(max_bytes=Config.MAX_STORAGE_BYTES)
