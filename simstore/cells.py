"""
Per-key storage cells.

A cell is the in-process mirror of one backing-store key. The registry hands
out one cell per Sim id (the Sim record), one per owning entity id (that
entity's Metadata collection) and a single cell for the entity index. Cells
are created lazily for whatever ids are touched, hydrated from the backing
store the first time they are requested, and shared afterwards: two requests
for the same id return the same cell, so writes through one are visible
through the other.

Reads are synchronous against the mirror. A write is one awaited backing-store
write; the mirror only changes once that write has succeeded, so a failed
write never leaves the process believing something the store does not hold.
Writes and ``update`` read-modify-write cycles on one cell are serialized by
the cell lock.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from pydantic import TypeAdapter, ValidationError

from .backends import KeyValueStore
from .logging_utils import log_warning
from .schemas import Metadata, Sim

T = TypeVar("T")


@dataclass(frozen=True)
class StorageConfig:
    SIM_PREFIX: str = "sim-"
    METADATA_PREFIX: str = "metadata-"
    SIM_IDS_KEY: str = "sim-ids"
    MAX_STORAGE_SIZE: int = 50 * 1024 * 1024


STORAGE_CONFIG = StorageConfig()

_SIM_ADAPTER: TypeAdapter[Optional[Sim]] = TypeAdapter(Optional[Sim])
_METADATA_ADAPTER: TypeAdapter[List[Metadata]] = TypeAdapter(List[Metadata])
_INDEX_ADAPTER: TypeAdapter[List[str]] = TypeAdapter(List[str])


def sim_key(sim_id: str) -> str:
    return f"{STORAGE_CONFIG.SIM_PREFIX}{sim_id}"


def metadata_key(entity_id: str) -> str:
    return f"{STORAGE_CONFIG.METADATA_PREFIX}{entity_id}"


class StorageCell(Generic[T]):
    """Mirror of one backing-store key.

    Args:
        store: Adapter used for hydration and writes
        key: Backing-store key
        adapter: Pydantic adapter validating the stored shape
        default: Factory for the value used when the key is missing or corrupt
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        adapter: TypeAdapter[T],
        default: Callable[[], T],
    ):
        self.store = store
        self.key = key
        self._adapter = adapter
        self._default = default
        self._value: T = default()
        self._hydrated = False
        self._lock = asyncio.Lock()

    @property
    def hydrated(self) -> bool:
        return self._hydrated

    async def hydrate(self) -> None:
        """Load the stored value once. Later calls return immediately."""
        if self._hydrated:
            return
        async with self._lock:
            if self._hydrated:
                return
            raw = await self.store.get(self.key, None)
            self._value = self._decode(raw)
            self._hydrated = True

    def read(self) -> T:
        """Current value. Callers must treat it as read-only."""
        return self._value

    async def write(self, value: T) -> None:
        """Persist ``value`` and then update the mirror.

        Writing None to a Sim cell stores ``null``, which later hydrates as an
        absent record.

        Raises:
            StorageWriteError: If the backing store refused the write
        """
        async with self._lock:
            await self._persist(value)

    async def update(self, change: Callable[[T], T]) -> T:
        """Apply ``change`` to the current value and persist the result.

        The read and the write happen under the cell lock, so concurrent
        updates are applied one after another instead of overwriting each
        other. When ``change`` returns the current value unchanged nothing is
        written.

        Raises:
            StorageWriteError: If the backing store refused the write
        """
        async with self._lock:
            current = self._value
            new_value = change(current)
            if new_value is not current:
                await self._persist(new_value)
            return new_value

    async def _persist(self, value: T) -> None:
        payload = self._adapter.dump_python(value, mode="json", by_alias=True)
        await self.store.set(self.key, payload)
        self._value = value

    def _decode(self, raw: object) -> T:
        if raw is None:
            return self._default()
        try:
            return self._adapter.validate_python(raw)
        except ValidationError as exc:
            log_warning(
                f"Stored value for key '{self.key}' has an unexpected shape, using default: "
                f"{exc.error_count()} validation error(s)"
            )
            return self._default()


class CellRegistry:
    """Lazily creates and caches cells, keyed by id.

    Nothing is pre-registered: any number of distinct ids can be served, each
    costing one cell the first time it is touched.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._sim_cells: Dict[str, StorageCell[Optional[Sim]]] = {}
        self._metadata_cells: Dict[str, StorageCell[List[Metadata]]] = {}
        self._index_cell: Optional[StorageCell[List[str]]] = None

    async def sim_cell(self, sim_id: str) -> StorageCell[Optional[Sim]]:
        cell = self._sim_cells.get(sim_id)
        if cell is None:
            cell = StorageCell(self.store, sim_key(sim_id), _SIM_ADAPTER, lambda: None)
            self._sim_cells[sim_id] = cell
        await cell.hydrate()
        return cell

    async def metadata_cell(self, entity_id: str) -> StorageCell[List[Metadata]]:
        cell = self._metadata_cells.get(entity_id)
        if cell is None:
            cell = StorageCell(self.store, metadata_key(entity_id), _METADATA_ADAPTER, list)
            self._metadata_cells[entity_id] = cell
        await cell.hydrate()
        return cell

    async def index_cell(self) -> StorageCell[List[str]]:
        if self._index_cell is None:
            self._index_cell = StorageCell(
                self.store, STORAGE_CONFIG.SIM_IDS_KEY, _INDEX_ADAPTER, list
            )
        await self._index_cell.hydrate()
        return self._index_cell

    async def release(self, sim_id: str) -> None:
        """Drop the cached cells for ``sim_id`` and remove both keys from storage."""
        self._sim_cells.pop(sim_id, None)
        self._metadata_cells.pop(sim_id, None)
        await self.store.remove(sim_key(sim_id))
        await self.store.remove(metadata_key(sim_id))

    def cached_ids(self) -> set[str]:
        """Ids that currently hold a Sim or Metadata cell in this process."""
        return set(self._sim_cells) | set(self._metadata_cells)
