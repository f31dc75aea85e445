"""
Data access layer: CRUD for Sims and Metadata with cascading delete.

SimDataStore is the single entry point callers (UI, LLM tooling, tick systems)
use to touch stored data. It validates input, checks that referenced records
exist, and writes the Sim cells, Metadata cells and entity index together so
they never disagree about which Sims are alive.

Result contract:
- Every CRUD operation returns a ``DataResult`` and never raises.
- Validation failures and missing records are expected outcomes, returned as
  ``success=False`` with a message naming the field limit or containing
  "not found".
- Unexpected failures (a refused backing-store write, for instance) are logged
  and returned as a generic failure message for that operation.

Concurrency:
- Metadata for one Sim is stored as a single collection and updated by
  read-modify-write. Two concurrent writers to the same Sim's metadata race
  and the last write wins. Single-user, single-process use is assumed.

Usage pattern:
    store = SimDataStore(JsonFileBackend("simstore_data"))
    await store.initialize()

    created = await store.create_sim({"log": "hello"})
    sim_id = created.data.id
    await store.create_metadata({"entity_id": sim_id, "key": "name", "value": "Alice"})

    await store.delete_sim(sim_id)   # metadata goes with it
    await store.close()
"""

from __future__ import annotations

import functools
import time
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .backends import InMemoryBackend, KeyValueStore, StorageBackend
from .cells import CellRegistry
from .identifiers import generate_uuid4, is_uuid4
from .index import EntityIndex
from .logging_utils import log_error
from .metadata_helpers import (
    apply_metadata_update,
    build_metadata,
    find_metadata_by_key,
    get_metadata_stats,
    remove_metadata_by_id,
    would_exceed_metadata_limit,
)
from .schemas import (
    CreateMetadataInput,
    CreateSimInput,
    DataResult,
    Metadata,
    MetadataStats,
    Sim,
    UpdateMetadataInput,
    UpdateSimInput,
)
from .validation import (
    KEY_TOO_LONG,
    LOG_TOO_LONG,
    VALUE_TOO_LONG,
    is_valid_key_length,
    is_valid_log_length,
    is_valid_value_length,
)

InputT = TypeVar("InputT", bound=BaseModel)

TIMESTAMP_NOT_POSITIVE = "Updated timestamp must be a positive number"


def _current_time_ms() -> int:
    return time.time_ns() // 1_000_000


def _coerce(model: Type[InputT], data: Union[InputT, Mapping[str, Any], None]) -> InputT:
    if isinstance(data, model):
        return data
    return model.model_validate(data or {})


def _invalid_input(exc: ValidationError) -> DataResult[Any]:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "input"
    return DataResult.fail(f"Invalid input for '{field}': {first['msg']}")


def guarded(message: str) -> Callable[[Callable[..., Awaitable[DataResult[Any]]]], Callable[..., Awaitable[DataResult[Any]]]]:
    """Turn any exception escaping an operation into a logged failure result."""

    def decorator(func: Callable[..., Awaitable[DataResult[Any]]]) -> Callable[..., Awaitable[DataResult[Any]]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> DataResult[Any]:
            try:
                return await func(*args, **kwargs)
            except ValidationError as exc:
                return _invalid_input(exc)
            except Exception as exc:
                log_error(f"{func.__name__} failed: {type(exc).__name__}: {exc}")
                return DataResult.fail(message)

        return wrapper

    return decorator


def _validate_sim_log(log: Optional[str]) -> Optional[str]:
    if log is not None and not is_valid_log_length(log):
        return LOG_TOO_LONG
    return None


def _validate_metadata_fields(key: Optional[str], value: Optional[str]) -> Optional[str]:
    if key is not None and not is_valid_key_length(key):
        return KEY_TOO_LONG
    if value is not None and not is_valid_value_length(value):
        return VALUE_TOO_LONG
    return None


class SimDataStore:
    """CRUD and cascade operations over a backing store.

    Args:
        backend: Medium holding the data. Defaults to an unbounded
            ``InMemoryBackend``.
        clock: Returns the current time in milliseconds since the epoch.
            Injectable so tests can pin timestamps.
    """

    def __init__(
        self,
        backend: Optional[StorageBackend] = None,
        *,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.backend = backend if backend is not None else InMemoryBackend()
        self.kv = KeyValueStore(self.backend)
        self.cells = CellRegistry(self.kv)
        self._clock = clock or _current_time_ms

    async def initialize(self) -> None:
        await self.kv.initialize()

    async def close(self) -> None:
        await self.kv.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _index(self) -> EntityIndex:
        return EntityIndex(await self.cells.index_cell())

    async def _load_sim(self, sim_id: str) -> Optional[Sim]:
        # Ids that cannot name a Sim never get a cell
        if not is_uuid4(sim_id):
            return None
        cell = await self.cells.sim_cell(sim_id)
        return cell.read()

    async def _load_metadata(self, entity_id: str) -> List[Metadata]:
        if not is_uuid4(entity_id):
            return []
        cell = await self.cells.metadata_cell(entity_id)
        return cell.read()

    @staticmethod
    def _sim_not_found(sim_id: str) -> DataResult[Any]:
        return DataResult.fail(f"Sim with ID {sim_id} not found")

    @staticmethod
    def _metadata_not_found(metadata_id: str) -> DataResult[Any]:
        return DataResult.fail(f"Metadata with ID {metadata_id} not found")

    # ------------------------------------------------------------------
    # Sim operations
    # ------------------------------------------------------------------

    @guarded("Failed to create sim")
    async def create_sim(
        self, data: Union[CreateSimInput, Mapping[str, Any], None] = None
    ) -> DataResult[Sim]:
        """Create a Sim. A missing log becomes the empty string."""
        data = _coerce(CreateSimInput, data)
        error = _validate_sim_log(data.log)
        if error:
            return DataResult.fail(error)

        now = self._clock()
        sim = Sim(id=generate_uuid4(), log=data.log or "", created_at=now, updated_at=now)

        cell = await self.cells.sim_cell(sim.id)
        await cell.write(sim)

        index = await self._index()
        try:
            await index.append(sim.id)
        except Exception:
            # Roll back the cell so no unlisted record lingers
            await self.cells.release(sim.id)
            raise

        return DataResult.ok(sim)

    @guarded("Failed to retrieve sim")
    async def get_sim(self, sim_id: str) -> DataResult[Sim]:
        sim = await self._load_sim(sim_id)
        if sim is None:
            return self._sim_not_found(sim_id)
        return DataResult.ok(sim)

    @guarded("Failed to retrieve sims")
    async def get_all_sims(self) -> DataResult[List[Sim]]:
        """All live Sims in creation order.

        An id listed in the index whose record cannot be read is left out of
        the result rather than failing the whole call.
        """
        index = await self._index()
        sims: List[Sim] = []
        for sim_id in index.ids():
            result = await self.get_sim(sim_id)
            if result.success and result.data is not None:
                sims.append(result.data)
        return DataResult.ok(sims)

    @guarded("Failed to update sim")
    async def update_sim(
        self, sim_id: str, data: Union[UpdateSimInput, Mapping[str, Any]]
    ) -> DataResult[Sim]:
        """Merge the supplied fields into an existing Sim.

        ``updatedAt`` always moves strictly forward. Without an explicit value
        it becomes ``max(now, previous updatedAt + 1)``, which is also at least
        ``createdAt + 1``. An explicit value is kept as given when it is later
        than the stored one, and otherwise replaced by ``previous + 1``.
        """
        data = _coerce(UpdateSimInput, data)
        error = _validate_sim_log(data.log)
        if error:
            return DataResult.fail(error)
        if data.updated_at is not None and data.updated_at <= 0:
            return DataResult.fail(TIMESTAMP_NOT_POSITIVE)

        current = await self._load_sim(sim_id)
        if current is None:
            return self._sim_not_found(sim_id)

        floor = current.updated_at + 1
        if data.updated_at is not None:
            updated_at = data.updated_at if data.updated_at >= floor else floor
        else:
            updated_at = max(self._clock(), floor)

        updated = Sim(
            id=current.id,
            log=data.log if data.log is not None else current.log,
            created_at=current.created_at,
            updated_at=updated_at,
        )

        cell = await self.cells.sim_cell(sim_id)
        await cell.write(updated)
        return DataResult.ok(updated)

    @guarded("Failed to delete sim")
    async def delete_sim(self, sim_id: str) -> DataResult[None]:
        """Delete a Sim and all of its Metadata.

        Order matters: metadata is cleared first, and if that fails the Sim is
        left untouched. Only then is the id dropped from the index, the Sim
        cell cleared and the cached cells released.

        An id still listed in the index whose record is missing or unreadable
        is dropped from the index (and its leftover keys removed) before
        "not found" is returned.
        """
        if await self._load_sim(sim_id) is None:
            index = await self._index()
            if sim_id in index:
                await index.remove(sim_id)
                await self.cells.release(sim_id)
            return self._sim_not_found(sim_id)

        cascade = await self.delete_all_metadata_for_entity(sim_id)
        if not cascade.success:
            return DataResult.fail(cascade.error or "Failed to delete metadata")

        index = await self._index()
        await index.remove(sim_id)

        cell = await self.cells.sim_cell(sim_id)
        await cell.write(None)

        await self.cells.release(sim_id)
        return DataResult.ok()

    async def sim_exists(self, sim_id: str) -> bool:
        result = await self.get_sim(sim_id)
        return result.success

    # ------------------------------------------------------------------
    # Metadata operations
    # ------------------------------------------------------------------

    @guarded("Failed to create metadata")
    async def create_metadata(
        self, data: Union[CreateMetadataInput, Mapping[str, Any]]
    ) -> DataResult[Metadata]:
        """Attach a key/value entry to an existing Sim.

        The per-Sim cap of 20 entries is advisory and not checked here; call
        ``would_exceed_metadata_limit`` first.
        """
        data = _coerce(CreateMetadataInput, data)
        error = _validate_metadata_fields(data.key, data.value)
        if error:
            return DataResult.fail(error)

        if not await self.sim_exists(data.entity_id):
            return DataResult.fail(
                f"Cannot create metadata: sim with ID {data.entity_id} not found"
            )

        built = build_metadata(data)
        if not built.success or built.data is None:
            return DataResult.fail(built.error or "Failed to create metadata")

        cell = await self.cells.metadata_cell(data.entity_id)
        await cell.write([*cell.read(), built.data])
        return DataResult.ok(built.data)

    @guarded("Failed to retrieve metadata")
    async def get_metadata(self, entity_id: str, metadata_id: str) -> DataResult[Metadata]:
        for metadata in await self._load_metadata(entity_id):
            if metadata.id == metadata_id:
                return DataResult.ok(metadata)
        return self._metadata_not_found(metadata_id)

    @guarded("Failed to retrieve metadata")
    async def get_all_metadata_for_entity(self, entity_id: str) -> DataResult[List[Metadata]]:
        """Metadata of a live Sim. Fails when the Sim is gone, even if entries remain."""
        if not await self.sim_exists(entity_id):
            return DataResult.fail(f"Entity with ID {entity_id} not found")
        return DataResult.ok(list(await self._load_metadata(entity_id)))

    @guarded("Failed to update metadata")
    async def update_metadata(
        self,
        entity_id: str,
        metadata_id: str,
        data: Union[UpdateMetadataInput, Mapping[str, Any]],
    ) -> DataResult[Metadata]:
        """Replace only the supplied fields of one entry."""
        data = _coerce(UpdateMetadataInput, data)
        error = _validate_metadata_fields(data.key, data.value)
        if error:
            return DataResult.fail(error)

        existing = await self.get_metadata(entity_id, metadata_id)
        if not existing.success or existing.data is None:
            return DataResult.fail(existing.error or f"Metadata with ID {metadata_id} not found")

        updated = apply_metadata_update(existing.data, data)
        if not updated.success or updated.data is None:
            return DataResult.fail(updated.error or "Failed to update metadata")

        cell = await self.cells.metadata_cell(entity_id)
        await cell.write(
            [updated.data if metadata.id == metadata_id else metadata for metadata in cell.read()]
        )
        return DataResult.ok(updated.data)

    @guarded("Failed to delete metadata")
    async def delete_metadata(self, entity_id: str, metadata_id: str) -> DataResult[None]:
        existing = await self.get_metadata(entity_id, metadata_id)
        if not existing.success:
            return DataResult.fail(existing.error or f"Metadata with ID {metadata_id} not found")

        cell = await self.cells.metadata_cell(entity_id)
        await cell.write(remove_metadata_by_id(cell.read(), metadata_id))
        return DataResult.ok()

    @guarded("Failed to delete metadata")
    async def delete_all_metadata_for_entity(self, entity_id: str) -> DataResult[None]:
        """Empty the entity's metadata collection.

        Cascade step of ``delete_sim``; does not check that the Sim exists.
        """
        cell = await self.cells.metadata_cell(entity_id)
        await cell.write([])
        return DataResult.ok()

    async def get_metadata_count(self, entity_id: str) -> int:
        """Number of entries, 0 when the Sim does not exist or lookup fails."""
        result = await self.get_all_metadata_for_entity(entity_id)
        if not result.success or result.data is None:
            return 0
        return len(result.data)

    @guarded("Failed to search metadata")
    async def find_metadata_by_key(self, entity_id: str, key: str) -> DataResult[Optional[Metadata]]:
        """First entry with ``key``; ``data`` is None when nothing matches."""
        result = await self.get_all_metadata_for_entity(entity_id)
        if not result.success or result.data is None:
            return DataResult.fail(result.error or f"Entity with ID {entity_id} not found")
        return DataResult.ok(find_metadata_by_key(result.data, entity_id, key))

    async def would_exceed_metadata_limit(self, entity_id: str) -> bool:
        """True when adding one more entry would pass the per-Sim cap."""
        result = await self.get_all_metadata_for_entity(entity_id)
        if not result.success or result.data is None:
            return False
        return would_exceed_metadata_limit(result.data, entity_id)

    @guarded("Failed to compute metadata statistics")
    async def get_metadata_stats(self, entity_id: str) -> DataResult[MetadataStats]:
        result = await self.get_all_metadata_for_entity(entity_id)
        if not result.success or result.data is None:
            return DataResult.fail(result.error or f"Entity with ID {entity_id} not found")
        return DataResult.ok(get_metadata_stats(result.data, entity_id))
