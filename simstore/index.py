"""Entity index: the persisted, insertion-ordered list of live Sim ids.

It is the only way to enumerate Sims. The data access layer is its sole
writer and keeps membership in step with the Sim cells. Changes go through
the cell's locked ``update``, so concurrent creates and deletes never drop
each other's ids.
"""

from typing import List

from .cells import StorageCell


class EntityIndex:
    """Ordered set of Sim ids stored under the ``sim-ids`` key."""

    def __init__(self, cell: StorageCell[List[str]]):
        self._cell = cell

    def ids(self) -> List[str]:
        return list(self._cell.read())

    def __contains__(self, sim_id: object) -> bool:
        return sim_id in self._cell.read()

    def __len__(self) -> int:
        return len(self._cell.read())

    async def append(self, sim_id: str) -> None:
        await self._cell.update(
            lambda current: current if sim_id in current else [*current, sim_id]
        )

    async def remove(self, sim_id: str) -> None:
        await self._cell.update(
            lambda current: [existing for existing in current if existing != sim_id]
            if sim_id in current
            else current
        )
