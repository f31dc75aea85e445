"""
Quickstart: Sims, Metadata and Cascading Delete
================================================

WHAT THIS SHOWS:
- Creating Sims and attaching key/value Metadata
- Updating a Sim log (updatedAt always moves forward)
- Listing Sims in creation order
- Deleting a Sim together with all of its Metadata
- Persisting to a directory and reading it back after a "restart"

RUN:
    python -m examples.quickstart.run
    python -m examples.quickstart.run --backend json --data-dir /tmp/simstore_demo
"""

import argparse
import asyncio
from pathlib import Path

from simstore import (
    Config,
    InMemoryBackend,
    JsonFileBackend,
    SimDataStore,
    StorageBackend,
    get_log_preview,
)
from simstore.logging_utils import log_error, log_info, log_success


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simstore quickstart")
    parser.add_argument(
        "--backend",
        choices=["memory", "json"],
        default="memory",
        help="Backing store to use (default: memory)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Config.DATA_DIR,
        help="Directory for the json backend",
    )
    return parser.parse_args()


def build_backend(kind: str, data_dir: Path) -> StorageBackend:
    if kind == "json":
        return JsonFileBackend(data_dir)
    return InMemoryBackend(max_bytes=Config.MAX_STORAGE_BYTES)


async def run(kind: str, data_dir: Path) -> None:
    backend = build_backend(kind, data_dir)
    store = SimDataStore(backend)
    await store.initialize()

    # ------------------------------------------------------------------
    # STEP 1: Create two Sims
    # ------------------------------------------------------------------
    alice = await store.create_sim({"log": "Alice wakes up and makes coffee."})
    bob = await store.create_sim({"log": "Bob is late for work again."})
    if not (alice.success and bob.success):
        log_error(f"Could not create sims: {alice.error or bob.error}")
        return
    log_success(f"Created sims {alice.data.id} and {bob.data.id}")

    # ------------------------------------------------------------------
    # STEP 2: Attach metadata
    # ------------------------------------------------------------------
    name = await store.create_metadata({"entity_id": alice.data.id, "key": "name", "value": "Alice"})
    await store.create_metadata({"entity_id": alice.data.id, "key": "mood", "value": "cheerful"})
    await store.create_metadata({"entity_id": bob.data.id, "key": "name", "value": "Bob"})
    log_info(f"Alice has {await store.get_metadata_count(alice.data.id)} metadata entries")

    # Orphans are refused: the entity must exist
    orphan = await store.create_metadata(
        {"entity_id": "00000000-0000-4000-8000-000000000000", "key": "name", "value": "Nobody"}
    )
    log_info(f"Metadata for a missing sim refused: {orphan.error}")

    # ------------------------------------------------------------------
    # STEP 3: Update
    # ------------------------------------------------------------------
    updated = await store.update_sim(alice.data.id, {"log": "Alice finished her coffee."})
    log_info(
        f"Alice updatedAt moved {alice.data.updated_at} -> {updated.data.updated_at}, "
        f"log: {get_log_preview(updated.data.log, 20)}"
    )
    await store.update_metadata(alice.data.id, name.data.id, {"value": "Alice Smith"})

    stats = await store.get_metadata_stats(alice.data.id)
    log_info(f"Alice metadata stats: {stats.data.model_dump()}")

    # ------------------------------------------------------------------
    # STEP 4: List and delete
    # ------------------------------------------------------------------
    all_sims = await store.get_all_sims()
    for sim in all_sims.data:
        print(f"  • {sim.id}  {get_log_preview(sim.log, 40)}")

    deleted = await store.delete_sim(bob.data.id)
    if deleted.success:
        log_success("Deleted Bob along with the attached metadata")
    remaining = await store.get_all_metadata_for_entity(bob.data.id)
    log_info(f"Bob's metadata after delete: {remaining.error}")

    await store.close()

    # ------------------------------------------------------------------
    # STEP 5: Reopen (json backend only) to show data survived
    # ------------------------------------------------------------------
    if kind == "json":
        reopened = SimDataStore(JsonFileBackend(data_dir))
        await reopened.initialize()
        sims = (await reopened.get_all_sims()).data
        log_success(f"Reopened {data_dir}: {len(sims)} sim(s) on disk")
        await reopened.close()


def main() -> None:
    args = parse_args()
    print("=" * 70)
    print("SIMSTORE QUICKSTART")
    print("=" * 70)
    asyncio.run(run(args.backend, args.data_dir))


if __name__ == "__main__":
    main()
