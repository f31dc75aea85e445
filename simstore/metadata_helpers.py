"""Pure helpers over in-memory lists of Metadata.

These functions never touch storage. They operate on whatever list the caller
holds, which may mix entries from several entities.
"""

from typing import List, Optional

from simstore.identifiers import generate_uuid4
from simstore.schemas import (
    METADATA_CONSTRAINTS,
    CreateMetadataInput,
    DataResult,
    Metadata,
    MetadataStats,
    UpdateMetadataInput,
)
from simstore.validation import (
    has_metadata_content,
    is_valid_metadata,
    truncate_key,
    truncate_value,
)


def build_metadata(data: CreateMetadataInput) -> DataResult[Metadata]:
    """Create a new Metadata entry from ``data`` with a fresh id.

    Over-long input is rejected; accepted key and value pass through the
    truncation helpers before being stored on the entry.
    """
    if not is_valid_metadata(data):
        return DataResult.fail("Invalid metadata: key or value length exceeds constraints")

    metadata = Metadata(
        id=generate_uuid4(),
        entity_id=data.entity_id,
        key=truncate_key(data.key),
        value=truncate_value(data.value),
    )
    return DataResult.ok(metadata)


def apply_metadata_update(existing: Metadata, updates: UpdateMetadataInput) -> DataResult[Metadata]:
    """Return a copy of ``existing`` with the supplied fields replaced."""
    if not is_valid_metadata(updates):
        return DataResult.fail("Invalid metadata updates: key or value length exceeds constraints")

    updated = existing.model_copy(
        update={
            "key": truncate_key(updates.key) if updates.key is not None else existing.key,
            "value": truncate_value(updates.value) if updates.value is not None else existing.value,
        }
    )
    return DataResult.ok(updated)


def get_metadata_for_entity(metadata_list: List[Metadata], entity_id: str) -> List[Metadata]:
    return [metadata for metadata in metadata_list if metadata.entity_id == entity_id]


def find_metadata_by_key(
    metadata_list: List[Metadata], entity_id: str, key: str
) -> Optional[Metadata]:
    """First entry of ``entity_id`` whose key equals ``key``, or None."""
    for metadata in metadata_list:
        if metadata.entity_id == entity_id and metadata.key == key:
            return metadata
    return None


def would_exceed_metadata_limit(metadata_list: List[Metadata], entity_id: str) -> bool:
    """True once ``entity_id`` already holds MAX_METADATA_PER_SIM entries."""
    count = len(get_metadata_for_entity(metadata_list, entity_id))
    return count >= METADATA_CONSTRAINTS.MAX_METADATA_PER_SIM


def remove_entity_metadata(metadata_list: List[Metadata], entity_id: str) -> List[Metadata]:
    return [metadata for metadata in metadata_list if metadata.entity_id != entity_id]


def remove_metadata_by_id(metadata_list: List[Metadata], metadata_id: str) -> List[Metadata]:
    return [metadata for metadata in metadata_list if metadata.id != metadata_id]


def get_metadata_stats(metadata_list: List[Metadata], entity_id: str) -> MetadataStats:
    entries = get_metadata_for_entity(metadata_list, entity_id)
    if not entries:
        return MetadataStats()

    with_content = sum(1 for metadata in entries if has_metadata_content(metadata))
    total_key_length = sum(len(metadata.key) for metadata in entries)
    total_value_length = sum(len(metadata.value) for metadata in entries)

    return MetadataStats(
        count=len(entries),
        has_content=with_content,
        is_empty=len(entries) - with_content,
        total_key_length=total_key_length,
        total_value_length=total_value_length,
        average_key_length=total_key_length / len(entries),
        average_value_length=total_value_length / len(entries),
    )
