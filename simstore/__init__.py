"""
Simstore - validated record store for Sims and their Metadata.

Sims hold free-text logs; Metadata entries are key/value pairs owned by one
Sim. The store validates lengths, enforces that Metadata only attaches to live
Sims, deletes a Sim's Metadata along with it, and persists everything through
a pluggable key/value medium (memory, JSON files, PostgreSQL).

No global store: create a SimDataStore and pass it where it is needed.
"""

__version__ = "0.1.0"

# Main entry point
from .data_access import SimDataStore

# Backing store media and adapter
from .backends import (
    StorageBackend,
    InMemoryBackend,
    JsonFileBackend,
    PostgresBackend,
    KeyValueStore,
    StorageError,
    StorageWriteError,
    StorageQuotaExceededError,
    backend_from_config,
)
from .cells import CellRegistry, StorageCell, STORAGE_CONFIG
from .index import EntityIndex
from .config import Config

# Core schemas
from .schemas import (
    Sim,
    Metadata,
    CreateSimInput,
    UpdateSimInput,
    CreateMetadataInput,
    UpdateMetadataInput,
    DataResult,
    MetadataStats,
    SIM_CONSTRAINTS,
    METADATA_CONSTRAINTS,
)

# Identifiers
from .identifiers import (
    InvalidIdentifierError,
    generate_uuid4,
    is_uuid4,
    to_uuid4,
    assert_uuid4,
)

# Validation helpers
from .validation import (
    is_valid_log_length,
    is_valid_key_length,
    is_valid_value_length,
    is_valid_metadata,
    truncate_log,
    truncate_key,
    truncate_value,
    get_preview,
    get_log_preview,
    get_value_preview,
    has_content,
    has_log_content,
    has_metadata_content,
)

__all__ = [
    # Main class
    "SimDataStore",
    # Storage
    "StorageBackend",
    "InMemoryBackend",
    "JsonFileBackend",
    "PostgresBackend",
    "KeyValueStore",
    "StorageError",
    "StorageWriteError",
    "StorageQuotaExceededError",
    "backend_from_config",
    "CellRegistry",
    "StorageCell",
    "STORAGE_CONFIG",
    "EntityIndex",
    "Config",
    # Schemas
    "Sim",
    "Metadata",
    "CreateSimInput",
    "UpdateSimInput",
    "CreateMetadataInput",
    "UpdateMetadataInput",
    "DataResult",
    "MetadataStats",
    "SIM_CONSTRAINTS",
    "METADATA_CONSTRAINTS",
    # Identifiers
    "InvalidIdentifierError",
    "generate_uuid4",
    "is_uuid4",
    "to_uuid4",
    "assert_uuid4",
    # Validation
    "is_valid_log_length",
    "is_valid_key_length",
    "is_valid_value_length",
    "is_valid_metadata",
    "truncate_log",
    "truncate_key",
    "truncate_value",
    "get_preview",
    "get_log_preview",
    "get_value_preview",
    "has_content",
    "has_log_content",
    "has_metadata_content",
]
