"""
Pydantic schemas for the Sim store.

All records persisted by the store and all inputs accepted by the data access
layer are defined here.

Design Philosophy:
- Stored records (Sim, Metadata) enforce the length bounds and id shape, so a
  hydrated value that does not fit is treated as corrupt rather than trusted
- Input models carry no length bounds; length checks live in
  ``simstore.validation`` and are reported as failure results, not exceptions
- Persisted field names follow the on-disk record shape (``createdAt``,
  ``updatedAt``, ``entity_id``) through aliases
"""

from dataclasses import dataclass
from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from simstore.identifiers import is_uuid4


# ============================================================================
# Constraints
# ============================================================================


@dataclass(frozen=True)
class SimConstraints:
    MIN_LOG_LENGTH: int = 0
    MAX_LOG_LENGTH: int = 10_000
    # Advisory system limit, not enforced by the store
    MAX_SIMS: int = 10_000


@dataclass(frozen=True)
class MetadataConstraints:
    MIN_KEY_LENGTH: int = 0
    MAX_KEY_LENGTH: int = 100
    MIN_VALUE_LENGTH: int = 0
    MAX_VALUE_LENGTH: int = 10_000
    # Design cap, checked by callers through would_exceed_metadata_limit()
    MAX_METADATA_PER_SIM: int = 20


SIM_CONSTRAINTS = SimConstraints()
METADATA_CONSTRAINTS = MetadataConstraints()


def _require_uuid4(value: str) -> str:
    if not is_uuid4(value):
        raise ValueError("Must be a valid UUID4")
    return value


Uuid4Str = Annotated[str, AfterValidator(_require_uuid4)]


# ============================================================================
# Stored Records
# ============================================================================


class Sim(BaseModel):
    """Primary record holding free-text log content.

    ``created_at`` is fixed at creation; ``updated_at`` only moves forward and
    never falls below ``created_at``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Uuid4Str = Field(..., description="Unique UUID4 identifier for the sim")
    log: str = Field(
        "",
        min_length=SIM_CONSTRAINTS.MIN_LOG_LENGTH,
        max_length=SIM_CONSTRAINTS.MAX_LOG_LENGTH,
        description="Main content area for the sim",
    )
    created_at: int = Field(..., alias="createdAt", gt=0, description="Creation time, ms since epoch")
    updated_at: int = Field(..., alias="updatedAt", gt=0, description="Last update time, ms since epoch")

    @model_validator(mode="after")
    def check_timestamps(self) -> "Sim":
        if self.updated_at < self.created_at:
            raise ValueError("updatedAt must not precede createdAt")
        return self

    def to_record(self) -> dict[str, Any]:
        """Serialize using the persisted field names."""
        return self.model_dump(by_alias=True)


class Metadata(BaseModel):
    """Key/value record owned by exactly one Sim."""

    model_config = ConfigDict(populate_by_name=True)

    id: Uuid4Str = Field(..., description="Unique UUID4 identifier for the metadata entry")
    entity_id: Uuid4Str = Field(..., description="Id of the Sim this metadata belongs to")
    key: str = Field(
        ...,
        min_length=METADATA_CONSTRAINTS.MIN_KEY_LENGTH,
        max_length=METADATA_CONSTRAINTS.MAX_KEY_LENGTH,
        description="Metadata field name",
    )
    value: str = Field(
        ...,
        min_length=METADATA_CONSTRAINTS.MIN_VALUE_LENGTH,
        max_length=METADATA_CONSTRAINTS.MAX_VALUE_LENGTH,
        description="Metadata field value",
    )

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# ============================================================================
# Inputs
# ============================================================================


class CreateSimInput(BaseModel):
    """Fields a caller may supply when creating a Sim."""

    log: Optional[str] = Field(None, description="Initial log content, defaults to empty")


class UpdateSimInput(BaseModel):
    """Fields a caller may change on an existing Sim. Omitted fields are kept."""

    model_config = ConfigDict(populate_by_name=True)

    log: Optional[str] = Field(None, description="Replacement log content")
    updated_at: Optional[int] = Field(
        None,
        alias="updatedAt",
        strict=True,
        description="Explicit update timestamp (auto-generated if not provided)",
    )


class CreateMetadataInput(BaseModel):
    entity_id: str = Field(..., description="Id of the owning Sim")
    key: str = Field(..., description="Metadata field name")
    value: str = Field(..., description="Metadata field value")


class UpdateMetadataInput(BaseModel):
    """Fields a caller may change on an existing Metadata entry."""

    key: Optional[str] = None
    value: Optional[str] = None


# ============================================================================
# Results
# ============================================================================

T = TypeVar("T")


class DataResult(BaseModel, Generic[T]):
    """Uniform outcome of every data access operation.

    Expected failures (validation, not found) and unexpected ones alike are
    reported through ``success=False`` with a human-readable ``error``.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "DataResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "DataResult[T]":
        return cls(success=False, error=error)


class MetadataStats(BaseModel):
    """Aggregate figures for one entity's metadata collection."""

    count: int = 0
    has_content: int = Field(0, description="Entries whose key and value are both non-blank")
    is_empty: int = Field(0, description="Entries with a blank key or value")
    total_key_length: int = 0
    total_value_length: int = 0
    average_key_length: float = 0.0
    average_value_length: float = 0.0
