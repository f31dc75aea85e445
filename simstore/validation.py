"""Length validation and normalization for Sim and Metadata text fields.

Every function here is pure. The data access layer runs the same checks on
its create and update paths.
"""

from typing import Union

from simstore.schemas import (
    METADATA_CONSTRAINTS,
    SIM_CONSTRAINTS,
    CreateMetadataInput,
    Metadata,
    Sim,
    UpdateMetadataInput,
)

ELLIPSIS = "..."

LOG_TOO_LONG = "Log content exceeds maximum length (10,000 characters)"
KEY_TOO_LONG = "Metadata key exceeds maximum length (100 characters)"
VALUE_TOO_LONG = "Metadata value exceeds maximum length (10,000 characters)"


def _within(text: str, minimum: int, maximum: int) -> bool:
    return minimum <= len(text) <= maximum


def is_valid_log_length(log: str) -> bool:
    return _within(log, SIM_CONSTRAINTS.MIN_LOG_LENGTH, SIM_CONSTRAINTS.MAX_LOG_LENGTH)


def is_valid_key_length(key: str) -> bool:
    return _within(key, METADATA_CONSTRAINTS.MIN_KEY_LENGTH, METADATA_CONSTRAINTS.MAX_KEY_LENGTH)


def is_valid_value_length(value: str) -> bool:
    return _within(value, METADATA_CONSTRAINTS.MIN_VALUE_LENGTH, METADATA_CONSTRAINTS.MAX_VALUE_LENGTH)


def is_valid_metadata(metadata: Union[CreateMetadataInput, UpdateMetadataInput]) -> bool:
    """Check the key and value lengths of whichever fields are supplied."""
    if metadata.key is not None and not is_valid_key_length(metadata.key):
        return False
    if metadata.value is not None and not is_valid_value_length(metadata.value):
        return False
    return True


def truncate_log(log: str) -> str:
    return log[: SIM_CONSTRAINTS.MAX_LOG_LENGTH]


def truncate_key(key: str) -> str:
    return key[: METADATA_CONSTRAINTS.MAX_KEY_LENGTH]


def truncate_value(value: str) -> str:
    return value[: METADATA_CONSTRAINTS.MAX_VALUE_LENGTH]


def get_preview(text: str, max_length: int) -> str:
    """Shorten ``text`` for display.

    Returns ``text`` unchanged when it fits in ``max_length`` characters,
    otherwise its first ``max_length`` characters followed by ``...``.
    """
    if len(text) <= max_length:
        return text
    return text[:max_length] + ELLIPSIS


def get_log_preview(log: str, max_length: int = 100) -> str:
    return get_preview(log, max_length)


def get_value_preview(value: str, max_length: int = 50) -> str:
    return get_preview(value, max_length)


def has_content(text: str) -> bool:
    """True if ``text`` contains anything besides whitespace."""
    return len(text.strip()) > 0


def has_log_content(sim: Sim) -> bool:
    return has_content(sim.log)


def has_metadata_content(metadata: Metadata) -> bool:
    """Both key and value must be non-blank."""
    return has_content(metadata.key) and has_content(metadata.value)
