"""UUID4 identifiers for Sims and Metadata.

Identifiers are plain strings in the canonical 36-character hyphenated form.
Generation and validation agree on one shape: version nibble ``4`` and the
RFC 4122 variant bits (``8``, ``9``, ``a`` or ``b``).
"""

from __future__ import annotations

import re
from typing import Any, Optional
from uuid import uuid4

UUID4_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)


class InvalidIdentifierError(ValueError):
    """Raised when a string is not a valid UUID4 identifier."""


def generate_uuid4() -> str:
    """Mint a fresh random identifier."""
    return str(uuid4())


def is_uuid4(value: Any) -> bool:
    """Return True if ``value`` is a UUID4 string. Non-strings are never valid."""
    return isinstance(value, str) and UUID4_PATTERN.fullmatch(value) is not None


def to_uuid4(value: Any) -> Optional[str]:
    """Return ``value`` if it is a UUID4 string, otherwise None."""
    return value if is_uuid4(value) else None


def assert_uuid4(value: Any, context: Optional[str] = None) -> str:
    """Return ``value`` unchanged or raise InvalidIdentifierError.

    Args:
        value: Candidate identifier
        context: Optional description of where the value came from, appended
            to the error message (e.g. ``"sim creation"``)

    Raises:
        InvalidIdentifierError: If ``value`` is not a UUID4 string
    """
    if not is_uuid4(value):
        where = f" in {context}" if context else ""
        raise InvalidIdentifierError(f"Invalid UUID4{where}: {value}")
    return value
