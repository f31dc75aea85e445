"""
Simstore Configuration

Selects and sizes the backing store from environment variables (or a .env
file). Every setting has a default that works without any environment.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

SUPPORTED_BACKENDS = ("memory", "json", "postgres")

DEFAULT_MAX_STORAGE_BYTES = 50 * 1024 * 1024


def _int_env(name: str, default: int) -> int | None:
    """Read an integer setting; None when the value is not a number."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return None


class Config:
    """Application configuration loaded from environment variables."""

    # Backing store selection: memory, json or postgres
    BACKEND: str = os.getenv("SIMSTORE_BACKEND", "memory")

    # Directory holding one file per key for the json backend
    DATA_DIR: Path = Path(os.getenv("SIMSTORE_DATA_DIR", "simstore_data"))

    # Database Configuration (postgres backend only)
    DATABASE_URL: str | None = os.getenv("DATABASE_URL")

    # Capacity of the in-memory medium, mirrors a browser storage quota
    # None when the variable is set but not an integer; rejected by validate()
    MAX_STORAGE_BYTES: int | None = _int_env("SIMSTORE_MAX_STORAGE_BYTES", DEFAULT_MAX_STORAGE_BYTES)

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if required values are missing."""
        if cls.BACKEND not in SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unknown SIMSTORE_BACKEND '{cls.BACKEND}'. "
                f"Choose one of: {', '.join(SUPPORTED_BACKENDS)}"
            )

        if cls.BACKEND == "postgres" and not cls.DATABASE_URL:
            raise ValueError(
                "DATABASE_URL is required when using the 'postgres' backend"
            )

        if cls.MAX_STORAGE_BYTES is None or cls.MAX_STORAGE_BYTES <= 0:
            raise ValueError("SIMSTORE_MAX_STORAGE_BYTES must be a positive integer")

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Simstore Configuration:",
            f"  Backend: {cls.BACKEND}",
            f"  Data Dir: {cls.DATA_DIR}",
            f"  Database: {cls.DATABASE_URL or '(not set)'}",
            f"  Max Storage: {cls.MAX_STORAGE_BYTES} bytes",
        ]
        return "\n".join(lines)
