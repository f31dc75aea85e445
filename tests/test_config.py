"""Tests for configuration validation and backend selection."""

from pathlib import Path

import pytest

from simstore.backends import InMemoryBackend, JsonFileBackend, PostgresBackend, backend_from_config
from simstore.config import DEFAULT_MAX_STORAGE_BYTES, Config, _int_env


@pytest.fixture
def config(monkeypatch):
    """Reset Config to a known baseline for each test."""
    monkeypatch.setattr(Config, "BACKEND", "memory")
    monkeypatch.setattr(Config, "DATA_DIR", Path("simstore_data"))
    monkeypatch.setattr(Config, "DATABASE_URL", None)
    monkeypatch.setattr(Config, "MAX_STORAGE_BYTES", 50 * 1024 * 1024)
    return Config


def test_defaults_validate(config):
    config.validate()


def test_unknown_backend_rejected(config, monkeypatch):
    monkeypatch.setattr(config, "BACKEND", "redis")
    with pytest.raises(ValueError, match="Unknown SIMSTORE_BACKEND 'redis'"):
        config.validate()


def test_postgres_requires_database_url(config, monkeypatch):
    monkeypatch.setattr(config, "BACKEND", "postgres")
    with pytest.raises(ValueError, match="DATABASE_URL is required"):
        config.validate()


@pytest.mark.parametrize("size", [0, -1])
def test_storage_capacity_must_be_positive(config, monkeypatch, size):
    monkeypatch.setattr(config, "MAX_STORAGE_BYTES", size)
    with pytest.raises(ValueError, match="must be a positive integer"):
        config.validate()


def test_display_lists_settings(config):
    text = config.display()
    assert "Backend: memory" in text
    assert "Database: (not set)" in text
    assert f"Max Storage: {50 * 1024 * 1024} bytes" in text


def test_backend_from_config_memory(config, monkeypatch):
    monkeypatch.setattr(config, "MAX_STORAGE_BYTES", 1234)

    backend = backend_from_config()

    assert isinstance(backend, InMemoryBackend)
    assert backend.max_bytes == 1234


def test_backend_from_config_json(config, monkeypatch, tmp_path):
    monkeypatch.setattr(config, "BACKEND", "json")
    monkeypatch.setattr(config, "DATA_DIR", tmp_path / "data")

    backend = backend_from_config()

    assert isinstance(backend, JsonFileBackend)
    assert backend.base_path == tmp_path / "data"


def test_backend_from_config_postgres(config, monkeypatch):
    pytest.importorskip("asyncpg")
    monkeypatch.setattr(config, "BACKEND", "postgres")
    monkeypatch.setattr(config, "DATABASE_URL", "postgresql://localhost/simstore")

    backend = backend_from_config()

    assert isinstance(backend, PostgresBackend)
    assert backend.database_url == "postgresql://localhost/simstore"
    assert backend.pool is None


def test_backend_from_config_rejects_invalid_settings(config, monkeypatch):
    monkeypatch.setattr(config, "BACKEND", "sqlite")
    with pytest.raises(ValueError):
        backend_from_config()


def test_non_numeric_capacity_is_reported_by_validate(config, monkeypatch):
    monkeypatch.setenv("SIMSTORE_MAX_STORAGE_BYTES", "fifty megabytes")
    monkeypatch.setattr(config, "MAX_STORAGE_BYTES", _int_env("SIMSTORE_MAX_STORAGE_BYTES", DEFAULT_MAX_STORAGE_BYTES))

    assert config.MAX_STORAGE_BYTES is None
    with pytest.raises(ValueError, match="must be a positive integer"):
        config.validate()


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, DEFAULT_MAX_STORAGE_BYTES),
        ("", DEFAULT_MAX_STORAGE_BYTES),
        ("1024", 1024),
        (" 2048 ", 2048),
        ("-5", -5),
        ("1.5", None),
        ("lots", None),
    ],
)
def test_int_env_parsing(monkeypatch, raw, expected):
    if raw is None:
        monkeypatch.delenv("SIMSTORE_MAX_STORAGE_BYTES", raising=False)
    else:
        monkeypatch.setenv("SIMSTORE_MAX_STORAGE_BYTES", raw)

    assert _int_env("SIMSTORE_MAX_STORAGE_BYTES", DEFAULT_MAX_STORAGE_BYTES) == expected
