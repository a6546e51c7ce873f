"""Data storage configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Final

from .env import optional_env_var, positive_number_env_var
from .errors import ConfigurationError

APP_DIR_NAME: Final[str] = "eventregister"
DEFAULT_DB_FILENAME: Final[str] = "eventregister.db"
DEFAULT_SCAN_PAGE_SIZE: Final[int] = 500


class StoreBackend(StrEnum):
    SQLALCHEMY = "sqlalchemy"
    MEMORY = "memory"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def database_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.database_filename

    def database_uri(self) -> str:
        return f"sqlite+aiosqlite:///{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    scan_page_size: int = DEFAULT_SCAN_PAGE_SIZE


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = optional_env_var("EVENTREGISTER_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    return StorageConfig(data_dir=data_dir)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    page_size = positive_number_env_var(
        "EVENTREGISTER_SCAN_PAGE_SIZE", DEFAULT_SCAN_PAGE_SIZE, int
    )
    env_uri = optional_env_var("DATABASE_URI")
    if env_uri:
        return DatabaseConfig(uri=env_uri, scan_page_size=page_size)
    storage_config = storage or get_storage_config()
    return DatabaseConfig(uri=storage_config.database_uri(), scan_page_size=page_size)


def get_store_backend() -> StoreBackend:
    raw = optional_env_var("EVENTREGISTER_STORE")
    if raw is None:
        return StoreBackend.SQLALCHEMY
    try:
        return StoreBackend(raw.lower())
    except ValueError as exc:
        choices = ", ".join(backend.value for backend in StoreBackend)
        raise ConfigurationError(
            f"EVENTREGISTER_STORE must be one of {choices}, got {raw!r}"
        ) from exc
