"""Configuration management via .env file."""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

log = logging.getLogger(__name__)

# Root of every derived identifier. Changing it re-keys the whole library.
DEFAULT_NAMESPACE = uuid.UUID("6f0c3a52-9d1e-5b7a-8c44-2e51d0a9b3f7")


def _xdg_data_home() -> Path:
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def _xdg_config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


@dataclass
class AppConfig:
    # Paths
    data_dir: Path = field(default_factory=lambda: _xdg_data_home() / "ereader")
    config_dir: Path = field(default_factory=lambda: _xdg_config_home() / "ereader")
    library_dir: Path = field(default_factory=lambda: Path.home() / "Books")
    db_path: Path = field(init=False)

    # Import
    namespace: uuid.UUID = DEFAULT_NAMESPACE
    scan_workers: int = 4
    compression_level: int = 8  # zstd level
    follow_symlinks: bool = True

    log_path: Path = field(init=False)

    def __post_init__(self) -> None:
        self.scan_workers = _clamp(self.scan_workers, 1, 32)
        self.compression_level = _clamp(self.compression_level, 1, 22)
        self.db_path = self.data_dir / "ereader.db"
        self.log_path = self.data_dir / "ereader.log"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Ignoring %s=%r: not an integer", name, raw)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if not raw:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_namespace(name: str, default: uuid.UUID) -> uuid.UUID:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return uuid.UUID(raw)
    except ValueError:
        log.warning("Ignoring %s=%r: not a UUID", name, raw)
        return default


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    """Load config from .env file. Searches CWD then config dir."""
    search_paths = [
        env_path,
        Path.cwd() / ".env",
        _xdg_config_home() / "ereader" / ".env",
        Path.home() / ".env",
    ]
    for p in search_paths:
        if p and p.exists():
            load_dotenv(p)
            break

    kwargs = {}
    library_dir = os.getenv("EREADER_LIBRARY_DIR")
    if library_dir:
        kwargs["library_dir"] = Path(library_dir).expanduser()

    return AppConfig(
        namespace=_env_namespace("EREADER_NAMESPACE", DEFAULT_NAMESPACE),
        scan_workers=_env_int("EREADER_SCAN_WORKERS", 4),
        compression_level=_env_int("EREADER_COMPRESSION_LEVEL", 8),
        follow_symlinks=_env_bool("EREADER_FOLLOW_SYMLINKS", True),
        **kwargs,
    )
