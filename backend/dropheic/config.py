"""dropheic application configuration.

Loads settings from ``dropheic.settings.yaml`` (non-secret configuration) and
then applies a small set of environment overrides that deployment platforms
set directly:

  * APP_ENV        — ``development``, ``production`` or any other label
  * PORT           — listening port
  * FRONTEND_URL   — extra allowed CORS origin
  * STORAGE_DIR    — base directory for staging/converted folders
  * MAX_FILE_SIZE  — per-file upload limit in bytes

The resulting *AppConfig* is built once at process entry and handed to
``create_app`` explicitly; nothing else reads the environment.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("dropheic.settings.yaml")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _resolve_base(settings_path: Path) -> Path:
    """Directory that relative storage paths are resolved against.

    A settings file inside ``<project>/config/`` resolves from ``<project>``;
    any other layout resolves from the settings file's own directory.
    """
    settings_dir = settings_path.resolve().parent
    if settings_dir.name == "config":
        return settings_dir.parent
    return settings_dir


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str  = "0.0.0.0"
    port:            int  = 3001
    environment:     str  = "development"
    frontend_url:    Optional[str] = None
    allowed_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173"]
    )


class StorageSettings(BaseModel):
    """Flat on-disk layout: staging, converted output, optional static images."""
    base_dir:               str           = "."
    upload_dir:             str           = "uploads"
    converted_dir:          str           = "converted"
    images_dir:             Optional[str] = None
    retention_seconds:      int           = 3600
    sweep_interval_seconds: int           = 3600

    @field_validator("retention_seconds", "sweep_interval_seconds")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive number of seconds")
        return v


class UploadSettings(BaseModel):
    max_files:           int       = 10
    max_file_size_bytes: int       = 10 * 1024 * 1024
    allowed_extensions:  List[str] = Field(default_factory=lambda: [".heic", ".heif"])

    @field_validator("allowed_extensions")
    @classmethod
    def _normalise_extensions(cls, v: List[str]) -> List[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]


class ConversionSettings(BaseModel):
    jpeg_quality: int = Field(default=90, ge=1, le=95)


class LoggingSettings(BaseModel):
    level: str = "info"


class AppConfig(BaseModel):
    server:     ServerSettings     = Field(default_factory=ServerSettings)
    storage:    StorageSettings    = Field(default_factory=StorageSettings)
    uploads:    UploadSettings     = Field(default_factory=UploadSettings)
    conversion: ConversionSettings = Field(default_factory=ConversionSettings)
    logging:    LoggingSettings    = Field(default_factory=LoggingSettings)

    @property
    def is_development(self) -> bool:
        return self.server.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.server.environment == "production"

    @property
    def upload_path(self) -> Path:
        return Path(self.storage.base_dir) / self.storage.upload_dir

    @property
    def converted_path(self) -> Path:
        return Path(self.storage.base_dir) / self.storage.converted_dir

    @property
    def images_path(self) -> Optional[Path]:
        if not self.storage.images_dir:
            return None
        return Path(self.storage.base_dir) / self.storage.images_dir

    @property
    def cors_origins(self) -> List[str]:
        origins = list(self.server.allowed_origins)
        if self.server.frontend_url:
            origins.append(self.server.frontend_url.rstrip("/"))
        return origins


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------


def _apply_env_overrides(data: Dict[str, Any], environ: Mapping[str, str]) -> None:
    server  = data.setdefault("server", {})
    storage = data.setdefault("storage", {})
    uploads = data.setdefault("uploads", {})

    if environ.get("APP_ENV"):
        server["environment"] = environ["APP_ENV"]
    if environ.get("PORT"):
        server["port"] = environ["PORT"]
    if environ.get("FRONTEND_URL"):
        server["frontend_url"] = environ["FRONTEND_URL"]
    if environ.get("STORAGE_DIR"):
        storage["base_dir"] = environ["STORAGE_DIR"]
    if environ.get("MAX_FILE_SIZE"):
        uploads["max_file_size_bytes"] = environ["MAX_FILE_SIZE"]


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """Load settings YAML, apply env overrides, resolve storage paths."""
    settings_path = Path(settings_path) if settings_path else SETTINGS_FILE
    environ = os.environ if environ is None else environ

    data = _load_yaml(settings_path)
    _apply_env_overrides(data, environ)
    config = AppConfig(**data)

    base_dir = Path(config.storage.base_dir)
    if not base_dir.is_absolute():
        config.storage.base_dir = str(_resolve_base(settings_path) / base_dir)

    logger.info(
        "Settings loaded (env=%s, server=%s:%s, storage=%s)",
        config.server.environment,
        config.server.host,
        config.server.port,
        config.storage.base_dir,
    )
    return config


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Process-wide config, built on first use at the entry point."""
    return load_config()
