"""Tests for settings loading, env overrides and path resolution."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from dropheic.config import AppConfig, StorageSettings, UploadSettings, load_config


def _write_settings(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    def test_defaults_match_service_limits(self):
        cfg = AppConfig()
        assert cfg.uploads.max_files == 10
        assert cfg.uploads.max_file_size_bytes == 10 * 1024 * 1024
        assert cfg.uploads.allowed_extensions == [".heic", ".heif"]
        assert cfg.storage.retention_seconds == 3600
        assert cfg.storage.sweep_interval_seconds == 3600
        assert cfg.conversion.jpeg_quality == 90

    def test_extensions_normalised(self):
        settings = UploadSettings(allowed_extensions=["HEIC", ".Heif"])
        assert settings.allowed_extensions == [".heic", ".heif"]

    def test_non_positive_retention_rejected(self):
        with pytest.raises(ValidationError):
            StorageSettings(retention_seconds=0)

    def test_environment_flags(self):
        cfg = AppConfig(server={"environment": "production"})
        assert cfg.is_production
        assert not cfg.is_development

    def test_cors_origins_include_frontend_url(self):
        cfg = AppConfig(server={"frontend_url": "https://example.app/"})
        assert "https://example.app" in cfg.cors_origins
        assert "http://localhost:5173" in cfg.cors_origins

    def test_images_path_optional(self, tmp_path):
        cfg = AppConfig(storage={"base_dir": str(tmp_path)})
        assert cfg.images_path is None
        cfg = AppConfig(storage={"base_dir": str(tmp_path), "images_dir": "images"})
        assert cfg.images_path == tmp_path / "images"


class TestLoadConfig:
    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = load_config(settings_path=tmp_path / "absent.yaml", environ={})
        assert cfg.server.port == 3001
        assert Path(cfg.storage.base_dir) == tmp_path.resolve()

    def test_yaml_values_loaded(self, tmp_path):
        settings = _write_settings(
            tmp_path / "dropheic.settings.yaml",
            "server:\n"
            "  port: 8080\n"
            "  environment: production\n"
            "uploads:\n"
            "  max_files: 3\n",
        )
        cfg = load_config(settings_path=settings, environ={})
        assert cfg.server.port == 8080
        assert cfg.is_production
        assert cfg.uploads.max_files == 3

    def test_env_overrides_yaml(self, tmp_path):
        settings = _write_settings(
            tmp_path / "dropheic.settings.yaml",
            "server:\n  port: 8080\n",
        )
        cfg = load_config(
            settings_path=settings,
            environ={
                "APP_ENV": "production",
                "PORT": "9000",
                "FRONTEND_URL": "https://front.example",
                "STORAGE_DIR": str(tmp_path / "mount"),
                "MAX_FILE_SIZE": "2048",
            },
        )
        assert cfg.server.port == 9000
        assert cfg.is_production
        assert cfg.server.frontend_url == "https://front.example"
        assert cfg.upload_path == tmp_path / "mount" / "uploads"
        assert cfg.converted_path == tmp_path / "mount" / "converted"
        assert cfg.uploads.max_file_size_bytes == 2048

    def test_base_dir_relative_to_project_root_for_config_dir_layout(self, tmp_path):
        project_root = tmp_path / "project"
        settings = _write_settings(
            project_root / "config" / "dropheic.settings.yaml",
            "storage:\n  base_dir: data\n",
        )
        cfg = load_config(settings_path=settings, environ={})
        assert Path(cfg.storage.base_dir) == project_root.resolve() / "data"

    def test_base_dir_relative_to_settings_dir_otherwise(self, tmp_path):
        settings = _write_settings(
            tmp_path / "dropheic.settings.yaml",
            "storage:\n  base_dir: local\n",
        )
        cfg = load_config(settings_path=settings, environ={})
        assert Path(cfg.storage.base_dir) == tmp_path.resolve() / "local"

    def test_absolute_base_dir_unchanged(self, tmp_path):
        absolute = tmp_path / "absolute"
        settings = _write_settings(
            tmp_path / "dropheic.settings.yaml",
            f"storage:\n  base_dir: {absolute}\n",
        )
        cfg = load_config(settings_path=settings, environ={})
        assert Path(cfg.storage.base_dir) == absolute

    def test_other_environment_labels_accepted(self, tmp_path):
        cfg = load_config(settings_path=tmp_path / "absent.yaml", environ={"APP_ENV": "staging"})
        assert cfg.server.environment == "staging"
        assert not cfg.is_development
        assert not cfg.is_production
