"""Shared test fixtures and configuration for backend tests."""
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from dropheic.config import AppConfig, StorageSettings, UploadSettings
from dropheic.conversion.converter import ConvertedArtifact, DecodeFailed
from dropheic.main import create_app


class FakeConverter:
    """Stands in for HeicConverter without decoding real images.

    Sources starting with ``b"corrupt"`` fail to decode; everything else
    produces a small placeholder JPEG.
    """

    def __init__(self):
        self.calls = []

    def convert(self, source_bytes: bytes, destination: Path) -> ConvertedArtifact:
        self.calls.append(destination)
        if source_bytes.startswith(b"corrupt"):
            raise DecodeFailed("Invalid input: No 'ftyp' box")
        destination.write_bytes(b"\xff\xd8fake-jpeg\xff\xd9")
        return ConvertedArtifact(path=destination, size_bytes=destination.stat().st_size)


@pytest.fixture
def app_config(tmp_path):
    """Config rooted in a per-test temp directory."""
    return AppConfig(
        storage=StorageSettings(base_dir=str(tmp_path)),
        uploads=UploadSettings(),
    )


@pytest.fixture
def fake_converter():
    return FakeConverter()


@pytest.fixture
def app(app_config, fake_converter):
    return create_app(app_config, converter=fake_converter)


@pytest.fixture
def api_client(app):
    """TestClient with the lifespan running (directories created, sweeper started)."""
    with TestClient(app) as c:
        yield c
