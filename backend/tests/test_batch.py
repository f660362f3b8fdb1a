"""Tests for batch conversion orchestration and the shutdown gate."""

import asyncio
from pathlib import Path

import pytest

from dropheic.conversion.schemas import BatchResult, ConversionFailure, ConvertedFile
from dropheic.conversion.service import BatchConversionService, ConversionGate
from dropheic.uploads.schemas import StagedFile

from conftest import FakeConverter


def _stage(staging: Path, stored_name: str, data: bytes, original: str = None) -> StagedFile:
    path = staging / stored_name
    path.write_bytes(data)
    return StagedFile(
        original_name=original or stored_name.split("-", 1)[1],
        stored_name=stored_name,
        path=path,
        size_bytes=len(data),
        extension=path.suffix.lower(),
    )


@pytest.fixture
def dirs(tmp_path):
    staging = tmp_path / "uploads"
    converted = tmp_path / "converted"
    staging.mkdir()
    converted.mkdir()
    return staging, converted


@pytest.fixture
def converter():
    return FakeConverter()


@pytest.fixture
def service(dirs, converter):
    return BatchConversionService(converter, dirs[1])


class TestBatchConversionService:
    def test_single_success(self, service, dirs):
        staging, converted = dirs
        staged = _stage(staging, "1700000000000-photo-1.HEIC", b"heic", original="photo 1.HEIC")

        result = service.run([staged])

        assert result.success is True
        assert result.converted_count == 1
        assert result.total_files == 1
        assert result.errors is None
        entry = result.files[0]
        assert entry.original_name == "photo 1.HEIC"
        assert entry.converted_name == "1700000000000-photo-1.jpg"
        assert entry.download_url == "/converted/1700000000000-photo-1.jpg"
        assert entry.size == (converted / entry.converted_name).stat().st_size
        assert not staged.path.exists()

    def test_failure_is_isolated_and_batch_continues(self, service, dirs, converter):
        staging, converted = dirs
        bad = _stage(staging, "1-bad.heic", b"corrupt!")
        good = _stage(staging, "2-good.heic", b"heic")

        result = service.run([bad, good])

        assert result.success is True
        assert result.converted_count == 1
        assert result.total_files == 2
        assert [e.file for e in result.errors] == ["bad.heic"]
        assert "No 'ftyp' box" in result.errors[0].error
        assert len(converter.calls) == 2
        assert not (converted / "1-bad.jpg").exists()
        assert (converted / "2-good.jpg").exists()

    def test_staged_sources_removed_regardless_of_outcome(self, service, dirs):
        staging, _ = dirs
        files = [
            _stage(staging, "1-a.heic", b"heic"),
            _stage(staging, "2-b.heic", b"corrupt"),
            _stage(staging, "3-c.heif", b"heic"),
        ]

        result = service.run(files)

        assert result.converted_count + len(result.errors) == result.total_files
        assert list(staging.iterdir()) == []

    def test_all_failures_report_unsuccessful_batch(self, service, dirs):
        staging, converted = dirs
        files = [_stage(staging, "1-a.heic", b"corrupt"), _stage(staging, "2-b.heic", b"corrupt")]

        result = service.run(files)

        assert result.success is False
        assert result.converted_count == 0
        assert result.files == []
        assert len(result.errors) == 2
        assert list(converted.iterdir()) == []

    def test_missing_staged_file_is_recorded_as_error(self, service, dirs):
        staging, _ = dirs
        staged = _stage(staging, "1-gone.heic", b"heic")
        staged.path.unlink()

        result = service.run([staged])

        assert result.success is False
        assert result.errors[0].file == "gone.heic"

    def test_files_processed_in_order(self, service, dirs, converter):
        staging, converted = dirs
        files = [_stage(staging, f"{i}-f.heic", b"heic") for i in range(5)]

        service.run(files)

        assert converter.calls == [converted / f"{i}-f.jpg" for i in range(5)]

    def test_empty_batch(self, service):
        result = service.run([])
        assert result.success is False
        assert result.total_files == 0


class TestBatchResult:
    def test_serialises_camel_case_without_errors(self):
        result = BatchResult.from_outcomes(
            [ConvertedFile(original_name="a.heic", converted_name="1-a.jpg",
                           download_url="/converted/1-a.jpg", size=10)],
            [],
        )
        body = result.model_dump(by_alias=True, exclude_none=True)
        assert body == {
            "success": True,
            "convertedCount": 1,
            "totalFiles": 1,
            "files": [{
                "originalName": "a.heic",
                "convertedName": "1-a.jpg",
                "downloadUrl": "/converted/1-a.jpg",
                "size": 10,
            }],
        }

    def test_errors_kept_when_present(self):
        result = BatchResult.from_outcomes([], [ConversionFailure(file="a.heic", error="boom")])
        body = result.model_dump(by_alias=True, exclude_none=True)
        assert body["errors"] == [{"file": "a.heic", "error": "boom"}]
        assert body["success"] is False


class TestConversionGate:
    def test_enter_and_leave(self):
        gate = ConversionGate()
        assert gate.try_enter()
        assert gate.active == 1
        gate.leave()
        assert gate.active == 0

    def test_closed_gate_refuses_new_batches(self):
        gate = ConversionGate()
        gate.close()
        assert gate.closed
        assert not gate.try_enter()

    def test_wait_idle_returns_when_batches_drain(self):
        async def scenario():
            gate = ConversionGate()
            gate.try_enter()
            gate.close()
            waiter = asyncio.create_task(gate.wait_idle(timeout=1.0))
            await asyncio.sleep(0)
            gate.leave()
            return await waiter

        assert asyncio.run(scenario()) is True

    def test_wait_idle_times_out(self):
        async def scenario():
            gate = ConversionGate()
            gate.try_enter()
            return await gate.wait_idle(timeout=0.01)

        assert asyncio.run(scenario()) is False
