"""Batch conversion orchestration.

Files in a batch are converted strictly one at a time: decode/encode is
memory-hungry and a 10-file batch converted in parallel can exhaust a small
instance. Each file is isolated: a failure is recorded and the loop moves on.
Staged sources are removed after every attempt, success or not.
"""
import asyncio
import logging
from pathlib import Path
from typing import List, Sequence

from dropheic.uploads.schemas import StagedFile

from .converter import ConversionError, HeicConverter
from .schemas import BatchResult, ConversionFailure, ConvertedFile

logger = logging.getLogger(__name__)

DOWNLOAD_PREFIX = "/converted"


class BatchConversionService:
    """Drives the converter over a batch of staged files."""

    def __init__(
        self,
        converter: HeicConverter,
        converted_dir: Path,
        download_prefix: str = DOWNLOAD_PREFIX,
    ) -> None:
        self._converter = converter
        self._converted_dir = Path(converted_dir)
        self._download_prefix = download_prefix.rstrip("/")

    @staticmethod
    def output_name(staged: StagedFile) -> str:
        return f"{staged.stem}.jpg"

    def run(self, files: Sequence[StagedFile]) -> BatchResult:
        """Convert each staged file in order and aggregate the outcome.

        Args:
            files: Staged uploads from intake.

        Returns:
            BatchResult with one entry per file in either ``files`` or ``errors``.
        """
        converted: List[ConvertedFile] = []
        errors: List[ConversionFailure] = []

        for staged in files:
            logger.info("Processing file: %s", staged.stored_name)
            try:
                converted.append(self._convert_one(staged))
                logger.info("Successfully converted: %s", staged.stored_name)
            except (ConversionError, OSError) as exc:
                logger.error("Error processing %s: %s", staged.stored_name, exc)
                errors.append(ConversionFailure(file=staged.original_name, error=str(exc)))
            finally:
                self._remove_source(staged)

        result = BatchResult.from_outcomes(converted, errors)
        logger.info(
            "Batch finished: %d/%d converted", result.converted_count, result.total_files
        )
        return result

    def _convert_one(self, staged: StagedFile) -> ConvertedFile:
        name = self.output_name(staged)
        artifact = self._converter.convert(staged.path.read_bytes(), self._converted_dir / name)
        return ConvertedFile(
            original_name=staged.original_name,
            converted_name=name,
            download_url=f"{self._download_prefix}/{name}",
            size=artifact.size_bytes,
        )

    @staticmethod
    def _remove_source(staged: StagedFile) -> None:
        try:
            staged.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Cleanup error for %s: %s", staged.path, exc)


class ConversionGate:
    """Tracks in-flight batches so shutdown can drain them.

    Once closed, ``try_enter`` refuses new batches; ``wait_idle`` returns
    when the last running batch leaves.
    """

    def __init__(self) -> None:
        self._active = 0
        self._closed = False
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def active(self) -> int:
        return self._active

    @property
    def closed(self) -> bool:
        return self._closed

    def try_enter(self) -> bool:
        if self._closed:
            return False
        self._active += 1
        self._idle.clear()
        return True

    def leave(self) -> None:
        self._active -= 1
        if self._active == 0:
            self._idle.set()

    def close(self) -> None:
        self._closed = True

    async def wait_idle(self, timeout: float) -> bool:
        """Wait for in-flight batches; returns False if *timeout* elapsed first."""
        try:
            await asyncio.wait_for(self._idle.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False
