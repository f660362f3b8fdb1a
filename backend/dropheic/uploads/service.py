"""Upload intake: validate multipart files and stage them on disk.

Validation happens in two passes. Count and extension checks run over the
whole request before a single byte is written, so a disallowed file leaves
no trace in the staging directory. Size is enforced while streaming; if a
file overruns the limit, everything staged so far for this request is
removed before the error propagates.
"""
import glob
import logging
import re
import time
from pathlib import Path
from typing import List, Optional, Sequence

from fastapi import UploadFile

from dropheic.config import UploadSettings

from .schemas import StagedFile

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9.]")
_CHUNK_SIZE = 1024 * 1024


class IntakeError(Exception):
    """Base exception for rejected uploads. Always a client error."""
    def __init__(self, message: str, details: Optional[str] = None, status_code: int = 400):
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationFailed(IntakeError):
    """Raised when a file has a disallowed type."""
    def __init__(self, filename: str):
        self.filename = filename
        super().__init__("Only HEIC/HEIF files are allowed", details=f"Rejected file: {filename}")


class NoFilesError(IntakeError):
    """Raised when the request carries no files."""
    def __init__(self):
        super().__init__("No files uploaded")


class LimitExceeded(IntakeError):
    """Raised when the file count or a file's size exceeds the configured limit."""
    def __init__(self, details: str):
        super().__init__("File upload error", details=details)


def sanitize_filename(filename: str) -> str:
    """Replace every character outside ``[A-Za-z0-9.]`` with ``-``."""
    return _UNSAFE_CHARS.sub("-", filename)


def staged_name(filename: str, timestamp_ms: int) -> str:
    """Build the on-disk name ``<timestamp_ms>-<sanitized filename>``."""
    return f"{timestamp_ms}-{sanitize_filename(filename)}"


class UploadIntake:
    """Validates incoming upload files and writes them to the staging directory."""

    def __init__(
        self,
        staging_dir: Path,
        settings: UploadSettings,
        output_dir: Optional[Path] = None,
    ) -> None:
        self._staging_dir = Path(staging_dir)
        self._settings = settings
        # Stems are unique across these dirs: outputs are named <stem>.jpg.
        self._stem_dirs = [self._staging_dir]
        if output_dir is not None:
            self._stem_dirs.append(Path(output_dir))

    @property
    def staging_dir(self) -> Path:
        return self._staging_dir

    def is_allowed(self, filename: str) -> bool:
        return Path(filename).suffix.lower() in self._settings.allowed_extensions

    def validate(self, filenames: Sequence[str]) -> None:
        """Check count and extensions for the whole request.

        Raises:
            NoFilesError: If *filenames* is empty.
            LimitExceeded: If there are more files than allowed.
            ValidationFailed: On the first file with a disallowed extension.
        """
        if not filenames:
            raise NoFilesError()
        if len(filenames) > self._settings.max_files:
            raise LimitExceeded(
                f"Too many files: {len(filenames)} (limit {self._settings.max_files})"
            )
        for name in filenames:
            if not self.is_allowed(name):
                raise ValidationFailed(name)

    async def accept(self, files: Sequence[UploadFile]) -> List[StagedFile]:
        """Validate and stage every file of one request.

        Args:
            files: Multipart files from the ``files`` form field.

        Returns:
            One StagedFile per upload, in request order.

        Raises:
            IntakeError: If the request is rejected. Nothing remains staged.
        """
        names = [f.filename or "" for f in files]
        self.validate(names)

        staged: List[StagedFile] = []
        try:
            for upload, name in zip(files, names):
                logger.info("Received file: %s", name)
                staged.append(await self._stage(upload, name))
        except BaseException:
            discard(staged)
            raise
        return staged

    async def _stage(self, upload: UploadFile, original_name: str) -> StagedFile:
        limit = self._settings.max_file_size_bytes
        path = self._reserve_path(original_name)
        written = 0
        try:
            with path.open("wb") as fh:
                while True:
                    chunk = await upload.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > limit:
                        raise LimitExceeded(
                            f"File too large: {original_name} exceeds {limit} bytes"
                        )
                    fh.write(chunk)
        except BaseException:
            path.unlink(missing_ok=True)
            raise

        return StagedFile(
            original_name=original_name,
            stored_name=path.name,
            path=path.resolve(),
            size_bytes=written,
            extension=path.suffix.lower(),
        )

    def _reserve_path(self, original_name: str) -> Path:
        """Claim a staging path whose stem is unused; bumps the timestamp on a clash.

        ``a.heic`` and ``a.heif`` staged in the same millisecond would both
        convert to ``<ts>-a.jpg``, so any file sharing the stem counts as a clash.
        """
        timestamp_ms = int(time.time() * 1000)
        while True:
            path = self._staging_dir / staged_name(original_name, timestamp_ms)
            if not self._stem_taken(path.stem):
                try:
                    path.open("xb").close()
                    return path
                except FileExistsError:
                    pass
            timestamp_ms += 1

    def _stem_taken(self, stem: str) -> bool:
        pattern = f"{glob.escape(stem)}.*"
        return any(any(d.glob(pattern)) for d in self._stem_dirs)


def discard(staged: Sequence[StagedFile]) -> None:
    """Best-effort removal of staged files."""
    for item in staged:
        try:
            item.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove staged file %s: %s", item.path, exc)
