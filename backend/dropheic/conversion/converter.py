"""HEIC/HEIF → JPEG conversion adapter.

Decoding is delegated to Pillow with the pillow-heif opener registered;
encoding uses Pillow's JPEG writer. One attempt per call, no retries.
"""
import io
import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image
from pillow_heif import register_heif_opener

register_heif_opener()

logger = logging.getLogger(__name__)

DEFAULT_JPEG_QUALITY = 90


@dataclass(frozen=True)
class ConvertedArtifact:
    """A JPEG written to disk by a successful conversion."""
    path: Path
    size_bytes: int


class ConversionError(Exception):
    """Base exception for conversion failures."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DecodeFailed(ConversionError):
    """Raised when the source bytes are not a decodable HEIC/HEIF image."""
    def __init__(self, message: str):
        super().__init__(f"Failed to decode HEIC/HEIF image: {message}")


class EncodeFailed(ConversionError):
    """Raised when the decoded image cannot be written as JPEG."""
    def __init__(self, message: str, destination: Path):
        self.destination = destination
        super().__init__(f"Failed to write JPEG to {destination.name}: {message}")


class HeicConverter:
    """Decode-then-re-encode adapter around Pillow + pillow-heif."""

    def __init__(self, quality: int = DEFAULT_JPEG_QUALITY) -> None:
        self._quality = quality

    @property
    def quality(self) -> int:
        return self._quality

    def convert(self, source_bytes: bytes, destination: Path) -> ConvertedArtifact:
        """Convert *source_bytes* to a JPEG at *destination*.

        Args:
            source_bytes: Raw HEIC/HEIF file content.
            destination: Path of the JPEG to write.

        Returns:
            ConvertedArtifact describing the written file.

        Raises:
            DecodeFailed: If the source cannot be decoded.
            EncodeFailed: If the JPEG cannot be encoded or written. No usable
                file is left at *destination* in that case.
        """
        destination = Path(destination)
        try:
            with Image.open(io.BytesIO(source_bytes), formats=["HEIF"]) as image:
                image.load()
                rgb = image.convert("RGB")
        except Exception as exc:  # Pillow raises a wide range of types here
            raise DecodeFailed(str(exc)) from exc

        try:
            rgb.save(destination, "JPEG", quality=self._quality)
        except Exception as exc:
            destination.unlink(missing_ok=True)
            raise EncodeFailed(str(exc), destination) from exc

        size = destination.stat().st_size
        logger.debug("Converted %d bytes -> %s (%d bytes)", len(source_bytes), destination, size)
        return ConvertedArtifact(path=destination, size_bytes=size)
