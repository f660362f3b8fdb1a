"""HEIC/HEIF → JPEG conversion.

The converter decodes with Pillow + pillow-heif and re-encodes as JPEG. The
batch service runs it over every staged upload of a request, one file at a
time, and reports successes and failures side by side.
"""

from .converter import ConversionError, ConvertedArtifact, DecodeFailed, EncodeFailed, HeicConverter
from .schemas import BatchResult, ConversionFailure, ConvertedFile
from .service import BatchConversionService, ConversionGate

__all__ = [
    "BatchConversionService",
    "BatchResult",
    "ConversionError",
    "ConversionFailure",
    "ConversionGate",
    "ConvertedArtifact",
    "ConvertedFile",
    "DecodeFailed",
    "EncodeFailed",
    "HeicConverter",
]
