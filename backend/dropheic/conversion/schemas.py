"""Pydantic schemas for the /convert response.

JSON keys are camelCase to match the frontend contract; Python attributes stay
snake_case. ``BatchResult.errors`` is ``None`` when every file converted so the
route can drop it from the body entirely.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ConvertedFile(_CamelModel):
    """Successful conversion of one uploaded file."""
    original_name:  str = Field(..., description="Client-supplied filename (display only)")
    converted_name: str = Field(..., description="Filename of the JPEG on disk")
    download_url:   str = Field(..., description="Relative URL to download the JPEG")
    size:           int = Field(..., description="JPEG size in bytes")


class ConversionFailure(_CamelModel):
    """Failed conversion of one uploaded file."""
    file:  str = Field(..., description="Client-supplied filename")
    error: str = Field(..., description="Why the conversion failed")


class BatchResult(_CamelModel):
    """Aggregate outcome of a /convert request.

    ``success`` is true when at least one file converted; a batch in which
    every file failed is still a 200 response with ``success: false``.
    """
    success:         bool
    converted_count: int
    total_files:     int
    files:           List[ConvertedFile] = Field(default_factory=list)
    errors:          Optional[List[ConversionFailure]] = None

    @classmethod
    def from_outcomes(
        cls,
        files: List[ConvertedFile],
        errors: List[ConversionFailure],
    ) -> "BatchResult":
        return cls(
            success=len(files) > 0,
            converted_count=len(files),
            total_files=len(files) + len(errors),
            files=files,
            errors=errors or None,
        )
