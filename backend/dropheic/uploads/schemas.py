"""Staged upload model.

A StagedFile lives from the moment intake writes it into the staging
directory until the batch converter deletes it. Stored names are
``<epoch-ms>-<sanitized original>`` so repeated uploads of the same
filename never collide.
"""
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class StagedFile:
    """One uploaded file sitting in the staging directory.

    Attributes:
        original_name: Client-supplied filename. Untrusted, display only.
        stored_name: Sanitized, timestamp-prefixed name on disk.
        path: Absolute staging path.
        size_bytes: Bytes written.
        extension: Lower-cased extension (``.heic`` or ``.heif``).
    """
    original_name: str
    stored_name: str
    path: Path
    size_bytes: int
    extension: str

    @property
    def stem(self) -> str:
        return Path(self.stored_name).stem
