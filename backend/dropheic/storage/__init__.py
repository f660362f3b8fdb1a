"""Storage lifecycle module."""

from .service import StorageManager, ensure_directories, sweep
from .sweeper import RetentionSweeper

__all__ = [
    "RetentionSweeper",
    "StorageManager",
    "ensure_directories",
    "sweep",
]
