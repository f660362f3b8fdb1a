"""Storage lifecycle for the staging and converted-output directories.

Directory contents are the only state: there is no manifest and no
database. Files are reaped purely by modification time.
"""
import logging
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


def ensure_directories(paths: Iterable[Path]) -> None:
    """Create every directory (with parents) if it is missing.

    Raises:
        OSError: If a directory cannot be created. Callers treat this as
            fatal; the service must not start without writable staging space.
    """
    for path in paths:
        Path(path).mkdir(parents=True, exist_ok=True)


def sweep(paths: Iterable[Path], max_age: float, now: Optional[float] = None) -> int:
    """Delete files older than *max_age* seconds from each directory.

    Per-entry failures are logged and skipped; a missing directory is
    skipped as well.

    Args:
        paths: Directories to scan (non-recursive).
        max_age: Retention window in seconds.
        now: Reference epoch time, defaults to ``time.time()``.

    Returns:
        Number of files removed.
    """
    cutoff = (time.time() if now is None else now) - max_age
    removed = 0
    for directory in paths:
        directory = Path(directory)
        try:
            entries = list(directory.iterdir())
        except FileNotFoundError:
            logger.warning("Sweep skipped missing directory %s", directory)
            continue
        except OSError as exc:
            logger.error("Sweep could not list %s: %s", directory, exc)
            continue

        for entry in entries:
            try:
                if not entry.is_file() or entry.stat().st_mtime >= cutoff:
                    continue
                entry.unlink()
                removed += 1
                logger.debug("Sweep removed %s", entry)
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Sweep could not remove %s: %s", entry, exc)
    return removed


class StorageManager:
    """Owns the staging, converted and optional static image directories."""

    def __init__(
        self,
        upload_dir: Path,
        converted_dir: Path,
        retention_seconds: float,
        images_dir: Optional[Path] = None,
    ) -> None:
        self.upload_dir = Path(upload_dir)
        self.converted_dir = Path(converted_dir)
        self.images_dir = Path(images_dir) if images_dir else None
        self.retention_seconds = retention_seconds

    @property
    def managed_dirs(self) -> List[Path]:
        """Directories subject to the retention sweep."""
        return [self.upload_dir, self.converted_dir]

    def ensure_directories(self) -> None:
        dirs = list(self.managed_dirs)
        if self.images_dir:
            dirs.append(self.images_dir)
        ensure_directories(dirs)
        logger.info(
            "Directories initialized successfully: upload=%s converted=%s",
            self.upload_dir,
            self.converted_dir,
        )

    def sweep(self, now: Optional[float] = None) -> int:
        removed = sweep(self.managed_dirs, self.retention_seconds, now=now)
        if removed:
            logger.info("Retention sweep removed %d file(s)", removed)
        return removed

    def list_contents(self) -> Dict[str, List[str]]:
        """Sorted entry names per managed directory.

        Raises:
            OSError: If a directory cannot be listed.
        """
        return {
            "upload": sorted(p.name for p in self.upload_dir.iterdir()),
            "converted": sorted(p.name for p in self.converted_dir.iterdir()),
        }
