"""Temporary resource ledger for a single run."""

import logging
import shutil
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


class ResourceLedger:
    """Owns every temporary path created during a run.

    Paths are only ever appended. dispose() removes each recorded path at
    most once, and only when it lies under the temp root.
    """

    def __init__(self, temp_root: Path | str, prefix: str = "template-kit-") -> None:
        """Initialize ledger.

        Args:
            temp_root: Directory all disposables must live under
            prefix: Name prefix for created temp directories
        """
        self.temp_root = Path(temp_root).resolve()
        self.prefix = prefix
        self._entries: list[Path] = []
        self._disposed: set[Path] = set()

    @property
    def disposables(self) -> tuple[Path, ...]:
        """Recorded paths, in creation order."""
        return tuple(self._entries)

    def record(self, path: Path | str) -> Path:
        """Take ownership of an existing path."""
        path = Path(path).resolve()
        if path not in self._entries:
            self._entries.append(path)
        return path

    def make_temp(self, suffix: str = "") -> Path:
        """Create a fresh temp directory and record it."""
        self.temp_root.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=self.prefix, suffix=suffix, dir=self.temp_root))
        logger.debug("Created temp directory %s", path)
        return self.record(path)

    def make_temp_name(self, suffix: str = "") -> Path:
        """Reserve a temp path that does not exist yet and record it."""
        path = self.make_temp(suffix)
        path.rmdir()
        return path

    def is_owned(self, path: Path | str) -> bool:
        """Check that a path lies strictly under the temp root."""
        path = Path(path).resolve()
        return path != self.temp_root and path.is_relative_to(self.temp_root)

    def dispose(self) -> list[Path]:
        """Remove every recorded path not yet disposed.

        Errors are logged and swallowed so one stuck path never keeps the
        rest around.

        Returns:
            Paths that were removed from the filesystem
        """
        removed = []
        for path in list(self._entries):
            if path in self._disposed:
                continue
            self._disposed.add(path)

            if not self.is_owned(path):
                logger.debug("Not removing %s: outside temp root %s", path, self.temp_root)
                continue
            if not path.exists() and not path.is_symlink():
                continue

            try:
                if path.is_dir() and not path.is_symlink():
                    shutil.rmtree(path)
                else:
                    path.unlink()
            except OSError as e:
                logger.debug("Failed to remove %s: %s", path, e)
                continue

            logger.debug("Removed %s", path)
            removed.append(path)

        return removed

    @property
    def pending(self) -> list[Path]:
        """Recorded paths not yet disposed."""
        return [p for p in self._entries if p not in self._disposed]
