"""On-disk storage for downloaded call recordings."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path

logger = logging.getLogger(__name__)


class RecordingStorage:
    """Writes recordings under a base directory without overwriting existing files."""

    def __init__(self, base_dir: str | os.PathLike[str]) -> None:
        self._base_dir = Path(base_dir).resolve()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def ensure_directory(self) -> None:
        self._base_dir.mkdir(parents=True, exist_ok=True)
        logger.debug("Storage directory ensured: %s", self._base_dir)

    def path_for(self, file_name: str) -> Path:
        """Path under base_dir for ``file_name``. Raises ValueError for empty or dot-only names."""
        # Only the final component is used so a name cannot escape base_dir.
        name = Path(file_name).name
        if not name.strip(".").strip():
            raise ValueError(f"Invalid recording file name: {file_name!r}")
        return self._base_dir / name

    def exists(self, file_name: str) -> bool:
        return self.path_for(file_name).exists()

    def _unique_name(self, file_name: str) -> str:
        if not self.exists(file_name):
            return Path(file_name).name
        stem = Path(file_name).stem
        suffix = Path(file_name).suffix
        return f"{stem}_{int(time.time() * 1000)}{suffix}"

    def save(self, file_name: str, data: bytes) -> Path:
        """Write ``data`` and return the final path.

        Raises ValueError for an unusable name and OSError on I/O failure.
        """
        self.ensure_directory()
        target = self.path_for(self._unique_name(file_name))
        try:
            target.write_bytes(data)
        except OSError:
            logger.exception("Failed to save file %s", target)
            raise
        logger.info("File saved: %s (%d bytes)", target, len(data))
        return target
