"""Local filesystem storage for generated report PDFs.

Files live flat under one base directory. Names are sanitized on save and
every path handed back in is resolved and checked against the base
directory before it is touched. Blocking file I/O runs in the default
thread pool.
"""

from __future__ import annotations

import asyncio
import hashlib
import re
import time
from functools import partial
from pathlib import Path
from typing import Any, Callable

from voiceai_shared import get_logger

from voiceai.core.exceptions import StorageError, StoragePathError

log = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def calculate_checksum(data: bytes) -> str:
    """MD5 hex digest used to fingerprint stored PDFs."""
    return hashlib.md5(data).hexdigest()


def sanitize_filename(filename: str) -> str:
    """Keep only the last path component and replace unsafe characters."""
    basename = filename.replace("\\", "/").rsplit("/", 1)[-1]
    return _UNSAFE_CHARS.sub("_", basename)


class FilesystemStorage:
    """Report file store rooted at ``base_dir``."""

    def __init__(self, base_dir: str | Path = "./reports"):
        self.base_dir = Path(base_dir).resolve()

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    def resolve(self, file_path: str | Path) -> Path:
        """Resolve a stored path and make sure it stays inside the base dir.

        Relative paths are taken relative to the base directory.

        Raises:
            StoragePathError: The path escapes the base directory.
        """
        resolved = (self.base_dir / Path(file_path)).resolve()
        if resolved != self.base_dir and self.base_dir not in resolved.parents:
            raise StoragePathError(
                "Path escapes the storage directory",
                details={"path": str(file_path)},
            )
        return resolved

    async def initialize(self) -> None:
        """Create the base directory if needed."""
        try:
            await self._run(partial(self.base_dir.mkdir, parents=True, exist_ok=True))
        except OSError as e:
            log.error("storage_init_failed", base_dir=str(self.base_dir), error=str(e))
            raise StorageError(f"Cannot create storage directory {self.base_dir}", cause=e) from e
        log.info("storage_initialized", base_dir=str(self.base_dir))

    async def save(self, data: bytes, filename: str) -> str:
        """Write ``data`` under a sanitized ``filename``; returns the absolute path."""
        path = self.base_dir / sanitize_filename(filename)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await self._run(_write)
        except OSError as e:
            log.error("storage_save_failed", path=str(path), error=str(e))
            raise StorageError(f"Failed to save {path.name}", cause=e) from e

        log.info("storage_file_saved", path=str(path), size=len(data))
        return str(path)

    async def read(self, file_path: str | Path) -> bytes:
        path = self.resolve(file_path)
        try:
            return await self._run(path.read_bytes)
        except OSError as e:
            log.error("storage_read_failed", path=str(path), error=str(e))
            raise StorageError(f"Failed to read {path.name}", cause=e) from e

    async def delete(self, file_path: str | Path) -> None:
        path = self.resolve(file_path)
        try:
            await self._run(path.unlink)
        except OSError as e:
            log.error("storage_delete_failed", path=str(path), error=str(e))
            raise StorageError(f"Failed to delete {path.name}", cause=e) from e
        log.info("storage_file_deleted", path=str(path))

    async def exists(self, file_path: str | Path) -> bool:
        """False for missing files and for paths outside the base dir."""
        try:
            path = self.resolve(file_path)
        except StoragePathError:
            return False
        return await self._run(path.is_file)

    async def cleanup_old_reports(self, days_to_keep: int = 90) -> int:
        """Delete files whose modification time is older than ``days_to_keep``.

        Returns:
            Number of files deleted
        """
        max_age = days_to_keep * 24 * 60 * 60
        now = time.time()

        def _expired() -> list[Path]:
            if not self.base_dir.exists():
                return []
            return [
                entry
                for entry in self.base_dir.iterdir()
                if entry.is_file() and now - entry.stat().st_mtime > max_age
            ]

        deleted = 0
        for path in await self._run(_expired):
            await self.delete(path)
            deleted += 1

        log.info("storage_cleanup_completed", deleted=deleted, days_to_keep=days_to_keep)
        return deleted
