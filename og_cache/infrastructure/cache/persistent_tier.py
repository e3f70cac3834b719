"""
Persistent Tier - durable on-disk artifact storage.

Responsibility: key → file mapping that survives restarts.

Implementation Details:
- Filename is ``sanitize_key(key)`` plus ``.jpg``; ``.png`` files written by
  older releases are still read and deleted
- File mtime stands in for creation time; a single global TTL applies
- Expiry is pull-based: the read that finds an expired file deletes it
- Every I/O failure is logged and turned into a miss / no-op; nothing here
  raises into the request path
- Async file I/O through aiofiles
"""

import time
from collections.abc import Callable
from pathlib import Path

import aiofiles
import aiofiles.os

from og_cache.core.config.constants import (
    LEGACY_PERSISTENT_EXTENSION,
    PERSISTENT_EXTENSION,
    PERSISTENT_EXTENSIONS,
    Stage,
)
from og_cache.core.exceptions import PersistentStorageError
from og_cache.core.logging.logger import get_logger, log_stage
from og_cache.infrastructure.cache.keys import sanitize_key

logger = get_logger(__name__)


class PersistentTier:
    """
    Unbounded, durable cache tier backed by a directory of files.

    Usage:
        tier = PersistentTier("cache", ttl_seconds=86400)
        await tier.ensure_directory()
        await tier.write("key", b"...")
        payload = await tier.read("key")
    """

    def __init__(
        self,
        cache_dir: str | Path,
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            cache_dir: Directory holding one file per key
            ttl_seconds: Maximum file age before a read treats it as expired
            clock: Seconds since the epoch, compared against file mtime
        """
        self._dir = Path(cache_dir)
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, key: str, extension: str = PERSISTENT_EXTENSION) -> Path:
        """File path for ``key`` in the given format."""
        return self._dir / f"{sanitize_key(key)}{extension}"

    async def ensure_directory(self) -> None:
        """Create the cache directory if missing."""
        await aiofiles.os.makedirs(self._dir, exist_ok=True)

    # -------------------------------------------------------------------------
    # Hot path
    # -------------------------------------------------------------------------

    async def read(self, key: str) -> bytes | None:
        """
        Return the stored payload for ``key``, or None.

        The current format is tried first, then the legacy one. An expired
        file is deleted (best effort) and reported as a miss.
        """
        for extension in (PERSISTENT_EXTENSION, LEGACY_PERSISTENT_EXTENSION):
            path = self.path_for(key, extension)
            try:
                stats = await aiofiles.os.stat(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Persistent tier stat failed", path=str(path), error=str(e))
                return None

            age = self._clock() - stats.st_mtime
            if age > self._ttl_seconds:
                await self._discard_expired(path, age)
                return None

            try:
                async with aiofiles.open(path, "rb") as f:
                    return await f.read()
            except OSError as e:
                logger.warning("Persistent tier read failed", path=str(path), error=str(e))
                return None

        return None

    async def write(self, key: str, payload: bytes) -> bool:
        """
        Store ``payload`` for ``key``.

        Failures are logged and swallowed. Returns True if the file was written.
        """
        try:
            await self.write_or_raise(key, payload)
        except PersistentStorageError as e:
            log_stage(
                logger,
                Stage.PERSISTENT_WRITE,
                "Failed to save to persistent cache",
                level="error",
                **e.details,
            )
            return False
        return True

    async def write_or_raise(self, key: str, payload: bytes) -> None:
        """Store ``payload`` for ``key``, raising PersistentStorageError on failure."""
        path = self.path_for(key)
        try:
            await aiofiles.os.makedirs(self._dir, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(payload)
        except OSError as e:
            raise PersistentStorageError.from_exception(
                e, message=f"Failed to write {path.name}", path=str(path)
            ) from e

    async def _discard_expired(self, path: Path, age: float) -> None:
        try:
            await aiofiles.os.remove(path)
        except OSError as e:
            logger.debug("Expired cache file not removed", path=str(path), error=str(e))
            return
        logger.debug("Expired cache file removed", path=str(path), age_seconds=round(age, 1))

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    async def delete(self, key: str) -> bool:
        """Remove the file for ``key`` (current format, else legacy). True if one was removed."""
        for extension in (PERSISTENT_EXTENSION, LEGACY_PERSISTENT_EXTENSION):
            try:
                await aiofiles.os.remove(self.path_for(key, extension))
                return True
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Persistent tier delete failed", key=key, error=str(e))
                return False
        return False

    async def list_keys(self) -> list[str]:
        """Filename stems of every cached artifact (sanitized keys)."""
        return [stem for stem, _ in await self._cached_files()]

    async def clear(self) -> int:
        """Remove every cached artifact. Returns the number of files removed."""
        removed = 0
        for _, name in await self._cached_files():
            try:
                await aiofiles.os.remove(self._dir / name)
                removed += 1
            except OSError as e:
                logger.error("Error clearing persistent cache file", file=name, error=str(e))
        return removed

    async def _cached_files(self) -> list[tuple[str, str]]:
        try:
            names = await aiofiles.os.listdir(self._dir)
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error("Error listing persistent cache", directory=str(self._dir), error=str(e))
            return []

        files = []
        for name in sorted(names):
            stem, dot, extension = name.rpartition(".")
            if dot and f".{extension}" in PERSISTENT_EXTENSIONS:
                files.append((stem, name))
        return files
