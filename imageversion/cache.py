"""Filesystem cache of derivatives, bucketed by requested size."""

from __future__ import annotations

import logging
import shutil
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from imageversion.errors import FilesystemError, GenerationTimeout, InvalidInput
from imageversion.models import DerivativeCacheEntry

logger = logging.getLogger(__name__)

CacheKey = tuple[str, int, int]


def format_path(path: str | Path) -> str:
    """Use forward slashes regardless of the host separator."""
    return str(path).replace("\\", "/")


def _stamp(mtime: float) -> str:
    """Whole-second timestamp, so sub-second skew never counts as newer."""
    return datetime.fromtimestamp(mtime).strftime("%Y%m%d%H%M%S")


class _KeyedLocks:
    """One mutex per cache key, dropped when nobody holds or waits on it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[CacheKey, threading.Lock] = {}
        self._users: dict[CacheKey, int] = {}

    @contextmanager
    def hold(self, key: CacheKey, timeout: float | None = None) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        try:
            acquired = lock.acquire(timeout=-1 if timeout is None else max(timeout, 0))
            if not acquired:
                raise GenerationTimeout(f"Timed out waiting for {key[0]} at {key[1]}x{key[2]}")
            try:
                yield
            finally:
                lock.release()
        finally:
            with self._guard:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]


class DerivativeCache:
    """Maps sources and requested sizes to derivative files.

    Derivatives live next to their source, in a ``{w}x{h}`` bucket directory
    named after the requested size, under the source's own file name.
    """

    def __init__(self, content_root: Path) -> None:
        self.content_root = Path(content_root)
        self._locks = _KeyedLocks()

    def resolve_source(self, source_path: str) -> Path:
        """Absolute path of a source given relative to the content root."""
        if not isinstance(source_path, str) or not source_path.strip():
            raise InvalidInput("No source path given")
        relative = format_path(source_path.strip()).lstrip("/")
        if not relative:
            raise InvalidInput("No source path given")
        return self.content_root / relative

    def bucket_dir(self, source: Path, width: int, height: int) -> Path:
        return source.parent / f"{width}x{height}"

    def entry_path(self, source: Path, width: int, height: int) -> Path:
        return self.bucket_dir(source, width, height) / source.name

    def lookup(
        self, source: Path, width: int, height: int
    ) -> DerivativeCacheEntry | None:
        """Return the cached derivative if it exists and is not older than the source."""
        path = self.entry_path(source, width, height)
        try:
            entry_mtime = path.stat().st_mtime
            source_mtime = source.stat().st_mtime
        except (FileNotFoundError, NotADirectoryError):
            return None

        if _stamp(entry_mtime) < _stamp(source_mtime):
            logger.debug(f"Stale derivative {path}")
            return None

        return DerivativeCacheEntry(
            bucket=path.parent.name,
            filename=path.name,
            path=path,
            mtime=entry_mtime,
        )

    def ensure_bucket(self, path: str | Path) -> Path:
        """Create every missing directory of ``path``. Safe to call repeatedly."""
        directory = Path(format_path(path))
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Cannot create directory {directory}: {e}") from e
        return directory

    def flush_one(self, source: Path, width: int, height: int) -> bool:
        """Delete the single derivative of ``source`` at this size, if present."""
        path = self.entry_path(source, width, height)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FilesystemError(f"Cannot delete {path}: {e}") from e
        logger.info(f"Flushed derivative {path}")
        return True

    def flush_all(self, source: Path, width: int, height: int) -> bool:
        """Delete the whole size bucket next to ``source``, with everything in it."""
        bucket = self.bucket_dir(source, width, height)
        if not bucket.exists():
            return False
        try:
            shutil.rmtree(bucket)
        except OSError as e:
            raise FilesystemError(f"Cannot delete {bucket}: {e}") from e
        logger.info(f"Flushed bucket {bucket}")
        return True

    def public_path(self, path: Path) -> str:
        """Root-relative path with forward slashes, e.g. ``/img/75x75/a.jpg``."""
        try:
            relative = Path(path).relative_to(self.content_root)
        except ValueError:
            return format_path(path)
        return "/" + format_path(relative.as_posix())

    @contextmanager
    def lock(
        self, source: Path, width: int, height: int, timeout: float | None = None
    ) -> Iterator[None]:
        """Serialize generation and flushing of one derivative.

        Raises:
            GenerationTimeout: if the key stays busy longer than ``timeout``.
        """
        with self._locks.hold((str(source), width, height), timeout):
            yield
