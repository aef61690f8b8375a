"""Tests for the derivative filesystem cache."""

from __future__ import annotations

import os
import time
from pathlib import Path

import pytest

from imageversion import (
    DerivativeCache,
    FilesystemError,
    GenerationTimeout,
    InvalidInput,
    format_path,
)


@pytest.fixture
def cache(content_root: Path) -> DerivativeCache:
    return DerivativeCache(content_root)


@pytest.fixture
def source(make_image) -> Path:
    return make_image("img/photo.jpg")


def write_derivative(cache: DerivativeCache, source: Path, width: int, height: int) -> Path:
    path = cache.entry_path(source, width, height)
    cache.ensure_bucket(path.parent)
    path.write_bytes(b"derivative")
    return path


def set_mtime(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


class TestPaths:
    """Tests for the bucket path scheme."""

    def test_entry_path(self, cache: DerivativeCache, source: Path, content_root: Path) -> None:
        assert cache.entry_path(source, 150, 75) == content_root / "img" / "150x75" / "photo.jpg"

    def test_resolve_source(self, cache: DerivativeCache, content_root: Path) -> None:
        expected = content_root / "img" / "photo.jpg"

        assert cache.resolve_source("img/photo.jpg") == expected
        assert cache.resolve_source("/img/photo.jpg") == expected
        assert cache.resolve_source("\\img\\photo.jpg") == expected

    @pytest.mark.parametrize("value", ["", "   ", "/", None, 42])
    def test_resolve_source_rejects_empty(self, cache: DerivativeCache, value) -> None:
        with pytest.raises(InvalidInput):
            cache.resolve_source(value)

    def test_public_path(self, cache: DerivativeCache, source: Path) -> None:
        path = cache.entry_path(source, 150, 75)
        assert cache.public_path(path) == "/img/150x75/photo.jpg"

    def test_format_path(self) -> None:
        assert format_path("img\\150x75\\photo.jpg") == "img/150x75/photo.jpg"
        assert format_path("C:\\www\\img") == "C:/www/img"


class TestLookup:
    """Tests for freshness-based cache lookup."""

    def test_miss_when_absent(self, cache: DerivativeCache, source: Path) -> None:
        assert cache.lookup(source, 150, 75) is None

    def test_hit_when_newer(self, cache: DerivativeCache, source: Path) -> None:
        now = time.time()
        set_mtime(source, now - 100)
        path = write_derivative(cache, source, 150, 75)
        set_mtime(path, now)

        entry = cache.lookup(source, 150, 75)
        assert entry is not None
        assert entry.path == path
        assert entry.bucket == "150x75"
        assert entry.filename == "photo.jpg"

    def test_hit_within_same_second(self, cache: DerivativeCache, source: Path) -> None:
        second = float(int(time.time()) - 50)
        set_mtime(source, second + 0.9)
        path = write_derivative(cache, source, 150, 75)
        set_mtime(path, second + 0.1)

        assert cache.lookup(source, 150, 75) is not None

    def test_stale_when_source_newer(self, cache: DerivativeCache, source: Path) -> None:
        now = time.time()
        path = write_derivative(cache, source, 150, 75)
        set_mtime(path, now - 100)
        set_mtime(source, now - 10)

        assert cache.lookup(source, 150, 75) is None


class TestEnsureBucket:
    """Tests for creating bucket directories."""

    def test_creates_nested_directories(self, cache: DerivativeCache, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "c"
        assert cache.ensure_bucket(target) == target
        assert target.is_dir()

    def test_idempotent(self, cache: DerivativeCache, tmp_path: Path) -> None:
        target = tmp_path / "bucket"
        cache.ensure_bucket(target)
        cache.ensure_bucket(target)
        assert target.is_dir()

    def test_backslash_separators(self, cache: DerivativeCache, tmp_path: Path) -> None:
        cache.ensure_bucket(str(tmp_path) + "\\x\\y")
        assert (tmp_path / "x" / "y").is_dir()

    def test_file_in_the_way(self, cache: DerivativeCache, tmp_path: Path) -> None:
        (tmp_path / "taken").write_text("file")
        with pytest.raises(FilesystemError):
            cache.ensure_bucket(tmp_path / "taken")


class TestFlush:
    """Tests for deleting derivatives."""

    def test_flush_one_leaves_siblings(self, cache: DerivativeCache, source: Path, make_image) -> None:
        other = make_image("img/other.jpg")
        target = write_derivative(cache, source, 150, 75)
        same_bucket = write_derivative(cache, other, 150, 75)
        other_size = write_derivative(cache, source, 100, 100)

        assert cache.flush_one(source, 150, 75) is True

        assert not target.exists()
        assert same_bucket.exists()
        assert other_size.exists()

    def test_flush_one_absent_is_noop(self, cache: DerivativeCache, source: Path) -> None:
        assert cache.flush_one(source, 150, 75) is False

    def test_flush_all_removes_bucket(self, cache: DerivativeCache, source: Path, make_image) -> None:
        other = make_image("img/other.jpg")
        write_derivative(cache, source, 150, 75)
        write_derivative(cache, other, 150, 75)
        nested = cache.bucket_dir(source, 150, 75) / "nested"
        nested.mkdir()
        (nested / "stray.txt").write_text("x")
        kept = write_derivative(cache, source, 100, 100)

        assert cache.flush_all(source, 150, 75) is True

        assert not cache.bucket_dir(source, 150, 75).exists()
        assert kept.exists()
        assert source.exists()
        assert cache.flush_all(source, 150, 75) is False


class TestLock:
    """Tests for per-key locking."""

    def test_busy_key_times_out(self, cache: DerivativeCache, source: Path) -> None:
        with cache.lock(source, 150, 75):
            with pytest.raises(GenerationTimeout):
                with cache.lock(source, 150, 75, timeout=0.05):
                    pass

    def test_other_keys_are_independent(self, cache: DerivativeCache, source: Path) -> None:
        with cache.lock(source, 150, 75):
            with cache.lock(source, 100, 100, timeout=0.05):
                pass

    def test_registry_is_emptied(self, cache: DerivativeCache, source: Path) -> None:
        with cache.lock(source, 150, 75):
            pass
        assert cache._locks._locks == {}
