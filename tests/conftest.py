"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from PIL import Image, ImageDraw

from imageversion import ImageVersionConfig, ThumbnailService


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    """Content root that source paths are resolved against."""
    root = tmp_path / "webroot"
    root.mkdir()
    return root


@pytest.fixture
def make_image(content_root: Path) -> Callable[..., Path]:
    """Factory writing a solid-colour source image under the content root."""

    def _make(
        relative: str = "img/photo.jpg",
        size: tuple[int, int] = (400, 300),
        mode: str = "RGB",
        color: tuple[int, ...] = (200, 30, 30),
        **save_kwargs,
    ) -> Path:
        path = content_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new(mode, size, color).save(path, **save_kwargs)
        return path

    return _make


@pytest.fixture
def make_transparent_gif(content_root: Path) -> Callable[..., Path]:
    """Factory writing a gif with a transparent background and red centre."""

    def _make(relative: str = "img/icon.gif", size: tuple[int, int] = (40, 20)) -> Path:
        path = content_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        image = Image.new("P", size, 0)
        image.putpalette([0, 0, 0, 255, 0, 0] + [0] * (768 - 6))
        width, height = size
        ImageDraw.Draw(image).rectangle(
            (width // 4, height // 4, width * 3 // 4, height * 3 // 4), fill=1
        )
        image.save(path, transparency=0)
        return path

    return _make


@pytest.fixture
def config(content_root: Path) -> ImageVersionConfig:
    return ImageVersionConfig(content_root=content_root)


@pytest.fixture
def service(config: ImageVersionConfig) -> ThumbnailService:
    """Service with default collaborators rooted at the temp content root."""
    return ThumbnailService(config)


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: slow running tests")
