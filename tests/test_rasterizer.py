"""Tests for drawing the derivative canvas."""

from __future__ import annotations

import pytest
from PIL import Image

from imageversion import (
    DerivativeSpec,
    ImageFormat,
    Rasterizer,
    TransparencyHandler,
    plan_geometry,
)


def render(image: Image.Image, fmt: ImageFormat, spec: DerivativeSpec) -> Image.Image:
    handler = TransparencyHandler()
    plan = plan_geometry(image.width, image.height, spec)
    state = handler.inspect(image, fmt)
    return Rasterizer(handler).render(image, plan, state, spec)


class TestRasterizer:
    """Tests for Rasterizer.render."""

    def test_fit_without_letterbox(self) -> None:
        source = Image.new("RGB", (400, 300), (255, 0, 0))
        canvas = render(source, ImageFormat.JPEG, DerivativeSpec(width=200, height=100))

        assert canvas.size == (134, 100)
        assert canvas.mode == "RGB"
        assert canvas.getpixel((60, 50)) == (255, 0, 0)

    def test_jpeg_letterbox_colour(self) -> None:
        source = Image.new("RGB", (400, 300), (255, 0, 0))
        spec = DerivativeSpec(width=200, height=100, letterbox=(0, 0, 255))
        canvas = render(source, ImageFormat.JPEG, spec)

        assert canvas.size == (200, 100)
        assert canvas.getpixel((5, 50)) == (0, 0, 255)
        assert canvas.getpixel((195, 50)) == (0, 0, 255)
        assert canvas.getpixel((100, 50)) == (255, 0, 0)

    def test_square_crop_drops_the_sides(self) -> None:
        source = Image.new("RGB", (400, 300), (0, 255, 0))
        source.paste((255, 0, 0), (50, 0, 350, 300))
        canvas = render(source, ImageFormat.JPEG, DerivativeSpec(width=100, height=100))

        assert canvas.size == (100, 100)
        for x, y in [(0, 0), (99, 0), (50, 50), (0, 99), (99, 99)]:
            r, g, _ = canvas.getpixel((x, y))
            assert r > 200 and g < 50

    def test_cover_crop_cuts_overflow(self) -> None:
        source = Image.new("RGB", (400, 300), (0, 255, 0))
        source.paste((255, 0, 0), (0, 40, 400, 260))
        spec = DerivativeSpec(width=200, height=100, crop=True)
        canvas = render(source, ImageFormat.JPEG, spec)

        assert canvas.size == (200, 100)
        r, g, _ = canvas.getpixel((100, 50))
        assert r > 200 and g < 50

    def test_png_transparent_letterbox(self) -> None:
        source = Image.new("RGBA", (100, 50), (0, 255, 0, 255))
        spec = DerivativeSpec(width=100, height=100, letterbox=(255, 255, 255))
        canvas = render(source, ImageFormat.PNG, spec)

        assert canvas.size == (100, 100)
        assert canvas.mode == "RGBA"
        assert canvas.getpixel((0, 0))[3] == 0
        assert canvas.getpixel((50, 50)) == (0, 255, 0, 255)

    def test_png_forced_letterbox_floods_behind_translucency(self) -> None:
        source = Image.new("RGBA", (100, 50), (0, 255, 0, 128))
        spec = DerivativeSpec(
            width=100, height=100, letterbox=(255, 255, 255), force_letterbox_color=True
        )
        canvas = render(source, ImageFormat.PNG, spec)

        assert canvas.getpixel((0, 0)) == (255, 255, 255, 255)
        r, g, b, a = canvas.getpixel((50, 50))
        assert a == 255
        assert r > 100 and g == 255

    def test_gif_keeps_transparent_background(self, make_transparent_gif) -> None:
        with Image.open(make_transparent_gif()) as source:
            source.load()
            canvas = render(source, ImageFormat.GIF, DerivativeSpec(width=40, height=20))

        assert canvas.size == (40, 20)
        assert canvas.getpixel((0, 0))[3] == 0
        assert canvas.getpixel((20, 10)) == (255, 0, 0, 255)

    def test_nearest_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            Rasterizer(resample=Image.Resampling.NEAREST)
