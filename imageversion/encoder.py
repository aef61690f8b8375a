"""Per-format decoding and encoding of derivatives."""

from __future__ import annotations

import logging
import math
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, Any

from PIL import Image, UnidentifiedImageError

from imageversion.errors import FilesystemError, SourceUnreadable
from imageversion.models import ImageFormat

logger = logging.getLogger(__name__)

GIF_TRANSPARENT_INDEX = 255


class FormatCodec(ABC):
    """Decode/encode strategy for one ImageFormat."""

    format: ImageFormat

    def decode(self, path: Path) -> Image.Image:
        """Open and fully load a source image."""
        try:
            with Image.open(path) as image:
                image.load()
                return image
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise SourceUnreadable(f"Cannot decode {path}: {e}") from e

    @abstractmethod
    def native_quality(self, quality: int) -> int | None:
        """Map a 0-100 quality to the format's own scale."""

    def prepare(self, canvas: Image.Image) -> Image.Image:
        """Convert the canvas to a mode the format can store."""
        return canvas

    def save_options(self, quality: int) -> dict[str, Any]:
        return {}

    def save(self, canvas: Image.Image, fp: IO[bytes], quality: int) -> None:
        image = self.prepare(canvas)
        image.save(fp, format=self.format.pil_format, **self.save_options(quality))


class JpegCodec(FormatCodec):
    format = ImageFormat.JPEG

    def native_quality(self, quality: int) -> int:
        return quality

    def prepare(self, canvas: Image.Image) -> Image.Image:
        if canvas.mode != "RGB":
            return canvas.convert("RGB")
        return canvas

    def save_options(self, quality: int) -> dict[str, Any]:
        return {"quality": self.native_quality(quality)}


class PngCodec(FormatCodec):
    format = ImageFormat.PNG

    def native_quality(self, quality: int) -> int:
        """Quality 100 is compression level 0, quality 0 is level 9."""
        return math.floor(abs((quality - 100) / 11.111111) + 0.5)

    def save_options(self, quality: int) -> dict[str, Any]:
        return {"compress_level": self.native_quality(quality)}


class GifCodec(FormatCodec):
    format = ImageFormat.GIF

    def native_quality(self, quality: int) -> None:
        return None

    def prepare(self, canvas: Image.Image) -> Image.Image:
        """Palettize, mapping mostly transparent pixels to a reserved index."""
        if canvas.mode != "RGBA":
            return canvas.convert("RGB").convert("P", palette=Image.Palette.ADAPTIVE)

        alpha = canvas.getchannel("A")
        image = canvas.convert("RGB").convert(
            "P", palette=Image.Palette.ADAPTIVE, colors=GIF_TRANSPARENT_INDEX
        )
        palette = image.getpalette() or []
        palette += [0] * (768 - len(palette))
        image.putpalette(palette)
        image.paste(GIF_TRANSPARENT_INDEX, mask=alpha.point(lambda a: 255 if a < 128 else 0))
        image.info["transparency"] = GIF_TRANSPARENT_INDEX
        return image

    def save_options(self, quality: int) -> dict[str, Any]:
        return {"transparency": GIF_TRANSPARENT_INDEX, "optimize": False}

    def save(self, canvas: Image.Image, fp: IO[bytes], quality: int) -> None:
        image = self.prepare(canvas)
        options = self.save_options(quality)
        if "transparency" not in image.info:
            options.pop("transparency")
        image.save(fp, format=self.format.pil_format, **options)


_CODECS: dict[ImageFormat, FormatCodec] = {
    ImageFormat.JPEG: JpegCodec(),
    ImageFormat.PNG: PngCodec(),
    ImageFormat.GIF: GifCodec(),
}


def codec_for(fmt: ImageFormat) -> FormatCodec:
    """Get the codec for a format."""
    return _CODECS[fmt]


class Encoder:
    """Writes a finished canvas to its cache path."""

    def write(self, canvas: Image.Image, fmt: ImageFormat, dest: Path, quality: int) -> Path:
        """Encode ``canvas`` and atomically place it at ``dest``.

        The image is written to a temporary file next to ``dest`` and renamed
        over it, so readers never see a partial file.

        Raises:
            FilesystemError: if the directory is missing or not writable.
        """
        dest = Path(dest)
        if not dest.parent.is_dir():
            raise FilesystemError(f"Directory does not exist: {dest.parent}")

        codec = codec_for(fmt)
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent
            )
        except OSError as e:
            raise FilesystemError(f"Cannot write to {dest.parent}: {e}") from e

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                codec.save(canvas, f, quality)
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, dest)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise FilesystemError(f"Failed to write {dest}: {e}") from e
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

        logger.debug(f"Wrote {fmt.value} derivative {dest}")
        return dest
