"""Value objects shared by the derivative pipeline."""

from __future__ import annotations

import math
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from imageversion.errors import InvalidInput, UnsupportedFormat

DEFAULT_SIZE = (75, 75)
DEFAULT_QUALITY = 85
WHITE = (255, 255, 255)

RGB = tuple[int, int, int]


class ImageFormat(str, Enum):
    """Raster formats a derivative can be produced for."""

    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"

    @property
    def pil_format(self) -> str:
        """Format name understood by ``Image.save``."""
        return self.value.upper()

    @property
    def supports_transparency(self) -> bool:
        return self is not ImageFormat.JPEG

    @classmethod
    def from_extension(cls, ext: str) -> ImageFormat:
        """Map a file extension (with or without the dot) to a format."""
        ext = ext.lower().lstrip(".")
        if ext in ("jpg", "jpeg"):
            return cls.JPEG
        if ext == "png":
            return cls.PNG
        if ext == "gif":
            return cls.GIF
        raise UnsupportedFormat(f"Unsupported image extension: {ext or '<none>'}")


def html_to_rgb(color: str) -> RGB | None:
    """Convert a web hex colour (``#rrggbb``, ``rgb`` ...) to an RGB triple.

    Returns None when the string is not a 3 or 6 digit hex value.
    """
    color = color.strip().lstrip("#")
    if len(color) == 3:
        color = "".join(c * 2 for c in color)
    if len(color) != 6:
        return None
    try:
        return tuple(int(color[i : i + 2], 16) for i in (0, 2, 4))  # type: ignore[return-value]
    except ValueError:
        return None


class SourceImage(BaseModel):
    """A source raster on disk. Never modified by this package."""

    path: Path
    width: int
    height: int
    format: ImageFormat
    mtime: float

    model_config = ConfigDict(frozen=True)


class DerivativeSpec(BaseModel):
    """Everything that describes one requested derivative."""

    width: int = Field(default=DEFAULT_SIZE[0], description="Requested width, 0 = derive")
    height: int = Field(default=DEFAULT_SIZE[1], description="Requested height, 0 = derive")
    quality: int = Field(default=DEFAULT_QUALITY, ge=0, le=100)
    crop: bool = False
    letterbox: RGB | None = Field(
        default=None, description="Background colour for the letterbox, None disables it"
    )
    force_letterbox_color: bool = Field(
        default=False,
        description="Paint the letterbox colour on gif/png instead of keeping it transparent",
    )
    sharpen: bool = True

    model_config = ConfigDict(frozen=True)

    @field_validator("width", "height", mode="before")
    @classmethod
    def _normalize_dimension(cls, value: Any) -> Any:
        if value is None:
            return 0
        if isinstance(value, bool):
            raise ValueError("size must be numeric")
        if isinstance(value, float):
            value = int(value)
        if isinstance(value, int) and value < 0:
            return 0
        return value

    @field_validator("quality", mode="before")
    @classmethod
    def _clamp_quality(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_QUALITY
        if isinstance(value, bool):
            raise ValueError("quality must be numeric")
        try:
            quality = math.ceil(float(value))
        except (TypeError, ValueError, OverflowError) as e:
            raise ValueError(f"quality must be numeric, got {value!r}") from e
        return min(max(quality, 0), 100)

    @field_validator("crop", mode="before")
    @classmethod
    def _default_crop(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("sharpen", mode="before")
    @classmethod
    def _default_sharpen(cls, value: Any) -> Any:
        return True if value is None else value

    @field_validator("letterbox", mode="before")
    @classmethod
    def _parse_letterbox(cls, value: Any) -> Any:
        if value is None or value is False:
            return None
        if isinstance(value, str):
            if value.strip().lower() in ("", "none"):
                return None
            return html_to_rgb(value)
        if isinstance(value, Sequence):
            if len(value) != 3:
                return WHITE
            return tuple(min(max(int(c), 0), 255) for c in value)
        return value

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def bucket(self) -> str:
        """Cache directory name for this size, e.g. ``150x75``."""
        return f"{self.width}x{self.height}"

    @classmethod
    def from_request(
        cls,
        size: Sequence[int] | None = DEFAULT_SIZE,
        quality: Any = DEFAULT_QUALITY,
        crop: bool | None = False,
        letterbox: Any = None,
        force_letterbox_color: bool = False,
        sharpen: bool | None = True,
    ) -> DerivativeSpec:
        """Build a spec from loosely typed caller arguments.

        Raises:
            InvalidInput: if the size is not a (width, height) pair or any
                field fails validation.
        """
        if size is None:
            size = DEFAULT_SIZE
        if isinstance(size, (str, bytes)) or not isinstance(size, Sequence) or len(size) != 2:
            raise InvalidInput(f"size must be a (width, height) pair, got {size!r}")
        try:
            return cls(
                width=size[0],
                height=size[1],
                quality=quality,
                crop=crop,
                letterbox=letterbox,
                force_letterbox_color=force_letterbox_color,
                sharpen=sharpen,
            )
        except ValidationError as e:
            raise InvalidInput(str(e)) from e


class DerivativeCacheEntry(BaseModel):
    """A derivative file found in the cache."""

    bucket: str
    filename: str
    path: Path
    mtime: float

    model_config = ConfigDict(frozen=True)
