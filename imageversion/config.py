"""Service configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from PIL import Image
from pydantic import BaseModel, Field

from imageversion.models import DEFAULT_QUALITY, DEFAULT_SIZE

ResampleName = Literal["box", "bilinear", "hamming", "bicubic", "lanczos"]

_RESAMPLE_FILTERS = {
    "box": Image.Resampling.BOX,
    "bilinear": Image.Resampling.BILINEAR,
    "hamming": Image.Resampling.HAMMING,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
}


class ImageVersionConfig(BaseModel):
    """Configuration for derivative generation and caching."""

    content_root: Path = Field(
        default=Path("."), description="Directory that source paths are relative to"
    )
    default_size: tuple[int, int] = Field(default=DEFAULT_SIZE, description="Size when none given")
    default_quality: int = Field(default=DEFAULT_QUALITY, description="Quality (0-100)")
    default_crop: bool = Field(default=False, description="Crop instead of fitting")
    default_sharpen: bool = Field(default=True, description="Sharpen jpeg derivatives")
    resample: ResampleName = Field(
        default="box", description="Pillow filter used to scale the source"
    )
    lock_timeout: float | None = Field(
        default=None, description="Seconds to wait for a busy cache key, None waits forever"
    )

    @property
    def resample_filter(self) -> Image.Resampling:
        return _RESAMPLE_FILTERS[self.resample]

    @classmethod
    def from_yaml(cls, path: Path) -> ImageVersionConfig:
        """Load configuration from a YAML file.

        A relative ``content_root`` is resolved against the file's directory.
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        config = cls.model_validate(data)
        if not config.content_root.is_absolute():
            config = config.model_copy(
                update={"content_root": Path(path).parent / config.content_root}
            )
        return config
