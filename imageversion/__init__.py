"""imageversion - cached, size-specific derivatives of jpeg, png and gif images."""

from imageversion.cache import DerivativeCache, format_path
from imageversion.config import ImageVersionConfig
from imageversion.encoder import Encoder, FormatCodec, codec_for
from imageversion.errors import (
    FilesystemError,
    GenerationTimeout,
    ImageVersionError,
    InvalidInput,
    SourceNotFound,
    SourceUnreadable,
    UnsupportedFormat,
)
from imageversion.geometry import GeometryPlan, plan_geometry
from imageversion.models import (
    DerivativeCacheEntry,
    DerivativeSpec,
    ImageFormat,
    SourceImage,
    html_to_rgb,
)
from imageversion.rasterizer import Rasterizer
from imageversion.service import (
    FlushResult,
    GenerationState,
    ThumbnailService,
    VersionResult,
)
from imageversion.sharpen import Sharpener, find_sharpness
from imageversion.transparency import (
    TransparencyHandler,
    TransparencyKind,
    TransparencyState,
)

__version__ = "0.1.0"
__all__ = [
    "DerivativeCache",
    "DerivativeCacheEntry",
    "DerivativeSpec",
    "Encoder",
    "FilesystemError",
    "FlushResult",
    "FormatCodec",
    "GenerationState",
    "GenerationTimeout",
    "GeometryPlan",
    "ImageFormat",
    "ImageVersionConfig",
    "ImageVersionError",
    "InvalidInput",
    "Rasterizer",
    "Sharpener",
    "SourceImage",
    "SourceNotFound",
    "SourceUnreadable",
    "ThumbnailService",
    "TransparencyHandler",
    "TransparencyKind",
    "TransparencyState",
    "UnsupportedFormat",
    "VersionResult",
    "codec_for",
    "find_sharpness",
    "format_path",
    "html_to_rgb",
    "plan_geometry",
]
