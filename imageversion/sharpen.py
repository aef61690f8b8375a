"""Resize-aware sharpening for jpeg derivatives."""

from __future__ import annotations

import logging
import math

from PIL import Image, ImageFilter

from imageversion.models import ImageFormat

logger = logging.getLogger(__name__)

# quadratic fit of sharpness against the width scaled to a 750px reference
_SHARP_A = 52
_SHARP_B = -0.27810650887573124
_SHARP_C = 0.00047337278106508946


def find_sharpness(original_width: int, final_width: int) -> int:
    """Sharpness for a resize from ``original_width`` down to ``final_width``."""
    final = final_width * (750.0 / original_width)
    result = _SHARP_A + _SHARP_B * final + _SHARP_C * final * final
    return max(math.floor(result + 0.5), 0)


def sharpen_kernel(sharpness: int) -> ImageFilter.Kernel:
    """3x3 kernel whose weights sum to ``sharpness``, used as the divisor."""
    return ImageFilter.Kernel(
        (3, 3),
        [
            -1, -2, -1,
            -2, sharpness + 12, -2,
            -1, -2, -1,
        ],
        scale=sharpness,
        offset=0,
    )


class Sharpener:
    """Applies the sharpening convolution where it is safe to do so."""

    def apply(
        self,
        image: Image.Image,
        fmt: ImageFormat,
        original_width: int,
        final_width: int,
    ) -> Image.Image:
        # gif and png are left alone, sharpening breaks their transparency
        if fmt is not ImageFormat.JPEG:
            return image

        sharpness = find_sharpness(original_width, final_width)
        if sharpness == 0:
            logger.debug(f"Skipping sharpen for {original_width}px -> {final_width}px")
            return image

        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        return image.filter(sharpen_kernel(sharpness))
