"""Crop, resample and paste a source onto the derivative canvas."""

from __future__ import annotations

from PIL import Image

from imageversion.geometry import GeometryPlan
from imageversion.models import DerivativeSpec
from imageversion.transparency import TransparencyHandler, TransparencyState


class Rasterizer:
    """Draws the derivative canvas described by a GeometryPlan."""

    def __init__(
        self,
        transparency: TransparencyHandler | None = None,
        resample: Image.Resampling = Image.Resampling.BOX,
    ) -> None:
        if resample == Image.Resampling.NEAREST:
            raise ValueError("nearest-neighbour resampling is not supported")
        self.transparency = transparency or TransparencyHandler()
        self.resample = resample

    def render(
        self,
        image: Image.Image,
        plan: GeometryPlan,
        state: TransparencyState,
        spec: DerivativeSpec,
    ) -> Image.Image:
        """Render the derivative canvas for ``image``.

        Args:
            image: Decoded source image
            plan: Geometry computed for the source and spec
            state: Transparency of the source
            spec: Requested derivative (letterbox colour and forcing)

        Returns:
            A new RGB or RGBA image of ``plan.canvas_size``
        """
        source = self.transparency.prepare_source(image, state)
        canvas = self.transparency.seed(plan.canvas_size, state)

        fill = self.transparency.letterbox_fill(spec, state)
        if fill is not None:
            canvas.paste(fill.color, (0, 0, *canvas.size))

        content = self._content(source, plan)
        if fill is not None and fill.blend:
            canvas.alpha_composite(content, dest=plan.paste_offset)
        else:
            canvas.paste(content, plan.paste_offset)
        return canvas

    def _content(self, source: Image.Image, plan: GeometryPlan) -> Image.Image:
        """Resample the source region to the content size."""
        x, y, w, h = plan.source_crop
        box = (x, y, x + w, y + h)
        if not plan.needs_intermediate:
            return source.resize(plan.content_size, self.resample, box=box)

        scaled = source.resize(plan.scaled_size, self.resample, box=box)
        cx, cy = plan.crop_offset
        cw, ch = plan.content_size
        return scaled.crop((cx, cy, cx + cw, cy + ch))
