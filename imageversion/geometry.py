"""Crop, fit and letterbox math for a derivative."""

from __future__ import annotations

from dataclasses import dataclass

from imageversion.models import DerivativeSpec

Box = tuple[int, int, int, int]
Size = tuple[int, int]
Point = tuple[int, int]


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


@dataclass(frozen=True)
class GeometryPlan:
    """How a source maps onto the derivative canvas.

    ``source_crop`` is the (x, y, w, h) region read from the source. It is
    scaled to ``scaled_size``; when that is larger than ``content_size`` the
    content is the window at ``crop_offset`` inside the scaled image. The
    content is pasted onto a ``canvas_size`` canvas at ``paste_offset``.
    """

    source_crop: Box
    scaled_size: Size
    crop_offset: Point
    content_size: Size
    canvas_size: Size
    paste_offset: Point
    crop: bool
    letterbox: bool

    @property
    def needs_intermediate(self) -> bool:
        """True when the content is cut out of an overscaled copy."""
        return self.scaled_size != self.content_size


def plan_geometry(width: int, height: int, spec: DerivativeSpec) -> GeometryPlan:
    """Plan the derivative of a ``width`` x ``height`` source.

    Requested sides are clamped to the source (no upscaling); a zero side is
    derived from the other one. Square requests center-crop the source,
    other requests contain-fit or, with ``spec.crop``, cover-fit and cut the
    overflow. Letterboxing keeps the canvas at the requested size and
    centers the content in it.
    """
    src_w = max(int(width), 1)
    src_h = max(int(height), 1)
    req_w, req_h = max(spec.width, 0), max(spec.height, 0)

    crop = spec.crop
    if req_w > src_w and req_h > src_h:
        crop = False

    w = min(req_w, src_w)
    h = min(req_h, src_h)
    if w and not h:
        h = max(int(src_h * (w / src_w)), 1)
    elif h and not w:
        w = max(int(src_w * (h / src_h)), 1)
    elif not w and not h:
        w, h = src_w, src_h

    source_crop: Box = (0, 0, src_w, src_h)
    scaled: Size = (w, h)
    crop_offset: Point = (0, 0)

    if w == h:
        side = min(src_w, src_h)
        source_crop = (
            _ceil_div(src_w - side, 2),
            _ceil_div(src_h - side, 2),
            side,
            side,
        )
    elif not crop:
        # contain: shrink whichever side overflows the source aspect
        if w * src_h > h * src_w:
            w = _ceil_div(h * src_w, src_h)
        else:
            h = _ceil_div(w * src_h, src_w)
        scaled = (w, h)
    else:
        # cover: overscale the short side, then cut the window out of the middle
        if w * src_h > h * src_w:
            scaled = (w, _ceil_div(w * src_h, src_w))
        else:
            scaled = (_ceil_div(h * src_w, src_h), h)
        crop_offset = (_ceil_div(scaled[0] - w, 2), _ceil_div(scaled[1] - h, 2))

    if spec.letterbox is not None:
        canvas: Size = (req_w or w, req_h or h)
        paste: Point = (_ceil_div(canvas[0] - w, 2), _ceil_div(canvas[1] - h, 2))
    else:
        canvas = (w, h)
        paste = (0, 0)

    return GeometryPlan(
        source_crop=source_crop,
        scaled_size=scaled,
        crop_offset=crop_offset,
        content_size=(w, h),
        canvas_size=canvas,
        paste_offset=paste,
        crop=crop,
        letterbox=spec.letterbox is not None,
    )
