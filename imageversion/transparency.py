"""Transparency detection and canvas seeding for palette and alpha sources."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from PIL import Image

from imageversion.models import RGB, DerivativeSpec, ImageFormat

RGBA = tuple[int, int, int, int]


class TransparencyKind(str, Enum):
    """How a source stores transparency."""

    NONE = "none"
    INDEXED = "indexed"
    ALPHA = "alpha"


@dataclass(frozen=True)
class TransparencyState:
    """Transparency of one source, as seen by the destination canvas."""

    kind: TransparencyKind
    color: RGB = (0, 0, 0)

    @property
    def is_transparent(self) -> bool:
        return self.kind is not TransparencyKind.NONE

    @property
    def canvas_mode(self) -> str:
        return "RGBA" if self.is_transparent else "RGB"

    @property
    def transparent_fill(self) -> RGBA:
        return (*self.color, 0)


@dataclass(frozen=True)
class LetterboxFill:
    """Background for the letterbox area and how content lands on it."""

    color: RGB | RGBA
    blend: bool


class TransparencyHandler:
    """Keeps gif/png transparency intact through resizing and letterboxing."""

    def inspect(self, image: Image.Image, fmt: ImageFormat) -> TransparencyState:
        """Find the transparent index colour or alpha channel of a source."""
        if not fmt.supports_transparency:
            return TransparencyState(TransparencyKind.NONE)

        trns = image.info.get("transparency")
        if isinstance(trns, int) and image.mode == "P":
            palette = image.getpalette() or []
            rgb = palette[trns * 3 : trns * 3 + 3]
            if len(rgb) == 3:
                return TransparencyState(TransparencyKind.INDEXED, tuple(rgb))  # type: ignore[arg-type]
            return TransparencyState(TransparencyKind.INDEXED)
        if isinstance(trns, int) and image.mode == "L":
            return TransparencyState(TransparencyKind.INDEXED, (trns, trns, trns))
        if isinstance(trns, tuple) and len(trns) == 3 and image.mode == "RGB":
            return TransparencyState(TransparencyKind.INDEXED, trns)  # type: ignore[arg-type]

        if fmt is ImageFormat.PNG:
            # without a transparent index png keeps (or gains) an alpha channel
            return TransparencyState(TransparencyKind.ALPHA)
        return TransparencyState(TransparencyKind.NONE)

    def prepare_source(self, image: Image.Image, state: TransparencyState) -> Image.Image:
        """Convert the decoded source to the canvas mode."""
        if image.mode == state.canvas_mode:
            return image
        return image.convert(state.canvas_mode)

    def seed(self, size: tuple[int, int], state: TransparencyState) -> Image.Image:
        """Allocate a canvas already flooded with the transparent colour."""
        if state.is_transparent:
            return Image.new("RGBA", size, state.transparent_fill)
        return Image.new("RGB", size, (0, 0, 0))

    def letterbox_fill(
        self, spec: DerivativeSpec, state: TransparencyState
    ) -> LetterboxFill | None:
        """Decide the letterbox background, or None when not letterboxing.

        Transparent sources get a transparent letterbox unless the colour is
        forced, in which case the colour also shows through translucent pixels.
        """
        if spec.letterbox is None:
            return None
        if not state.is_transparent:
            return LetterboxFill(color=spec.letterbox, blend=False)
        if spec.force_letterbox_color:
            return LetterboxFill(color=(*spec.letterbox, 255), blend=True)
        return LetterboxFill(color=state.transparent_fill, blend=False)
