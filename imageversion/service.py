"""On-demand derivative generation backed by the filesystem cache."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Any

from imageversion.cache import DerivativeCache
from imageversion.config import ImageVersionConfig
from imageversion.encoder import Encoder, codec_for
from imageversion.errors import (
    FilesystemError,
    GenerationTimeout,
    ImageVersionError,
    SourceNotFound,
)
from imageversion.geometry import plan_geometry
from imageversion.models import DerivativeSpec, ImageFormat, SourceImage
from imageversion.rasterizer import Rasterizer
from imageversion.sharpen import Sharpener
from imageversion.transparency import TransparencyHandler

logger = logging.getLogger(__name__)


class GenerationState(str, Enum):
    """Pipeline stages a request passes through."""

    IDLE = "idle"
    SPEC_RESOLVED = "spec_resolved"
    CACHE_CHECKED = "cache_checked"
    CACHE_HIT = "cache_hit"
    NEEDS_GENERATE = "needs_generate"
    PLANNED = "planned"
    RASTERIZED = "rasterized"
    SHARPENED = "sharpened"
    ENCODED = "encoded"
    DONE = "done"
    REJECTED = "rejected"


class VersionResult:
    """Outcome of a generate request."""

    def __init__(self) -> None:
        self.path: str | None = None
        self.cache_hit: bool = False
        self.error: ImageVersionError | None = None
        self.states: list[GenerationState] = [GenerationState.IDLE]

    @property
    def ok(self) -> bool:
        return self.error is None and self.path is not None

    @property
    def state(self) -> GenerationState:
        return self.states[-1]

    def advance(self, state: GenerationState) -> None:
        self.states.append(state)

    def reject(self, error: ImageVersionError) -> VersionResult:
        self.error = error
        self.path = None
        self.advance(GenerationState.REJECTED)
        return self


class FlushResult:
    """Outcome of a flush request."""

    def __init__(self, removed: bool = False, error: ImageVersionError | None = None) -> None:
        self.removed = removed
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None


class _Deadline:
    def __init__(self, seconds: float | None) -> None:
        self._expires = None if seconds is None else time.monotonic() + seconds

    def remaining(self) -> float | None:
        if self._expires is None:
            return None
        return max(self._expires - time.monotonic(), 0.0)

    def check(self, stage: GenerationState) -> None:
        if self._expires is not None and time.monotonic() > self._expires:
            raise GenerationTimeout(f"Deadline passed after {stage.value}")


class ThumbnailService:
    """Generates, caches and flushes size-specific derivatives of images."""

    def __init__(
        self,
        config: ImageVersionConfig | None = None,
        cache: DerivativeCache | None = None,
        rasterizer: Rasterizer | None = None,
        sharpener: Sharpener | None = None,
        encoder: Encoder | None = None,
        transparency: TransparencyHandler | None = None,
    ) -> None:
        self.config = config or ImageVersionConfig()
        self.cache = cache or DerivativeCache(self.config.content_root)
        self.transparency = transparency or TransparencyHandler()
        self.rasterizer = rasterizer or Rasterizer(
            self.transparency, resample=self.config.resample_filter
        )
        self.sharpener = sharpener or Sharpener()
        self.encoder = encoder or Encoder()

    def generate(
        self,
        source_path: str,
        size: Sequence[int] | None = None,
        quality: Any = None,
        crop: bool | None = None,
        letterbox: Any = None,
        force_letterbox_color: bool = False,
        sharpen: bool | None = None,
        deadline: float | None = None,
    ) -> VersionResult:
        """Return the path of a fresh derivative, generating it if needed.

        The derivative is reused while it is not older than the source. Any
        argument left as None takes the configured default.

        Args:
            source_path: Source image relative to the content root
            size: (width, height); a 0 side is derived from the source aspect
            quality: 0-100, out-of-range values are clamped
            crop: Cover-fit and cut the overflow instead of contain-fit
            letterbox: RGB triple or hex colour to pad to the exact size
            force_letterbox_color: Paint the letterbox on transparent sources
            sharpen: Sharpen jpeg derivatives
            deadline: Seconds the whole request may take

        Returns:
            VersionResult whose ``path`` is root-relative with forward
            slashes, or whose ``error`` says why the request was rejected
        """
        result = VersionResult()
        timer = _Deadline(deadline)
        try:
            spec = DerivativeSpec.from_request(
                size=self.config.default_size if size is None else size,
                quality=self.config.default_quality if quality is None else quality,
                crop=self.config.default_crop if crop is None else crop,
                letterbox=letterbox,
                force_letterbox_color=force_letterbox_color,
                sharpen=self.config.default_sharpen if sharpen is None else sharpen,
            )
            source = self.cache.resolve_source(source_path)
            fmt = ImageFormat.from_extension(source.suffix)
            if not source.is_file():
                raise SourceNotFound(f"Source image not found: {source_path}")
            result.advance(GenerationState.SPEC_RESOLVED)

            entry = self.cache.lookup(source, spec.width, spec.height)
            result.advance(GenerationState.CACHE_CHECKED)
            if entry is None:
                timeout = timer.remaining()
                if timeout is None:
                    timeout = self.config.lock_timeout
                with self.cache.lock(source, spec.width, spec.height, timeout):
                    # another request may have written it while we waited
                    entry = self.cache.lookup(source, spec.width, spec.height)
                    if entry is None:
                        dest = self._generate(source, fmt, spec, result, timer)
                        result.path = self.cache.public_path(dest)
                        logger.info(f"Generated {spec.bucket} derivative of {source_path}")

            if entry is not None:
                result.cache_hit = True
                result.path = self.cache.public_path(entry.path)
                result.advance(GenerationState.CACHE_HIT)
                logger.debug(f"Cache hit for {source_path} at {spec.bucket}")

            result.advance(GenerationState.DONE)
            return result

        except ImageVersionError as e:
            logger.warning(f"Rejected derivative of {source_path!r}: {e}")
            return result.reject(e)
        except OSError as e:
            logger.warning(f"Filesystem error for {source_path!r}: {e}")
            return result.reject(FilesystemError(str(e)))

    def _generate(
        self,
        source: Path,
        fmt: ImageFormat,
        spec: DerivativeSpec,
        result: VersionResult,
        timer: _Deadline,
    ) -> Path:
        result.advance(GenerationState.NEEDS_GENERATE)
        codec = codec_for(fmt)
        image = codec.decode(source)
        info = SourceImage(
            path=source,
            width=image.width,
            height=image.height,
            format=fmt,
            mtime=source.stat().st_mtime,
        )

        plan = plan_geometry(info.width, info.height, spec)
        result.advance(GenerationState.PLANNED)
        timer.check(GenerationState.PLANNED)

        state = self.transparency.inspect(image, fmt)
        canvas = self.rasterizer.render(image, plan, state, spec)
        result.advance(GenerationState.RASTERIZED)
        timer.check(GenerationState.RASTERIZED)

        if spec.sharpen and fmt is ImageFormat.JPEG:
            canvas = self.sharpener.apply(
                canvas, fmt, plan.source_crop[2], plan.content_size[0]
            )
            result.advance(GenerationState.SHARPENED)
            timer.check(GenerationState.SHARPENED)

        bucket = self.cache.ensure_bucket(self.cache.bucket_dir(source, spec.width, spec.height))
        dest = self.encoder.write(canvas, fmt, bucket / source.name, spec.quality)
        result.advance(GenerationState.ENCODED)
        return dest

    def flush(
        self,
        source_path: str,
        size: Sequence[int] | None = None,
        clear_all: bool = False,
    ) -> FlushResult:
        """Delete one derivative, or with ``clear_all`` its whole size bucket."""
        try:
            spec = DerivativeSpec.from_request(
                size=self.config.default_size if size is None else size
            )
            source = self.cache.resolve_source(source_path)
            with self.cache.lock(source, spec.width, spec.height, self.config.lock_timeout):
                removed = self.cache.flush_one(source, spec.width, spec.height)
                if clear_all:
                    removed = self.cache.flush_all(source, spec.width, spec.height) or removed
            return FlushResult(removed=removed)
        except ImageVersionError as e:
            logger.warning(f"Flush failed for {source_path!r}: {e}")
            return FlushResult(error=e)
