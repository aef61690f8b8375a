"""Exceptions raised while resolving, generating or flushing derivatives."""

from __future__ import annotations


class ImageVersionError(Exception):
    """Base class for all derivative errors."""


class InvalidInput(ImageVersionError):
    """The request is malformed (missing source path, bad size)."""


class UnsupportedFormat(ImageVersionError):
    """The source extension is not one of jpg, jpeg, gif or png."""


class SourceNotFound(ImageVersionError):
    """The source file does not exist under the content root."""


class SourceUnreadable(ImageVersionError):
    """The source file exists but cannot be decoded as an image."""


class FilesystemError(ImageVersionError):
    """A mkdir, delete or write on the cache failed."""


class GenerationTimeout(ImageVersionError):
    """The caller's deadline passed before the derivative was written."""
