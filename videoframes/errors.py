from __future__ import annotations


class VideoFramesError(Exception):
    """Base class for every error raised by the plugin."""


class LifecycleError(VideoFramesError):
    """init/destroy called out of order."""


class RegistryError(VideoFramesError):
    """A button handle and the registry disagree.

    Any of these means the button/registry pairing was broken somewhere else,
    so callers are not expected to recover from it.
    """

    def __init__(self, message: str, handle: int | None = None) -> None:
        super().__init__(message)
        self.handle = handle


class PageGenerationError(VideoFramesError):
    """The embed page for a matched link could not be produced."""

    def __init__(self, message: str, site_id: str = "") -> None:
        super().__init__(message)
        self.site_id = site_id
