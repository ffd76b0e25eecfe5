from __future__ import annotations

from typing import Any

from . import logger
from .errors import LifecycleError, PageGenerationError, RegistryError, VideoFramesError
from .video_config import load_video_config
from .video_controller import VideoFrames
from .video_scanner import find_video_links, insert_buttons_for_message
from .video_websites import WebsitePattern, find_website, load_websites
from .version import __version__  # noqa: F401

__all__ = [
    "LifecycleError",
    "PageGenerationError",
    "RegistryError",
    "VideoFrames",
    "VideoFramesError",
    "WebsitePattern",
    "destroy",
    "find_video_links",
    "find_website",
    "generate_page",
    "init",
    "insert_button",
    "insert_buttons_for_message",
    "instance",
    "load_websites",
    "process_message",
    "remove_button",
    "toggle",
]

_frames: VideoFrames | None = None


def init(config: dict[str, Any] | None = None, **kwargs: Any) -> VideoFrames:
    """Plugin load: build the one VideoFrames instance the host talks to."""
    global _frames
    if _frames is not None:
        raise LifecycleError("videoframes is already initialised")
    cfg = config if config is not None else load_video_config()
    logger.configure(
        debug_enabled=cfg.get("debug_enabled", False),
        level=cfg.get("log_level", "info"),
        module_logs=cfg.get("module_logs"),
        module_levels=cfg.get("module_levels"),
    )
    _frames = VideoFrames(cfg, **kwargs)
    logger.info("videoframes loaded", __version__)
    return _frames


def destroy() -> None:
    """Plugin unload: drop every button and the registry with it."""
    global _frames
    if _frames is None:
        raise LifecycleError("videoframes is not initialised")
    frames, _frames = _frames, None
    frames.destroy()


def instance() -> VideoFrames:
    if _frames is None:
        raise LifecycleError("videoframes is not initialised")
    return _frames


def insert_button(document, position: int, website: WebsitePattern, text: str, length: int) -> int:
    return instance().insert_button(document, position, website, text, length)


def remove_button(handle: int) -> None:
    instance().remove_button(handle)


def toggle(handle: int) -> None:
    instance().toggle(handle)


def generate_page(website: WebsitePattern, url: str) -> str:
    return instance().generate_page(website, url)


def process_message(document, start: int, text: str) -> list[int]:
    """Host hook for a message just written to a transcript."""
    return insert_buttons_for_message(instance(), document, start, text)
