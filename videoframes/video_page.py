from __future__ import annotations

import os
import tempfile

from PyQt6.QtCore import QUrl

from . import logger
from .errors import PageGenerationError
from .video_websites import VIDEO_ID_GROUP, VIDEO_ID_PLACEHOLDER, WebsitePattern

PAGE_HEAD = "<html>\n<head></head>\n<body>\n"
PAGE_TAIL = "\n</body>\n</html>"
PAGE_PREFIX = "videoframes-"
PAGE_SUFFIX = ".html"


def extract_video_id(website: WebsitePattern, url_text: str) -> str:
    match = website.search(url_text)
    if match is None:
        raise PageGenerationError(
            f"{website.id}: text does not match the site pattern", website.id
        )
    try:
        video_id = match.group(VIDEO_ID_GROUP)
    except IndexError:
        video_id = None
    if not video_id:
        raise PageGenerationError(f"{website.id}: no video id captured", website.id)
    return video_id


def render_page(embed: str) -> str:
    return PAGE_HEAD + embed + PAGE_TAIL


def write_page(html: str, directory: str | None = None) -> str:
    """Persist ``html`` to a fresh temporary file and return its path."""
    fd, path = tempfile.mkstemp(prefix=PAGE_PREFIX, suffix=PAGE_SUFFIX, dir=directory or None)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(html)
    except OSError:
        try:
            os.unlink(path)
        except OSError:
            pass
        raise
    return path


def page_path(uri: str) -> str:
    return QUrl(uri).toLocalFile()


def generate_page(
    website: WebsitePattern, url_text: str, *, directory: str | None = None
) -> str:
    """Build the standalone player page for a matched link.

    The text is matched again only to pull out the ``video_id`` capture; the
    caller already knows it is a link for ``website``. Returns a ``file://``
    URI. The file is left in place for the temp directory policy to reap.
    """
    video_id = extract_video_id(website, url_text)
    embed = website.embed.replace(VIDEO_ID_PLACEHOLDER, video_id)
    try:
        path = write_page(render_page(embed), directory)
    except OSError as exc:
        raise PageGenerationError(
            f"{website.id}: cannot write player page: {exc}", website.id
        ) from exc
    logger.info("new video found", "site=", website.id, "id=", video_id)
    logger.dbg("player page", path)
    return QUrl.fromLocalFile(path).toString()
