from __future__ import annotations

from typing import Iterable, NamedTuple

from . import logger
from .video_websites import WebsitePattern


class VideoLink(NamedTuple):
    start: int
    end: int
    website: WebsitePattern

    @property
    def length(self) -> int:
        return self.end - self.start


def find_video_links(text: str, websites: Iterable[WebsitePattern]) -> list[VideoLink]:
    """Non-overlapping video links in ``text``, in text order.

    Where two sites match overlapping spans the earlier one wins, and the
    site listed first wins a tie.
    """
    found: list[VideoLink] = []
    for site in websites:
        for match in site.compiled().finditer(text):
            if match.end() > match.start():
                found.append(VideoLink(match.start(), match.end(), site))
    found.sort(key=lambda link: link.start)
    links: list[VideoLink] = []
    last_end = -1
    for link in found:
        if link.start < last_end:
            continue
        links.append(link)
        last_end = link.end
    return links


def insert_buttons_for_message(frames, document, start: int, text: str, websites=None) -> list[int]:
    """Add a toggle button after every video link of a displayed message.

    ``text`` is the message as it appears in the transcript from ``start``
    on. Buttons go in back to front so the offsets of links not yet handled
    stay valid.
    """
    if not frames.config.get("enabled", True):
        return []
    sites = list(websites) if websites is not None else frames.websites
    links = find_video_links(text, sites)
    handles: list[int] = []
    for link in reversed(links):
        handle = frames.insert_button(
            document,
            start + link.end,
            link.website,
            text[link.start:],
            link.length,
        )
        handles.append(handle)
    handles.reverse()
    if handles:
        logger.dbg("message scanned", "links=", len(handles))
    return handles
