from __future__ import annotations

import itertools
from typing import Iterator

from PyQt6.QtGui import QTextCursor

from . import logger
from .errors import RegistryError
from .video_transcript import TranscriptDocument
from .video_websites import WebsitePattern


class ButtonInfo:
    """Everything a video toggle button needs to know about its link.

    ``anchor`` has left gravity: it sits just before the button and stays
    there when content is added right after it. It belongs to this entry and
    is handed back to the document by ``release()``.

    ``child_key`` names the button inside the document once it is embedded.
    The button character is what edits must line up with, so
    ``button_position()`` follows it and pulls the anchor back onto it.
    """

    __slots__ = ("document", "website", "matched_text", "is_end_of_text", "child_key", "_anchor")

    def __init__(
        self,
        document: TranscriptDocument,
        anchor: QTextCursor,
        website: WebsitePattern,
        matched_text: str,
        is_end_of_text: bool,
    ) -> None:
        self.document = document
        self.website = website
        self.matched_text = matched_text
        self.is_end_of_text = is_end_of_text
        self.child_key: int | None = None
        self._anchor: QTextCursor | None = anchor

    @property
    def anchor(self) -> QTextCursor:
        if self._anchor is None:
            raise RegistryError("button info used after release")
        return self._anchor

    @property
    def released(self) -> bool:
        return self._anchor is None

    def position(self) -> int:
        return self.document.position_of(self.anchor)

    def button_position(self) -> int | None:
        """Current position of the button, None if its character is gone."""
        anchor = self.anchor
        if self.child_key is None:
            return anchor.position()
        live = self.document.live_child_position(self.child_key)
        if live is not None and live != anchor.position():
            logger.dbg("anchor realigned", self.child_key, anchor.position(), "->", live)
            anchor.setPosition(live)
        return live

    def release(self) -> None:
        if self._anchor is None:
            return
        self.document.release_marker(self._anchor)
        self._anchor = None

    def __repr__(self) -> str:
        pos = "released" if self._anchor is None else self._anchor.position()
        return f"<ButtonInfo {self.website.id} {self.matched_text!r} at {pos}>"


def create_entry(
    document: TranscriptDocument,
    position: int,
    website: WebsitePattern,
    text: str,
    length: int,
) -> ButtonInfo:
    """Build (but do not register) the info for a button about to go at ``position``."""
    anchor = document.create_marker(position, left_gravity=True)
    return ButtonInfo(
        document=document,
        anchor=anchor,
        website=website,
        matched_text=str(text)[: max(0, int(length))],
        is_end_of_text=document.is_end(position),
    )


class ButtonRegistry:
    """Handle -> ButtonInfo map for one plugin instance.

    Every live button has exactly one entry and every entry belongs to a live
    button, so a failed lookup is a bug and raises ``RegistryError``.
    """

    def __init__(self) -> None:
        self._entries: dict[int, ButtonInfo] = {}
        self._handles = itertools.count(1)
        self._destroyed = False

    def _check_alive(self) -> None:
        if self._destroyed:
            raise RegistryError("button registry used after destroy")

    def next_handle(self) -> int:
        self._check_alive()
        return next(self._handles)

    def register(self, handle: int, info: ButtonInfo) -> None:
        self._check_alive()
        if handle in self._entries:
            raise RegistryError(f"button {handle} is already registered", handle)
        self._entries[handle] = info
        logger.trace("registered", handle, info)

    def lookup(self, handle: int) -> ButtonInfo:
        self._check_alive()
        try:
            return self._entries[handle]
        except KeyError:
            raise RegistryError(f"no button registered for handle {handle}", handle) from None

    def remove_entry(self, handle: int) -> None:
        self._check_alive()
        try:
            info = self._entries.pop(handle)
        except KeyError:
            raise RegistryError(f"no button registered for handle {handle}", handle) from None
        info.release()
        logger.trace("unregistered", handle)

    def handles(self) -> list[int]:
        self._check_alive()
        return list(self._entries.keys())

    def items(self) -> Iterator[tuple[int, ButtonInfo]]:
        self._check_alive()
        return iter(list(self._entries.items()))

    def __contains__(self, handle: object) -> bool:
        return handle in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        self._check_alive()
        count = len(self._entries)
        for info in self._entries.values():
            info.release()
        self._entries.clear()
        self._destroyed = True
        logger.dbg("registry destroyed", "entries=", count)
