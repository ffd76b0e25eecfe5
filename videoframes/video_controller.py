from __future__ import annotations

import os
from typing import Any, Union

from PyQt6.QtWidgets import QTextEdit, QWidget

from . import logger
from .errors import RegistryError
from .video_config import default_config
from .video_page import generate_page, page_path
from .video_registry import ButtonRegistry, create_entry
from .video_toggle import (
    OpenExternal,
    VideoToggle,
    VideoToggleButton,
    VideoWebView,
    ViewFactory,
    open_external_url,
)
from .video_transcript import TranscriptDocument
from .video_websites import WebsitePattern, load_websites

DocumentLike = Union[TranscriptDocument, QTextEdit]


class VideoFrames:
    """One plugin instance: the buttons it placed and the pages it wrote.

    The host creates one of these and passes it wherever links are found.
    Transcripts may be given either as ``TranscriptDocument`` or as the
    ``QTextEdit`` showing the conversation.
    """

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        open_external: OpenExternal | None = None,
        view_factory: ViewFactory | None = None,
        page_directory: str | None = None,
    ) -> None:
        self.config = config if config is not None else default_config()
        self.registry = ButtonRegistry()
        self.websites: list[WebsitePattern] = load_websites(self.config)
        self._open_external = open_external or open_external_url
        self._view_factory = view_factory or self._make_web_view
        self._page_directory = page_directory or self.config.get("page_directory") or None
        self._buttons: dict[int, VideoToggleButton] = {}
        self._transcripts: list[TranscriptDocument] = []
        self._pages: list[str] = []
        self._destroyed = False

    def _check_alive(self) -> None:
        if self._destroyed:
            raise RegistryError("video frames used after destroy")

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def transcript(self, document: DocumentLike) -> TranscriptDocument:
        if isinstance(document, TranscriptDocument):
            transcript = document
        elif isinstance(document, QTextEdit):
            transcript = TranscriptDocument.for_view(document)
        else:
            raise TypeError(f"not a transcript: {type(document).__name__}")
        if transcript not in self._transcripts:
            transcript.on_child_lost(self._on_child_lost)
            self._transcripts.append(transcript)
        return transcript

    def _make_web_view(self, uri: str) -> QWidget:
        return VideoWebView(
            uri,
            self._open_external,
            width=int(self.config.get("player_width", 445)),
            height=int(self.config.get("player_height", 364)),
        )

    # Pages

    def generate_page(self, website: WebsitePattern, url: str) -> str:
        uri = generate_page(website, url, directory=self._page_directory)
        self._pages.append(page_path(uri))
        return uri

    @property
    def pages(self) -> list[str]:
        return list(self._pages)

    # Buttons

    def insert_button(
        self,
        document: DocumentLike,
        position: int,
        website: WebsitePattern,
        text: str,
        length: int,
    ) -> int:
        """Put a collapsed toggle button at ``position``; returns its handle."""
        self._check_alive()
        transcript = self.transcript(document)
        handle = self.registry.next_handle()
        button = VideoToggleButton(
            handle,
            collapsed_icon=str(self.config.get("collapsed_icon") or "go-next"),
            expanded_icon=str(self.config.get("expanded_icon") or "go-down"),
            icon_size=int(self.config.get("button_icon_size", 16)),
        )
        button.toggle_state = VideoToggle(
            handle,
            self.registry,
            self.generate_page,
            self._view_factory,
            indicator=button.set_expanded,
        )

        info = create_entry(transcript, position, website, text, length)
        self.registry.register(handle, info)
        info.child_key = transcript.insert_child(position, button)
        self._buttons[handle] = button
        logger.dbg("button inserted", handle, info)
        return handle

    def button(self, handle: int) -> VideoToggleButton:
        self._check_alive()
        try:
            return self._buttons[handle]
        except KeyError:
            raise RegistryError(f"no button for handle {handle}", handle) from None

    def toggle_state(self, handle: int) -> VideoToggle:
        state = self.button(handle).toggle_state
        if state is None:
            raise RegistryError(f"button {handle} has no toggle state", handle)
        return state

    def is_expanded(self, handle: int) -> bool:
        return self.toggle_state(handle).expanded

    def handles(self) -> list[int]:
        self._check_alive()
        return self.registry.handles()

    def toggle(self, handle: int) -> None:
        """Flip a button as if it had been clicked; errors reach the caller."""
        button = self.button(handle)
        state = self.toggle_state(handle)
        try:
            if state.expanded:
                state.deactivate()
            else:
                state.activate()
        finally:
            self._sync(button)

    def remove_button(self, handle: int) -> None:
        button = self.button(handle)
        info = self.registry.lookup(handle)
        state = button.toggle_state
        if state is not None and state.expanded:
            state.deactivate()
            self._sync(button)

        position = info.button_position()
        if position is not None:
            info.document.delete_range(position, position + 1)
        else:
            # Someone else already removed the character; only the widget is ours.
            logger.warn("button lost its place, transcript left as is", handle)
            if info.child_key is not None:
                info.document.release_child(info.child_key)
        self.registry.remove_entry(handle)
        del self._buttons[handle]
        button.toggle_state = None
        logger.dbg("button removed", handle)

    def _sync(self, button: VideoToggleButton) -> None:
        try:
            button.sync_checked()
        except RuntimeError:
            # Widget already deleted together with its lost character.
            pass

    def _on_child_lost(self, transcript: TranscriptDocument, key: int) -> None:
        if self._destroyed:
            return
        for handle, info in self.registry.items():
            if info.document is not transcript:
                continue
            state = self._buttons[handle].toggle_state
            if info.child_key == key:
                if state is not None and state.expanded and state.view_key is not None:
                    transcript.release_child(state.view_key)
                    state.forget_view()
                self.registry.remove_entry(handle)
                self._buttons.pop(handle).toggle_state = None
                logger.warn("button dropped with its transcript text", handle)
                return
            if state is not None and state.view_key == key:
                state.forget_view()
                self._sync(self._buttons[handle])
                return

    def detach(self, document: DocumentLike) -> list[int]:
        """Remove every button of one transcript, e.g. when its window closes."""
        self._check_alive()
        transcript = self.transcript(document)
        removed: list[int] = []
        for handle, info in self.registry.items():
            if info.document is transcript:
                self.remove_button(handle)
                removed.append(handle)
        transcript.close()
        self._transcripts.remove(transcript)
        logger.dbg("transcript detached", "buttons=", len(removed))
        return removed

    def destroy(self) -> None:
        self._check_alive()
        for handle in list(self._buttons.keys()):
            try:
                self.remove_button(handle)
            except RuntimeError as exc:
                # The host already deleted the transcript widget.
                logger.dbg("button removal skipped", handle, str(exc))
                self._buttons.pop(handle, None)
        self.registry.destroy()
        for transcript in self._transcripts:
            try:
                transcript.close()
            except RuntimeError:
                pass
        self._transcripts = []
        if self.config.get("remove_pages_on_destroy", True):
            self._remove_pages()
        self._destroyed = True
        logger.info("video frames destroyed")

    def _remove_pages(self) -> None:
        for path in self._pages:
            try:
                os.unlink(path)
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warn("page not removed", path, str(exc))
        self._pages = []
