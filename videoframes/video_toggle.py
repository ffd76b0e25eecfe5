from __future__ import annotations

import enum
from typing import Callable

from PyQt6.QtCore import QSize, QTimer, QUrl
from PyQt6.QtGui import QDesktopServices, QIcon
from PyQt6.QtWebEngineCore import QWebEnginePage
from PyQt6.QtWebEngineWidgets import QWebEngineView
from PyQt6.QtWidgets import QApplication, QStyle, QToolButton, QWidget

from . import logger
from .errors import RegistryError
from .video_registry import ButtonRegistry
from .video_websites import WebsitePattern

HANDLE_PROPERTY = "videoframes_handle"
POPUP_TIMEOUT_MS = 10000
PARAGRAPH_BREAK = "\u2029"

PageFactory = Callable[[WebsitePattern, str], str]
ViewFactory = Callable[[str], QWidget]
OpenExternal = Callable[[QUrl], object]


class ToggleState(enum.Enum):
    COLLAPSED = "collapsed"
    EXPANDED = "expanded"


def open_external_url(url: QUrl) -> bool:
    logger.info("open external", url.toString())
    return bool(QDesktopServices.openUrl(url))


def should_open_externally(url: QUrl, is_main_frame: bool, home: QUrl | None = None) -> bool:
    """Whether a navigation inside a player should go to the browser instead.

    The top frame only ever shows the generated player page (``home``), so
    any other page it is sent to, by a click, a script or a redirect, leaves
    the transcript. The player iframe below it navigates freely.
    """
    if not is_main_frame or url.isEmpty():
        return False
    if url.scheme() in ("about", "data"):
        return False
    if home is not None and not home.isEmpty():
        strip = QUrl.UrlFormattingOption.RemoveFragment
        if url.adjusted(strip) == home.adjusted(strip):
            return False
    return True


class _NewWindowPage(QWebEnginePage):
    """Stand-in page for popups: hands the first real URL to the host.

    It is dropped after that, when the popup closes itself, or once
    ``timeout_ms`` pass with nothing but blank pages loaded.
    """

    def __init__(self, open_external: OpenExternal, parent=None, timeout_ms: int = POPUP_TIMEOUT_MS) -> None:
        super().__init__(parent)
        self._open_external = open_external
        self.finished = False
        self.expiry = QTimer(self)
        self.expiry.setSingleShot(True)
        self.expiry.setInterval(max(0, int(timeout_ms)))
        self.expiry.timeout.connect(self.finish)
        self.windowCloseRequested.connect(self.finish)
        self.expiry.start()

    def finish(self) -> None:
        if self.finished:
            return
        self.finished = True
        self.expiry.stop()
        self.deleteLater()

    def acceptNavigationRequest(self, url, nav_type, is_main_frame) -> bool:
        if self.finished:
            return False
        if url.isEmpty() or url.scheme() in ("about", "data"):
            return True
        self._open_external(url)
        self.finish()
        return False


class VideoWebPage(QWebEnginePage):
    def __init__(self, open_external: OpenExternal, home: QUrl | None = None, parent=None) -> None:
        super().__init__(parent)
        self._open_external = open_external
        self.home = QUrl(home) if home is not None else QUrl()

    def acceptNavigationRequest(self, url, nav_type, is_main_frame) -> bool:
        if should_open_externally(url, is_main_frame, self.home):
            logger.dbg("navigation leaves the player", nav_type, url.toString())
            self._open_external(url)
            return False
        return super().acceptNavigationRequest(url, nav_type, is_main_frame)

    def createWindow(self, window_type):
        logger.dbg("player asked for a new window", window_type)
        return _NewWindowPage(self._open_external, self)


class VideoWebView(QWebEngineView):
    def __init__(
        self,
        uri: str,
        open_external: OpenExternal = open_external_url,
        width: int = 445,
        height: int = 364,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self.uri = uri
        url = QUrl(uri)
        self.setPage(VideoWebPage(open_external, url, self))
        self.setFixedSize(width, height)
        self.load(url)

    def release(self) -> None:
        # Dropping a view mid-load is fine; stop() just ends it sooner.
        try:
            self.stop()
        except RuntimeError:
            pass


def _state_icon(name: str, fallback: QStyle.StandardPixmap) -> QIcon:
    icon = QIcon.fromTheme(name)
    if icon.isNull():
        try:
            icon = QApplication.style().standardIcon(fallback)
        except Exception:
            icon = QIcon()
    return icon


class VideoToggleButton(QToolButton):
    """The small inline arrow placed right after a video link."""

    def __init__(
        self,
        handle: int,
        *,
        collapsed_icon: str = "go-next",
        expanded_icon: str = "go-down",
        icon_size: int = 16,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self.handle = handle
        self.toggle_state: VideoToggle | None = None
        self._collapsed_icon = _state_icon(collapsed_icon, QStyle.StandardPixmap.SP_ArrowRight)
        self._expanded_icon = _state_icon(expanded_icon, QStyle.StandardPixmap.SP_ArrowDown)
        self.setProperty(HANDLE_PROPERTY, handle)
        self.setObjectName("video-toggle-button")
        self.setCheckable(True)
        self.setChecked(False)
        self.setAutoRaise(True)
        self.setIconSize(QSize(icon_size, icon_size))
        self.setToolTip("Show video")
        self.set_expanded(False)
        self.setFixedSize(self.sizeHint())
        self.toggled.connect(self._on_toggled)

    def set_expanded(self, expanded: bool) -> None:
        try:
            self.setIcon(self._expanded_icon if expanded else self._collapsed_icon)
            self.setToolTip("Hide video" if expanded else "Show video")
        except Exception:
            logger.dbg("toggle icon swap failed", self.handle)

    def sync_checked(self) -> None:
        state = self.toggle_state
        expanded = state is not None and state.state is ToggleState.EXPANDED
        if self.isChecked() == expanded:
            return
        blocked = self.blockSignals(True)
        try:
            self.setChecked(expanded)
        finally:
            self.blockSignals(blocked)

    def _on_toggled(self, checked: bool) -> None:
        state = self.toggle_state
        if state is None:
            return
        try:
            if checked:
                state.activate()
            else:
                state.deactivate()
        except Exception as exc:
            logger.error("toggle failed", self.handle, repr(exc))
            self.sync_checked()
            raise


class VideoToggle:
    """Expand/collapse logic for one button, free of any event loop.

    COLLAPSED -> EXPANDED puts a newline, the player and (unless the button
    ends the transcript) another newline right after the button.
    EXPANDED -> COLLAPSED deletes exactly what was put there, but only while
    that content is still where it was put; otherwise just the player goes.
    """

    def __init__(
        self,
        handle: int,
        registry: ButtonRegistry,
        page_factory: PageFactory,
        view_factory: ViewFactory,
        indicator: Callable[[bool], None] | None = None,
    ) -> None:
        self.handle = handle
        self.state = ToggleState.COLLAPSED
        self._registry = registry
        self._page_factory = page_factory
        self._view_factory = view_factory
        self._indicator = indicator
        self._span = 0
        self.view: QWidget | None = None
        self.view_key: int | None = None

    @property
    def expanded(self) -> bool:
        return self.state is ToggleState.EXPANDED

    @property
    def span(self) -> int:
        return self._span

    def _show(self, expanded: bool) -> None:
        if self._indicator is not None:
            self._indicator(expanded)

    def activate(self) -> None:
        if self.state is ToggleState.EXPANDED:
            return
        info = self._registry.lookup(self.handle)
        document = info.document
        button_at = info.button_position()
        if button_at is None:
            raise RegistryError(f"button {self.handle} is no longer in its transcript", self.handle)
        position = button_at + 1

        self._show(True)
        try:
            uri = self._page_factory(info.website, info.matched_text)
            view = self._view_factory(uri)
        except Exception:
            self._show(False)
            raise

        at_end = document.is_end(position)
        document.insert_text(position, "\n")
        key = document.insert_child(position + 1, view)
        span = 2
        if not at_end:
            document.insert_text(position + 2, "\n")
            span = 3

        self.view = view
        self.view_key = key
        self._span = span
        self.state = ToggleState.EXPANDED
        logger.dbg("expanded", self.handle, "span=", span, "end=", at_end)

    def _span_intact(self, document, position: int) -> bool:
        if document.character_at(position) != PARAGRAPH_BREAK:
            return False
        if document.key_at(position + 1) != self.view_key:
            return False
        return self._span == 2 or document.character_at(position + 2) == PARAGRAPH_BREAK

    def deactivate(self) -> None:
        if self.state is ToggleState.COLLAPSED:
            return
        info = self._registry.lookup(self.handle)
        document = info.document
        button_at = info.button_position()

        self._show(False)
        if button_at is not None and self._span_intact(document, button_at + 1):
            document.delete_range(button_at + 1, button_at + 1 + self._span)
            logger.dbg("collapsed", self.handle, "span=", self._span)
        else:
            logger.warn("player moved or vanished, transcript left as is", self.handle)
            if self.view_key is not None:
                document.release_child(self.view_key)
        self._reset()

    def forget_view(self) -> None:
        """The player went away behind our back: fall back to COLLAPSED."""
        if self.state is ToggleState.COLLAPSED:
            return
        self._show(False)
        self._reset()
        logger.dbg("player dropped", self.handle)

    def _reset(self) -> None:
        self.view = None
        self.view_key = None
        self._span = 0
        self.state = ToggleState.COLLAPSED
