from __future__ import annotations

import itertools
from typing import Any, Callable

from PyQt6.QtCore import QEvent, QObject, QSizeF, QTimer
from PyQt6.QtGui import (
    QTextCharFormat,
    QTextCursor,
    QTextDocument,
    QTextFormat,
    QTextObjectInterface,
)
from PyQt6.QtWidgets import QTextEdit, QWidget

from . import logger

OBJECT_REPLACEMENT = "\ufffc"
CHILD_OBJECT_TYPE = int(QTextFormat.ObjectTypes.UserObject.value) + 7
CHILD_KEY_PROPERTY = int(QTextFormat.Property.UserProperty.value) + 7


class _ChildObjectHandler(QObject, QTextObjectInterface):
    """Reports the size of embedded widgets to the document layout.

    Nothing is painted: the widget itself sits on top of its object
    character and is moved there by TranscriptDocument.relayout().
    """

    def __init__(self, transcript: "TranscriptDocument") -> None:
        super().__init__(transcript.view)
        self._transcript = transcript

    def intrinsicSize(self, doc, pos_in_document, fmt) -> QSizeF:
        widget = self._transcript.child(fmt.property(CHILD_KEY_PROPERTY))
        if widget is None:
            return QSizeF(0, 0)
        return QSizeF(widget.size())

    def drawObject(self, painter, rect, doc, pos_in_document, fmt) -> None:
        return None


class _ViewportWatcher(QObject):
    def __init__(self, transcript: "TranscriptDocument") -> None:
        super().__init__(transcript.view)
        self._transcript = transcript

    def eventFilter(self, watched, event) -> bool:
        try:
            if event is not None and event.type() == QEvent.Type.Resize:
                self._transcript.schedule_relayout()
        except Exception:
            pass
        return False


class TranscriptDocument:
    """Position-level editing of a chat transcript view.

    Wraps the ``QTextDocument`` of a ``QTextEdit`` and lets widgets live
    inline in it. Each embedded widget takes exactly one position (an object
    replacement character) and is owned by this wrapper until the range
    holding it is deleted or the wrapper is closed.
    """

    def __init__(self, view: QTextEdit) -> None:
        self.view = view
        self.document: QTextDocument = view.document()
        self._keys = itertools.count(1)
        self._children: dict[int, QWidget] = {}
        self._child_markers: dict[int, QTextCursor] = {}
        self._markers: list[QTextCursor] = []
        self._lost_listeners: list[Callable[[TranscriptDocument, int], None]] = []
        self._closed = False
        self._handler = _ChildObjectHandler(self)
        self.document.documentLayout().registerHandler(CHILD_OBJECT_TYPE, self._handler)
        self._relayout_timer = QTimer(view)
        self._relayout_timer.setSingleShot(True)
        self._relayout_timer.setInterval(0)
        self._relayout_timer.timeout.connect(self.relayout)
        self._watcher = _ViewportWatcher(self)
        view.viewport().installEventFilter(self._watcher)
        self.document.documentLayout().documentSizeChanged.connect(self.schedule_relayout)
        view.verticalScrollBar().valueChanged.connect(self.schedule_relayout)
        view.horizontalScrollBar().valueChanged.connect(self.schedule_relayout)

    @classmethod
    def for_view(cls, view: QTextEdit) -> "TranscriptDocument":
        existing = getattr(view, "_videoframes_transcript", None)
        if isinstance(existing, cls) and not existing.closed:
            return existing
        transcript = cls(view)
        view._videoframes_transcript = transcript
        return transcript

    @property
    def closed(self) -> bool:
        return self._closed

    # Markers

    def create_marker(self, position: int, *, left_gravity: bool = False) -> QTextCursor:
        """A cursor that follows edits made anywhere else in the document.

        With ``left_gravity`` text inserted exactly at the marker ends up
        after it, otherwise the marker moves along with that text.
        """
        marker = QTextCursor(self.document)
        marker.setPosition(self._clamp(position))
        marker.setKeepPositionOnInsert(bool(left_gravity))
        self._markers.append(marker)
        return marker

    def release_marker(self, marker: QTextCursor) -> None:
        for idx, known in enumerate(self._markers):
            if known is marker:
                del self._markers[idx]
                return

    def marker_count(self) -> int:
        return len(self._markers)

    def position_of(self, marker: QTextCursor) -> int:
        return marker.position()

    # Text

    def character_count(self) -> int:
        return self.document.characterCount()

    def end_position(self) -> int:
        return self.document.characterCount() - 1

    def is_end(self, position: int) -> bool:
        return position >= self.end_position()

    def raw_text(self) -> str:
        return self.document.toRawText()

    def character_at(self, position: int) -> str:
        if position < 0 or position >= self.end_position():
            return ""
        return self.document.characterAt(position)

    def insert_text(self, position: int, text: str) -> None:
        cursor = QTextCursor(self.document)
        cursor.setPosition(self._clamp(position))
        cursor.insertText(text, QTextCharFormat())

    def delete_range(self, start: int, end: int) -> None:
        start = self._clamp(start)
        end = self._clamp(end)
        if end <= start:
            return
        for key, marker in list(self._child_markers.items()):
            if start <= marker.position() < end:
                self.release_child(key)
        cursor = QTextCursor(self.document)
        cursor.setPosition(start)
        cursor.setPosition(end, QTextCursor.MoveMode.KeepAnchor)
        cursor.removeSelectedText()
        self.schedule_relayout()

    # Embedded children

    def insert_child(self, position: int, widget: QWidget) -> int:
        position = self._clamp(position)
        key = next(self._keys)
        widget.setParent(self.view.viewport())
        if widget.minimumSize() != widget.maximumSize():
            widget.resize(widget.sizeHint())
        widget.setProperty("videoframes_child_key", key)
        self._children[key] = widget

        fmt = QTextCharFormat()
        fmt.setObjectType(CHILD_OBJECT_TYPE)
        fmt.setProperty(CHILD_KEY_PROPERTY, key)
        cursor = QTextCursor(self.document)
        cursor.setPosition(position)
        cursor.insertText(OBJECT_REPLACEMENT, fmt)
        marker = QTextCursor(self.document)
        marker.setPosition(position)
        self._child_markers[key] = marker

        widget.show()
        self.relayout()
        logger.trace("child inserted", key, "at", position)
        return key

    def child(self, key: Any) -> QWidget | None:
        try:
            return self._children.get(int(key))
        except (TypeError, ValueError):
            return None

    def children(self) -> dict[int, QWidget]:
        return dict(self._children)

    def child_position(self, key: int) -> int:
        return self._child_markers[key].position()

    def live_child_position(self, key: int | None) -> int | None:
        """Where child ``key`` sits, or None once its character is gone."""
        marker = self._child_markers.get(key) if key is not None else None
        if marker is None:
            return None
        position = marker.position()
        return position if self.key_at(position) == key else None

    def on_child_lost(self, callback: Callable[[TranscriptDocument, int], None]) -> None:
        """Register ``callback(transcript, key)`` for children relayout drops."""
        if callback not in self._lost_listeners:
            self._lost_listeners.append(callback)

    def key_at(self, position: int) -> int | None:
        if position < 0 or position >= self.end_position():
            return None
        if self.document.characterAt(position) != OBJECT_REPLACEMENT:
            return None
        cursor = QTextCursor(self.document)
        cursor.setPosition(position + 1)
        fmt = cursor.charFormat()
        if fmt.objectType() != CHILD_OBJECT_TYPE:
            return None
        try:
            return int(fmt.property(CHILD_KEY_PROPERTY))
        except (TypeError, ValueError):
            return None

    def child_at(self, position: int) -> QWidget | None:
        key = self.key_at(position)
        return None if key is None else self._children.get(key)

    def release_child(self, key: int) -> None:
        widget = self._children.pop(key, None)
        self._child_markers.pop(key, None)
        if widget is None:
            return
        release = getattr(widget, "release", None)
        if callable(release):
            try:
                release()
            except Exception:
                logger.dbg("child release hook failed", key)
        try:
            widget.hide()
            widget.setParent(None)
            widget.deleteLater()
        except Exception:
            logger.dbg("child widget delete failed", key)
        logger.trace("child released", key)

    # Geometry

    def schedule_relayout(self, *_args) -> None:
        if self._closed:
            return
        try:
            self._relayout_timer.start()
        except Exception:
            pass

    def relayout(self) -> None:
        """Move every embedded widget over its object character.

        Children whose character vanished behind our back (the host cleared
        or rewrote the transcript) are released here.
        """
        if self._closed:
            return
        stale: list[int] = []
        for key, marker in self._child_markers.items():
            if self.key_at(marker.position()) != key:
                stale.append(key)
                continue
            widget = self._children[key]
            try:
                rect = self.view.cursorRect(QTextCursor(marker))
                widget.move(rect.left(), rect.top())
            except Exception:
                logger.dbg("child move failed", key)
        for key in stale:
            logger.dbg("child lost its position", key)
            self.release_child(key)
            for callback in list(self._lost_listeners):
                try:
                    callback(self, key)
                except Exception as exc:
                    logger.error("lost child callback failed", key, repr(exc))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for key in list(self._children.keys()):
            self.release_child(key)
        try:
            self.view.viewport().removeEventFilter(self._watcher)
            self.document.documentLayout().documentSizeChanged.disconnect(self.schedule_relayout)
            self.view.verticalScrollBar().valueChanged.disconnect(self.schedule_relayout)
            self.view.horizontalScrollBar().valueChanged.disconnect(self.schedule_relayout)
            self._relayout_timer.stop()
        except (RuntimeError, TypeError):
            pass
        self._lost_listeners = []
        if getattr(self.view, "_videoframes_transcript", None) is self:
            self.view._videoframes_transcript = None

    def _clamp(self, position: int) -> int:
        return max(0, min(int(position), self.end_position()))
