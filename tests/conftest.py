"""Shared fixtures for videoframes tests."""

from __future__ import annotations

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("QTWEBENGINE_DISABLE_SANDBOX", "1")
os.environ.setdefault("QTWEBENGINE_CHROMIUM_FLAGS", "--no-sandbox")

import pytest

# videoframes pulls in QtWebEngineWidgets, which must be imported before the
# QApplication exists.
import videoframes  # noqa: F401
from PyQt6.QtWidgets import QApplication, QTextEdit, QWidget

from videoframes.video_config import default_config
from videoframes.video_controller import VideoFrames
from videoframes.video_transcript import OBJECT_REPLACEMENT, TranscriptDocument
from videoframes.video_websites import DEFAULT_WEBSITES, WebsitePattern

YOUTUBE = DEFAULT_WEBSITES[0]

EXAMPLE_SITE = WebsitePattern(
    id="example",
    regex=r"https?://video\.example/v/(?P<video_id>[\w\\-]+)",
    embed='<embed src="https://video.example/e/%VIDEO_ID%" title="%VIDEO_ID%">',
)

PARAGRAPH = "\u2029"
OBJECT = OBJECT_REPLACEMENT


class FakePlayer(QWidget):
    """Stands in for the web view so tests never start a browser engine."""

    def __init__(self, uri: str) -> None:
        super().__init__()
        self.uri = uri
        self.released = False
        self.setFixedSize(200, 120)

    def release(self) -> None:
        self.released = True


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


@pytest.fixture
def view(qapp):
    edit = QTextEdit()
    edit.setReadOnly(True)
    edit.resize(640, 480)
    yield edit
    transcript = getattr(edit, "_videoframes_transcript", None)
    if transcript is not None:
        transcript.close()
    edit.deleteLater()


@pytest.fixture
def transcript(view):
    return TranscriptDocument.for_view(view)


@pytest.fixture
def players():
    return []


@pytest.fixture
def opened_urls():
    return []


@pytest.fixture
def frames(qapp, tmp_path, players, opened_urls):
    def make_player(uri: str) -> FakePlayer:
        player = FakePlayer(uri)
        players.append(player)
        return player

    instance = VideoFrames(
        default_config(),
        open_external=opened_urls.append,
        view_factory=make_player,
        page_directory=str(tmp_path),
    )
    yield instance
    if not instance.destroyed:
        instance.destroy()


def write_message(transcript: TranscriptDocument, text: str) -> int:
    """Append ``text`` to the transcript and return where it starts."""
    start = transcript.end_position()
    transcript.insert_text(start, text)
    return start
