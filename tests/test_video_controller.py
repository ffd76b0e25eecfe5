"""Tests for videoframes.video_controller: inserting and removing buttons."""

from __future__ import annotations

import os

import pytest
from PyQt6.QtGui import QTextCursor
from PyQt6.QtWidgets import QTextEdit

from conftest import OBJECT, YOUTUBE, write_message
from videoframes.errors import RegistryError
from videoframes.video_config import default_config
from videoframes.video_controller import VideoFrames
from videoframes.video_toggle import HANDLE_PROPERTY, VideoToggleButton

LINK = "http://youtu.be/dQw4w9WgXcQ"


def shown_handles(transcript) -> set[int]:
    handles = set()
    for pos in range(transcript.end_position()):
        child = transcript.child_at(pos)
        if isinstance(child, VideoToggleButton):
            handles.add(child.property(HANDLE_PROPERTY))
    return handles


def post_link(frames, transcript, prefix="> ", suffix=" !"):
    start = write_message(transcript, prefix + LINK + suffix)
    position = start + len(prefix) + len(LINK)
    return frames.insert_button(transcript, position, YOUTUBE, LINK + suffix, len(LINK))


class TestInsert:
    def test_button_lands_after_link(self, frames, transcript):
        before = transcript.character_count()
        write_message(transcript, "> " + LINK + " !")
        snapshot = transcript.raw_text()
        handle = frames.insert_button(transcript, 2 + len(LINK), YOUTUBE, LINK + " !", len(LINK))
        assert transcript.character_count() == before + len("> " + LINK + " !") + 1
        assert transcript.raw_text() == snapshot[: 2 + len(LINK)] + OBJECT + " !"
        assert frames.handles() == [handle]

    def test_accepts_text_edit(self, frames, view):
        view.setPlainText("clip " + LINK)
        handle = frames.insert_button(view, 5 + len(LINK), YOUTUBE, LINK, len(LINK))
        info = frames.registry.lookup(handle)
        assert info.document is frames.transcript(view)
        assert info.is_end_of_text

    def test_rejects_other_documents(self, frames):
        with pytest.raises(TypeError):
            frames.insert_button(object(), 0, YOUTUBE, LINK, len(LINK))

    def test_handles_match_shown_buttons(self, frames, transcript):
        handles = [post_link(frames, transcript) for _ in range(5)]
        assert shown_handles(transcript) == set(handles)
        frames.remove_button(handles[1])
        frames.remove_button(handles[3])
        assert shown_handles(transcript) == set(frames.handles()) == {handles[0], handles[2], handles[4]}
        frames.toggle(handles[2])
        frames.remove_button(handles[2])
        assert shown_handles(transcript) == set(frames.handles()) == {handles[0], handles[4]}


class TestRemove:
    def test_restores_document(self, frames, transcript):
        write_message(transcript, "> " + LINK + " !")
        snapshot = transcript.raw_text()
        handle = frames.insert_button(transcript, 2 + len(LINK), YOUTUBE, LINK + " !", len(LINK))
        frames.remove_button(handle)
        assert transcript.raw_text() == snapshot
        assert transcript.children() == {}
        assert transcript.marker_count() == 0

    def test_removal_while_expanded(self, frames, transcript, players):
        write_message(transcript, "> " + LINK + " !")
        snapshot = transcript.raw_text()
        handle = frames.insert_button(transcript, 2 + len(LINK), YOUTUBE, LINK + " !", len(LINK))
        frames.toggle(handle)
        assert len(transcript.children()) == 2

        frames.remove_button(handle)
        assert transcript.raw_text() == snapshot
        assert transcript.children() == {}
        assert players[0].released
        assert handle not in frames.registry

    def test_removal_while_expanded_at_end(self, frames, transcript, players):
        write_message(transcript, "> " + LINK)
        snapshot = transcript.raw_text()
        handle = frames.insert_button(transcript, 2 + len(LINK), YOUTUBE, LINK, len(LINK))
        frames.toggle(handle)
        frames.remove_button(handle)
        assert transcript.raw_text() == snapshot

    def test_removal_after_earlier_edits(self, frames, transcript):
        write_message(transcript, "> " + LINK + " !")
        handle = frames.insert_button(transcript, 2 + len(LINK), YOUTUBE, LINK + " !", len(LINK))
        transcript.insert_text(0, "history\n")
        snapshot = transcript.raw_text()
        frames.remove_button(handle)
        assert transcript.raw_text() == snapshot.replace(OBJECT, "")

    def test_unknown_handle(self, frames):
        with pytest.raises(RegistryError):
            frames.remove_button(99)
        with pytest.raises(RegistryError):
            frames.toggle(99)

    def test_remove_twice(self, frames, transcript):
        handle = post_link(frames, transcript)
        frames.remove_button(handle)
        with pytest.raises(RegistryError):
            frames.remove_button(handle)


class TestLifecycle:
    def test_destroy_clears_transcript_and_pages(self, frames, transcript):
        write_message(transcript, "start ")
        snapshot = transcript.raw_text()
        first = post_link(frames, transcript, prefix="", suffix="")
        post_link(frames, transcript)
        frames.toggle(first)
        pages = frames.pages
        assert pages and all(os.path.exists(p) for p in pages)

        frames.destroy()
        assert frames.destroyed
        assert transcript.raw_text().startswith(snapshot)
        assert OBJECT not in transcript.raw_text()
        assert not any(os.path.exists(p) for p in pages)
        with pytest.raises(RegistryError):
            frames.handles()
        with pytest.raises(RegistryError):
            post_link(frames, transcript)

    def test_pages_can_outlive_destroy(self, qapp, tmp_path, transcript):
        cfg = default_config()
        cfg["remove_pages_on_destroy"] = False
        frames = VideoFrames(cfg, view_factory=lambda uri: QTextEdit(), page_directory=str(tmp_path))
        uri = frames.generate_page(YOUTUBE, LINK)
        frames.destroy()
        assert os.path.exists(frames.pages[0])
        assert uri.startswith("file://")

    def test_detach_drops_only_that_transcript(self, frames, transcript, qapp):
        other = QTextEdit()
        try:
            mine = post_link(frames, transcript)
            theirs = frames.insert_button(other, 0, YOUTUBE, LINK, len(LINK))
            assert frames.detach(other) == [theirs]
            assert frames.handles() == [mine]
            assert other.document().toRawText() == ""
        finally:
            other.deleteLater()


def host_delete(view, start, end):
    """Edit the view's document directly, the way the chat window would."""
    cursor = QTextCursor(view.document())
    cursor.setPosition(start)
    cursor.setPosition(end, QTextCursor.MoveMode.KeepAnchor)
    cursor.removeSelectedText()


class TestHostRewritesTranscript:
    NEW_TEXT = "brand new conversation text"

    def test_remove_after_rewrite_keeps_new_text(self, frames, view, transcript):
        handle = post_link(frames, transcript)
        view.setPlainText(self.NEW_TEXT)
        frames.remove_button(handle)
        assert transcript.raw_text() == self.NEW_TEXT
        assert frames.handles() == []
        assert transcript.children() == {}
        assert transcript.marker_count() == 0

    def test_destroy_after_rewrite_keeps_new_text(self, frames, view, transcript):
        post_link(frames, transcript)
        post_link(frames, transcript)
        view.setPlainText(self.NEW_TEXT)
        frames.destroy()
        assert transcript.raw_text() == self.NEW_TEXT

    def test_collapse_after_rewrite_keeps_new_text(self, frames, view, transcript, players):
        handle = post_link(frames, transcript)
        frames.toggle(handle)
        view.setPlainText(self.NEW_TEXT)

        frames.toggle(handle)
        assert not frames.is_expanded(handle)
        assert transcript.raw_text() == self.NEW_TEXT
        assert players[0].released

        frames.remove_button(handle)
        assert transcript.raw_text() == self.NEW_TEXT

    def test_expand_after_rewrite_refused(self, frames, view, transcript, players):
        handle = post_link(frames, transcript)
        view.setPlainText(self.NEW_TEXT)
        with pytest.raises(RegistryError):
            frames.toggle(handle)
        assert transcript.raw_text() == self.NEW_TEXT
        assert players == []
        assert not frames.button(handle).isChecked()

    def test_relayout_drops_lost_buttons(self, frames, view, transcript, players):
        kept = post_link(frames, transcript)
        lost = post_link(frames, transcript)
        frames.toggle(lost)
        info = frames.registry.lookup(lost)
        button_at = info.button_position()
        host_delete(view, button_at - len(LINK), transcript.end_position())
        snapshot = transcript.raw_text()

        transcript.relayout()
        assert frames.handles() == [kept]
        assert players[0].released
        with pytest.raises(RegistryError):
            frames.remove_button(lost)
        assert transcript.raw_text() == snapshot
        assert shown_handles(transcript) == {kept}

    def test_relayout_collapses_when_player_is_lost(self, frames, view, transcript, players):
        handle = post_link(frames, transcript)
        frames.toggle(handle)
        player_at = frames.registry.lookup(handle).button_position() + 2
        host_delete(view, player_at, player_at + 1)

        transcript.relayout()
        assert handle in frames.registry
        assert not frames.is_expanded(handle)
        assert not frames.button(handle).isChecked()
        assert players[0].released

        frames.toggle(handle)
        assert frames.is_expanded(handle)
        assert len(players) == 2


class TestTextAtButtonPosition:
    def test_remove_keeps_text_typed_at_button(self, frames, transcript):
        start = write_message(transcript, "> " + LINK + " !")
        position = start + 2 + len(LINK)
        handle = frames.insert_button(transcript, position, YOUTUBE, LINK + " !", len(LINK))
        transcript.insert_text(position, "X")
        snapshot = transcript.raw_text()
        assert snapshot[position:position + 2] == "X" + OBJECT

        frames.remove_button(handle)
        assert transcript.raw_text() == snapshot.replace(OBJECT, "")
        assert shown_handles(transcript) == set()
        assert transcript.children() == {}

    def test_toggle_follows_the_button(self, frames, transcript, players):
        start = write_message(transcript, "> " + LINK + " !")
        position = start + 2 + len(LINK)
        handle = frames.insert_button(transcript, position, YOUTUBE, LINK + " !", len(LINK))
        transcript.insert_text(position, "X")
        snapshot = transcript.raw_text()

        frames.toggle(handle)
        assert frames.registry.lookup(handle).position() == position + 1
        assert transcript.child_at(position + 3) is players[0]
        frames.toggle(handle)
        assert transcript.raw_text() == snapshot
