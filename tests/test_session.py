from __future__ import annotations

from unittest.mock import MagicMock

from chatreel.engine.clock import ManualClock
from chatreel.engine.events import BgmStartEvent, IntroCompleteEvent
from chatreel.engine.session import PlaybackSession
from chatreel.engine.sink import RecordingSink
from chatreel.script.loader import parse_story


def _story(**extra):
    data = {
        "title": "Test",
        "intro_title": "Test",
        "characters": {"A": {"name": "Alice"}, "B": {"name": "Bob", "side": "right"}},
        "dialogues": [
            {"sender": "A", "message": "hi"},
            {"sender": "B", "message": "hello"},
            {"sender": "A", "message": "how are you"},
        ],
    }
    data.update(extra)
    return parse_story(data)


def test_preview_runs_intro_then_timeline():
    session = PlaybackSession(_story())
    bgm = []
    session.events.subscribe(BgmStartEvent, bgm.append)
    sink = RecordingSink()

    assert session.preview(sink, clock=ManualClock()) is True

    assert sink.calls[0] == ("title_show", "default")
    assert sink.calls[1] == ("title_hide", None)
    assert len(sink.messages) == 3
    assert [e.reason for e in bgm] == ["intro"]


def test_seek_skips_intro():
    session = PlaybackSession(_story())
    completed = []
    session.events.subscribe(IntroCompleteEvent, completed.append)
    sink = RecordingSink()

    session.preview(sink, clock=ManualClock(), start_at=1)

    assert all(name != "title_show" for name, _ in sink.calls)
    assert [e.skipped for e in completed] == [True]
    assert len(sink.messages) == 3


def test_cancelled_session():
    session = PlaybackSession(_story())
    session.cancel()
    sink = RecordingSink()
    assert session.preview(sink, clock=ManualClock()) is False
    assert sink.messages == []


def test_sessions_do_not_share_cues():
    audio = MagicMock()
    story = _story()
    first = PlaybackSession(story, audio=audio)
    second = PlaybackSession(story, audio=audio)
    first.preview(RecordingSink(), clock=ManualClock())
    assert first.cues.has_fired("bgm")
    assert not second.cues.has_fired("bgm")
    assert second.stepped(RecordingSink()).state.fired_indices == set()


def test_intro_is_cached():
    session = PlaybackSession(_story())
    sink = RecordingSink()
    assert session.intro(sink) is session.intro(sink)


def test_story_without_characters_records_missing_senders():
    session = PlaybackSession(_story(characters={}, dialogues=[{"sender": "ghost", "message": "boo"}]))
    assert session.roster.missing == {"ghost"}
    assert session.timeline[0].character.is_left
