from __future__ import annotations

import pytest

from chatreel.engine.characters import DIVIDER_META
from chatreel.engine.compiler import KIND_DIVIDER, Timeline, TimelineEvent, compile_timeline
from chatreel.engine.overlay import INACTIVE, EffectState, effect_state, overlay_state, typing_state
from chatreel.engine.timing import TimingConfig
from chatreel.script.model import DialogueItem


def _divider_timeline() -> Timeline:
    ev = TimelineEvent(
        index=0,
        kind=KIND_DIVIDER,
        item=DialogueItem(sender="time_divider", message="Later that night"),
        character=DIVIDER_META,
        reaction_start=1.4,
        reaction_delay=0.6,
        typing_start=2.0,
        typing_duration=2.5,
        appear_time=4.5,
    )
    return Timeline([ev], TimingConfig())


def test_overlay_window():
    tl = _divider_timeline()
    assert overlay_state(tl, 1.9) == INACTIVE
    assert overlay_state(tl, 2.0).active
    state = overlay_state(tl, 3.0)
    assert state.active is True
    assert state.text == "Later that night"
    assert overlay_state(tl, 4.5).active is False


def test_overlay_is_pure_under_repeated_and_backward_time():
    tl = _divider_timeline()
    samples = [3.0, 3.0, 5.0, 2.5, 0.0, 3.0]
    assert [overlay_state(tl, t).active for t in samples] == [True, True, False, True, False, True]


def test_messages_never_activate_overlay(burst_dialogues, roster):
    tl = compile_timeline(burst_dialogues, roster)
    assert all(not overlay_state(tl, t / 10).active for t in range(80))


def test_typing_state_left_only(burst_dialogues, roster):
    tl = compile_timeline(burst_dialogues, roster)
    assert typing_state(tl, 0.0) is tl[0]
    assert typing_state(tl, 0.8) is None
    assert typing_state(tl, 1.5) is tl[1]
    # B is on the right side
    assert typing_state(tl, 3.5) is None


def _effect_timeline(roster) -> Timeline:
    # appear times 1.0 (zoom_in until 3.5) and 2.6 (shake until 3.2), B at 4.4
    return compile_timeline([
        DialogueItem(sender="A", message="hi", camera_effect="zoom_in"),
        DialogueItem(sender="A", message="yo", camera_effect="shake"),
        DialogueItem(sender="B", message="hey"),
    ], roster)


def test_effect_window(roster):
    tl = _effect_timeline(roster)
    assert effect_state(tl, 0.99) is None
    state = effect_state(tl, 2.0)
    assert state.name == "zoom_in"
    assert state.elapsed == pytest.approx(1.0)
    assert state.progress == pytest.approx(0.4)
    assert effect_state(tl, 4.0) is None


def test_latest_effect_wins(roster):
    tl = _effect_timeline(roster)
    assert effect_state(tl, 2.7).name == "shake"
    # the shake ended; the earlier zoom is not resumed
    assert effect_state(tl, 3.3) is None
    assert [getattr(effect_state(tl, t), "name", None) for t in (2.7, 1.5, 2.7)] == ["shake", "zoom_in", "shake"]


def test_effect_progress_bounds():
    assert EffectState("shake", 0.9, 0.6).progress == 1.0
    assert EffectState("shake", 0.3, 0.0).progress == 1.0
