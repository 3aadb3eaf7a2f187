from __future__ import annotations

import os

# headless pygame for renderer and capture tests
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import pytest

from chatreel.engine.characters import CharacterRoster
from chatreel.engine.timing import TimingConfig, set_timing_config
from chatreel.script.model import CharacterMeta, DialogueItem


@pytest.fixture(autouse=True)
def default_timing():
    set_timing_config(TimingConfig())
    yield
    set_timing_config(None)


@pytest.fixture
def roster() -> CharacterRoster:
    return CharacterRoster({
        "A": CharacterMeta(id="A", name="Alice", side="left"),
        "B": CharacterMeta(id="B", name="Bob", side="right"),
    })


@pytest.fixture
def burst_dialogues():
    # A, A (burst), B
    return [
        DialogueItem(sender="A", message="hi", order=0),
        DialogueItem(sender="A", message="yo", order=1),
        DialogueItem(sender="B", message="hey", order=2),
    ]


@pytest.fixture
def divider_dialogues():
    return [
        DialogueItem(sender="A", message="hi", order=0),
        DialogueItem(sender="time_divider", message="Later", order=1),
        DialogueItem(sender="A", message="back", order=2),
    ]
