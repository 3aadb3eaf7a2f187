from __future__ import annotations

import json

import pytest

from chatreel.script.errors import StoryError
from chatreel.script.loader import load_story, parse_story


def _story(**overrides):
    data = {
        "title": "Midnight",
        "room_name": "Night Shift",
        "category": "ghost",
        "intro_title": "Midnight",
        "characters": {
            "A": {"name": "Alice", "side": "left"},
            "B": {"name": "Bob", "side": "right"},
        },
        "dialogues": [
            {"sender": "A", "message": "hi", "order": 1},
            {"sender": "B", "message": "hey", "order": 0, "typing_speed": "slow"},
            {"sender": "time_divider", "message": "Later", "order": 2},
            {"sender": "A", "imagePath": "stickers/cat.png", "order": 3, "delay": "1.5"},
        ],
    }
    data.update(overrides)
    return data


class TestParseStory:
    def test_basic(self):
        story = parse_story(_story())
        assert story.title == "Midnight"
        assert story.room_name == "Night Shift"
        assert [d.sender for d in story.dialogues] == ["B", "A", "time_divider", "A"]
        assert story.dialogues[0].typing_speed == "slow"
        assert story.dialogues[2].is_divider
        assert story.dialogues[3].is_sticker
        assert story.dialogues[3].explicit_delay == "1.5"
        assert story.dialogues[3].text == ""
        assert story.characters["B"].side == "right"

    def test_category_selects_theme(self):
        story = parse_story(_story())
        assert story.intro is not None
        assert story.intro.theme == "horror"

    def test_nested_intro(self):
        story = parse_story(_story(intro={"title": "Open", "audio_path": "voice.mp3", "theme": "Drama"}))
        assert story.intro.title_text == "Open"
        assert story.intro.audio_path == "voice.mp3"
        assert story.intro.theme == "drama"

    def test_missing_intro_title(self):
        assert parse_story(_story(intro_title="")).intro is None

    def test_character_list_and_unknown_side(self):
        story = parse_story(_story(characters=[{"id": "A", "name": "Alice", "side": "up"}, {"name": "no id"}]))
        assert list(story.characters) == ["A"]
        assert story.characters["A"].side == "left"

    def test_stable_sort_and_seq_order(self):
        story = parse_story(_story(dialogues=[
            {"sender": "A", "message": "first", "seq_order": 5},
            {"sender": "B", "message": "second", "seq_order": 5},
            {"sender": "A", "message": "zero", "seq_order": 0},
        ]))
        assert [d.text for d in story.dialogues] == ["zero", "first", "second"]

    def test_missing_order_uses_position(self):
        story = parse_story(_story(dialogues=[{"sender": "A", "message": "x"}, {"sender": "A", "message": "y", "order": "bad"}]))
        assert [d.order for d in story.dialogues] == [0, 1]

    def test_top_level_must_be_object(self):
        with pytest.raises(StoryError):
            parse_story([1, 2])

    def test_dialogues_must_be_list(self):
        with pytest.raises(StoryError) as ei:
            parse_story(_story(dialogues={"a": 1}))
        assert ei.value.context == "dict"

    def test_dialogue_entry_must_be_object(self):
        with pytest.raises(StoryError) as ei:
            parse_story(_story(dialogues=[{"sender": "A"}, "oops"]))
        assert ei.value.line == 1
        assert "dialogue 1" in str(ei.value)


class TestLoadStory:
    def test_load(self, tmp_path):
        path = tmp_path / "story.json"
        path.write_text(json.dumps(_story(), ensure_ascii=False), encoding="utf-8")
        assert len(load_story(path).dialogues) == 4

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "story.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(StoryError):
            load_story(path)

    def test_structural_error_names_file(self, tmp_path):
        path = tmp_path / "story.json"
        path.write_text(json.dumps({"dialogues": [{"sender": "A"}, 3]}), encoding="utf-8")
        with pytest.raises(StoryError) as ei:
            load_story(path)
        assert ei.value.path == str(path)
        assert f"({path} dialogue 1)" in str(ei.value)
