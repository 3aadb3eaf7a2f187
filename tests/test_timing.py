from __future__ import annotations

import json

import pytest

from chatreel.engine.timing import (
    TimingConfig, calculate_timing, coerce_override, get_timing_config, load_timing_config,
    normalize_speed, reaction_for, save_timing_config, typing_duration_for,
)
from chatreel.script.model import DialogueItem


class TestTypingDuration:
    """Clamped typing duration of text messages."""

    def test_short_message_hits_floor(self):
        assert typing_duration_for("hi") == pytest.approx(1.2)

    def test_long_message_bonus(self):
        # (0.8 + 60 * 0.05) * 1.2
        assert typing_duration_for("x" * 60) == pytest.approx(4.56)

    def test_threshold_is_exclusive(self):
        assert typing_duration_for("x" * 50) == pytest.approx(3.3)

    def test_ceiling(self):
        assert typing_duration_for("x" * 200) == pytest.approx(7.0)

    def test_speed_multipliers(self):
        assert typing_duration_for("x" * 40, "slow") == pytest.approx((0.8 + 2.0) * 1.4)
        assert typing_duration_for("x" * 40, "fast") == pytest.approx((0.8 + 2.0) * 0.7)

    def test_unknown_speed_is_normal(self):
        assert normalize_speed("turbo") == "normal"
        assert normalize_speed(None) == "normal"
        assert normalize_speed(" FAST ") == "fast"
        assert typing_duration_for("x" * 40, "turbo") == typing_duration_for("x" * 40, "normal")

    def test_non_string_text_counts_as_empty(self):
        assert typing_duration_for(None) == pytest.approx(1.2)


class TestReaction:
    def test_burst_sequence(self):
        cfg = TimingConfig()
        senders = ["A", "A", "B"]
        last = None
        reactions = []
        for s in senders:
            reactions.append(calculate_timing(DialogueItem(sender=s, message="hello"), last).reaction_delay)
            last = s
        assert reactions == [cfg.default_reaction, cfg.burst_reaction, cfg.default_reaction]

    def test_divider_never_bursts(self):
        assert reaction_for("time_divider", "A") == pytest.approx(0.6)


class TestCalculateTiming:
    def test_sticker_fixed_delay(self):
        item = DialogueItem(sender="A", message="ignored text", image_path="stickers/cat.png")
        result = calculate_timing(item, last_sender=None)
        assert result.typing_duration == pytest.approx(0.8)
        assert result.speed == "fast"
        assert result.source == "sticker"

    def test_first_item_left(self):
        result = calculate_timing(DialogueItem(sender="A", message="x" * 80), None, is_first=True, is_left=True)
        assert (result.reaction_delay, result.typing_duration) == (0.0, 1.0)

    def test_first_item_right(self):
        result = calculate_timing(DialogueItem(sender="B", message="hello"), None, is_first=True, is_left=False)
        assert (result.reaction_delay, result.typing_duration) == (0.0, 0.5)

    def test_explicit_overrides_win(self):
        item = DialogueItem(sender="A", message="hello", explicit_delay="2.5", explicit_reaction_delay=0.1)
        result = calculate_timing(item, last_sender="A")
        assert result.typing_duration == pytest.approx(2.5)
        assert result.reaction_delay == pytest.approx(0.1)
        assert result.source == "explicit"

    def test_explicit_typing_on_first_item_keeps_zero_reaction(self):
        item = DialogueItem(sender="A", message="hello", explicit_delay=3)
        result = calculate_timing(item, None, is_first=True)
        assert result.reaction_delay == 0.0
        assert result.typing_duration == pytest.approx(3.0)

    def test_invalid_override_falls_back(self):
        item = DialogueItem(sender="A", message="hi", explicit_delay="abc", explicit_reaction_delay=-1)
        result = calculate_timing(item, None)
        assert result.typing_duration == pytest.approx(1.2)
        assert result.reaction_delay == pytest.approx(0.6)
        assert result.source == "computed"


class TestCoerceOverride:
    @pytest.mark.parametrize("value", [None, "", True, "abc", float("nan"), float("inf"), -0.5, [1]])
    def test_rejected(self, value):
        assert coerce_override(value) is None

    def test_accepted(self):
        assert coerce_override("1.5") == 1.5
        assert coerce_override(0) == 0.0


class TestTimingConfig:
    def test_export_keys(self):
        data = TimingConfig().to_dict()
        assert data["BASE_DELAY"] == 0.8
        assert data["DEFAULT_REACTION_DELAY"] == 0.6
        assert data["BURST_REACTION_DELAY"] == 0.4
        assert data["SPEED_MULTIPLIER"] == {"fast": 0.7, "normal": 1.0, "slow": 1.4}
        assert data["LONG_MESSAGE_THRESHOLD"] == 50
        assert data["FPS"] == 30

    def test_from_dict_merges_and_ignores_invalid(self):
        cfg = TimingConfig.from_dict({
            "BASE_DELAY": 1.0,
            "burst_reaction": "0.3",
            "MIN_DELAY": "nope",
            "SPEED_MULTIPLIER": {"fast": 0.5},
        })
        assert cfg.base_delay == 1.0
        assert cfg.burst_reaction == pytest.approx(0.3)
        assert cfg.min_delay == 1.2
        assert cfg.speed_multiplier == {"fast": 0.5, "normal": 1.0, "slow": 1.4}

    @pytest.mark.parametrize("key,value", [
        ("TYPING_RATIO", 1.5),
        ("TYPING_RATIO", -0.2),
        ("FPS", 0),
        ("FPS", -3),
        ("FPS", 29.5),
        ("FPS", True),
        ("LONG_MESSAGE_THRESHOLD", -1),
        ("BASE_DELAY", -0.5),
        ("MAX_DELAY", float("inf")),
        ("SPEED_MULTIPLIER", {"fast": 0}),
    ])
    def test_from_dict_rejects_out_of_range(self, key, value, caplog):
        assert TimingConfig.from_dict({key: value}) == TimingConfig()
        assert any(key in r.message for r in caplog.records)

    def test_from_dict_range_bounds_accepted(self):
        cfg = TimingConfig.from_dict({"TYPING_RATIO": 1, "FPS": "60", "LONG_MESSAGE_THRESHOLD": 0.0})
        assert cfg.typing_ratio == 1.0
        assert cfg.fps == 60
        assert isinstance(cfg.fps, int)
        assert cfg.long_msg_threshold == 0

    def test_from_dict_drops_inverted_delay_bounds(self, caplog):
        cfg = TimingConfig.from_dict({"MIN_DELAY": 8.0, "MAX_DELAY": 3.0, "BASE_DELAY": 1.0})
        assert (cfg.min_delay, cfg.max_delay) == (1.2, 7.0)
        assert cfg.base_delay == 1.0
        assert TimingConfig.from_dict({"MIN_DELAY": 9.0}).min_delay == 1.2

    def test_effect_durations(self):
        data = TimingConfig().to_dict()
        assert data["CINEMATIC_EFFECT_DURATION"] == 2.5
        assert data["CAMERA_EFFECT_DURATION"] == 0.6
        assert TimingConfig.from_dict({"CAMERA_EFFECT_DURATION": 1}).camera_effect == 1.0

    def test_divider_duration(self):
        assert TimingConfig().divider_duration == pytest.approx(2.5)

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "timing.json"
        assert save_timing_config(TimingConfig(base_delay=1.0), path)
        assert json.loads(path.read_text(encoding="utf-8"))["BASE_DELAY"] == 1.0
        assert load_timing_config(path).base_delay == 1.0

    def test_load_missing_or_broken_uses_defaults(self, tmp_path):
        assert load_timing_config(tmp_path / "missing.json") == TimingConfig()
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        assert load_timing_config(broken) == TimingConfig()

    def test_global_config(self):
        assert get_timing_config() == TimingConfig()
