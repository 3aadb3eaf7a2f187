from __future__ import annotations

import json

import pytest

from chatreel.cli import main


@pytest.fixture
def story_file(tmp_path):
    path = tmp_path / "story.json"
    path.write_text(json.dumps({
        "title": "Test",
        "characters": {"A": {"name": "Alice"}},
        "dialogues": [{"sender": "A", "message": "hi"}, {"sender": "A", "message": "again"}],
    }), encoding="utf-8")
    return path


def test_timeline_command(story_file, capsys):
    assert main(["timeline", str(story_file)]) == 0
    data = json.loads(capsys.readouterr().out)
    assert len(data["events"]) == 2
    assert data["events"][1]["consecutive"] is True


def test_timeline_to_file(story_file, tmp_path):
    out = tmp_path / "timeline.json"
    assert main(["timeline", str(story_file), "--output", str(out)]) == 0
    assert json.loads(out.read_text(encoding="utf-8"))["fps"] == 30


def test_config_command(tmp_path, capsys):
    timing = tmp_path / "timing.json"
    timing.write_text(json.dumps({"BASE_DELAY": 1.0}), encoding="utf-8")
    written = tmp_path / "effective.json"
    assert main(["config", "--timing", str(timing), "--write", str(written)]) == 0
    assert json.loads(capsys.readouterr().out)["BASE_DELAY"] == 1.0
    assert json.loads(written.read_text(encoding="utf-8"))["BASE_DELAY"] == 1.0


def test_missing_story(tmp_path):
    assert main(["timeline", str(tmp_path / "nope.json")]) == 2


def test_invalid_story(tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"dialogues": "x"}), encoding="utf-8")
    assert main(["timeline", str(path)]) == 2
    assert "Invalid story" in capsys.readouterr().out


def test_no_command(capsys):
    assert main([]) == 1


def test_capture_command(story_file, tmp_path):
    pytest.importorskip("pygame")
    out = tmp_path / "frames"
    assert main(["capture", str(story_file), "--out", str(out), "--fps", "2", "--scale", "1"]) == 0
    manifest = json.loads((out / "manifest.json").read_text(encoding="utf-8"))
    frames = sorted(out.glob("frame_*.png"))
    assert len(frames) == manifest["capture"]["frameCount"]
    assert manifest["capture"]["sfxOffsetsMs"][0] == 1000


@pytest.mark.parametrize("fps", ["0", "-5", "abc"])
def test_capture_rejects_bad_fps(story_file, tmp_path, fps):
    with pytest.raises(SystemExit) as exc:
        main(["capture", str(story_file), "--out", str(tmp_path / "frames"), "--fps", fps])
    assert exc.value.code == 2
    assert not (tmp_path / "frames").exists()


def test_capture_ignores_zero_fps_in_timing_file(story_file, tmp_path):
    pytest.importorskip("pygame")
    timing = tmp_path / "timing.json"
    timing.write_text(json.dumps({"FPS": 0, "ENDING_BUFFER": 0}), encoding="utf-8")
    out = tmp_path / "frames"
    assert main(["capture", str(story_file), "--out", str(out), "--scale", "1", "--timing", str(timing)]) == 0
    manifest = json.loads((out / "manifest.json").read_text(encoding="utf-8"))
    assert manifest["capture"]["fps"] == 30
