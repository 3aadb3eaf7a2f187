"""
Frame-stepped capture driver.

Advances a SteppedExecutor once per video frame and hands every frame to a
consumer (the pygame view saves PNGs). Also produces the cue schedule the
external muxer uses, so pops land on exactly the timestamps that drove the
frames.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple

from chatreel.engine.compiler import Timeline
from chatreel.engine.intro import IntroSequencer, TitleState
from chatreel.engine.playback import SteppedExecutor

logger = logging.getLogger(__name__)

FrameCallback = Callable[[int, float, TitleState], None]


def frame_count(total_duration: float, fps: int) -> int:
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")
    return max(0, math.ceil(total_duration * fps))


def iter_frame_times(total_duration: float, fps: int) -> Iterator[Tuple[int, float]]:
    for frame in range(frame_count(total_duration, fps)):
        yield frame, frame / fps


def sfx_cue_offsets(timeline: Timeline, offset: float = 0.0, limit: Optional[int] = None) -> List[int]:
    """Millisecond offsets of every message pop, shifted by the intro length.

    Dividers get no pop. `limit` caps the count for muxers that can only
    take a bounded number of delayed inputs.
    """
    out = [int(round((offset + ev.appear_time) * 1000)) for ev in timeline if not ev.is_divider]
    return out[:limit] if limit is not None else out


@dataclass
class CaptureResult:
    frame_count: int
    fps: int
    duration: float
    intro_duration: float
    cue_offsets_ms: List[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "frameCount": self.frame_count,
            "fps": self.fps,
            "duration": self.duration,
            "introDuration": self.intro_duration,
            "sfxOffsetsMs": list(self.cue_offsets_ms),
        }


def capture_frames(
    stepped: SteppedExecutor,
    on_frame: FrameCallback,
    fps: Optional[int] = None,
    intro: Optional[IntroSequencer] = None,
    audio_length: Optional[float] = None,
) -> CaptureResult:
    """Drive `stepped` through every frame of intro + timeline.

    During the intro the timeline is queried at negative time, which
    renders nothing; timeline origin 0 starts right after the intro.
    """
    timeline = stepped.timeline
    fps = int(fps or timeline.config.fps)
    intro_duration = intro.planned_duration(audio_length) if intro is not None else 0.0
    duration = intro_duration + timeline.total_duration
    total = frame_count(duration, fps)
    logger.info(f"Capturing {total} frames ({duration:.1f}s at {fps} FPS)")

    for frame, t in iter_frame_times(duration, fps):
        stepped.update(t - intro_duration)
        title = intro.title_state(t, audio_length) if intro is not None else TitleState()
        on_frame(frame, t, title)
        if frame % fps == 0:
            logger.debug(f"Capturing: {int(t)}s / {duration:.1f}s")

    return CaptureResult(
        frame_count=total,
        fps=fps,
        duration=duration,
        intro_duration=intro_duration,
        cue_offsets_ms=sfx_cue_offsets(timeline, offset=intro_duration),
    )


def write_manifest(path: Path | str, timeline: Timeline, result: CaptureResult) -> Path:
    """Write the timeline and cue schedule the encoder/muxer consumes."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = {"timeline": timeline.to_dict(), "capture": result.to_dict()}
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    return p
