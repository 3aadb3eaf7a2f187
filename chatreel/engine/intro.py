"""
Intro sequencer - the title-card phase that precedes the chat timeline.

horror/drama: title card 1.5s then a 0.5s fade, never narrated
other themes: narration clip (bounded by a 5s timeout), or a 2.0s title card

Whatever the branch, the sequence ends with: swoosh cue, fade (dramatic
themes only), title hidden, BGM-start signal. The sequencer is terminal:
running it again after completion fires nothing.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from chatreel.engine.adapters.audio import IAudio, NullAudio
from chatreel.engine.audio_cues import AudioCueDispatcher
from chatreel.engine.clock import CancellationToken, Clock, WallClock
from chatreel.engine.events import EventSystem, IntroCompleteEvent, IntroStartEvent
from chatreel.engine.sink import GuardedSink, IRenderSink
from chatreel.script.model import IntroSpec

logger = logging.getLogger(__name__)

CATEGORY_THEME_MAP = {
    "horror": "horror",
    "ghost": "horror",
    "scary": "horror",
    "thriller": "horror",
    "creepy": "horror",
    "drama": "drama",
}

DRAMATIC_THEMES = ("horror", "drama")


def theme_for_category(category: Optional[str]) -> str:
    return CATEGORY_THEME_MAP.get(str(category or "").strip().lower(), "default")


@dataclass(frozen=True)
class IntroTiming:
    dramatic_hold: float = 1.5
    dramatic_fade: float = 0.5
    title_hold: float = 2.0
    audio_timeout: float = 5.0
    poll_interval: float = 0.05


class IntroPhase(Enum):
    PENDING = "pending"
    TITLE = "title"
    NARRATION = "narration"
    FADING = "fading"
    DONE = "done"


@dataclass(frozen=True)
class TitleState:
    visible: bool = False
    opacity: float = 0.0


class IntroSequencer:
    def __init__(
        self,
        spec: Optional[IntroSpec],
        sink: IRenderSink,
        cues: AudioCueDispatcher,
        audio: Optional[IAudio] = None,
        events: Optional[EventSystem] = None,
        timing: Optional[IntroTiming] = None,
    ) -> None:
        self.spec = spec if spec is not None and spec.title_text.strip() else None
        self.sink = sink if isinstance(sink, GuardedSink) else GuardedSink(sink)
        self.cues = cues
        self.audio = audio if audio is not None else (cues.audio if cues.audio is not None else NullAudio())
        self.events = events
        self.timing = timing if timing is not None else IntroTiming()
        self.phase = IntroPhase.PENDING

    @property
    def done(self) -> bool:
        return self.phase is IntroPhase.DONE

    @property
    def dramatic(self) -> bool:
        return self.spec is not None and self.spec.theme in DRAMATIC_THEMES

    @property
    def narrated(self) -> bool:
        return self.spec is not None and not self.dramatic and bool(self.spec.audio_path)

    # ------------------------------------------------------------------
    # Pure projections for frame capture
    # ------------------------------------------------------------------

    def planned_duration(self, audio_length: Optional[float] = None) -> float:
        """Intro length before timeline origin 0.

        For narrated intros pass the clip length; an unknown or failed clip
        counts as the full timeout.
        """
        if self.spec is None:
            return 0.0
        tm = self.timing
        if self.dramatic:
            return tm.dramatic_hold + tm.dramatic_fade
        if self.narrated:
            if audio_length is None:
                return tm.audio_timeout
            return min(max(0.0, audio_length), tm.audio_timeout)
        return tm.title_hold

    def title_state(self, t: float, audio_length: Optional[float] = None) -> TitleState:
        if self.spec is None or t < 0:
            return TitleState()
        end = self.planned_duration(audio_length)
        if t >= end:
            return TitleState()
        if self.dramatic and t >= self.timing.dramatic_hold:
            progress = (t - self.timing.dramatic_hold) / self.timing.dramatic_fade
            return TitleState(visible=True, opacity=max(0.0, 1.0 - progress))
        return TitleState(visible=True, opacity=1.0)

    # ------------------------------------------------------------------
    # Realtime run
    # ------------------------------------------------------------------

    def skip(self, reason: str = "skipped") -> None:
        """Bypass the intro (seek/resume); BGM starts immediately."""
        if self.done:
            return
        self.phase = IntroPhase.DONE
        self.cues.bgm_start(reason)
        if self.events is not None:
            self.events.emit(IntroCompleteEvent(skipped=True))

    def run(self, clock: Optional[Clock] = None, token: Optional[CancellationToken] = None) -> bool:
        """Play the intro. Returns False if cancelled before completion."""
        if self.done:
            return True
        if self.spec is None:
            self.skip("no_intro")
            return True
        clock = clock if clock is not None else WallClock()
        token = token if token is not None else CancellationToken()
        spec = self.spec
        tm = self.timing

        def cancelled() -> bool:
            if token.cancelled:
                logger.debug(f"Intro cancelled during {self.phase.value}")
                return True
            return False

        if cancelled():
            return False
        if self.events is not None:
            self.events.emit(IntroStartEvent(title=spec.title_text, theme=spec.theme))
        self.phase = IntroPhase.TITLE
        self.sink.on_title_show(spec.title_text, spec.theme)

        if self.dramatic:
            clock.sleep(tm.dramatic_hold, token)
        elif self.narrated:
            self.phase = IntroPhase.NARRATION
            self._narrate(spec.audio_path or "", clock, token)
        else:
            clock.sleep(tm.title_hold, token)
        if cancelled():
            return False

        self.cues.swoosh()
        if self.dramatic:
            self.phase = IntroPhase.FADING
            self.sink.on_title_fade(tm.dramatic_fade)
            clock.sleep(tm.dramatic_fade, token)
            if cancelled():
                return False
        self.sink.on_title_hide()
        self.phase = IntroPhase.DONE
        self.cues.bgm_start("intro")
        if self.events is not None:
            self.events.emit(IntroCompleteEvent(skipped=False))
        return True

    def _narrate(self, path: str, clock: Clock, token: CancellationToken) -> None:
        tm = self.timing
        try:
            length = self.audio.play_voice(path)
        except Exception as e:
            logger.error(f"Intro audio {path} failed: {e}", exc_info=True)
            length = None
        if length is None:
            # failed clip: treated as complete once the timeout elapses
            clock.sleep(tm.audio_timeout, token)
            return
        start = clock.now()
        while not token.cancelled:
            elapsed = clock.now() - start
            if elapsed >= tm.audio_timeout:
                logger.debug(f"Intro audio {path} hit the {tm.audio_timeout}s timeout")
                break
            try:
                busy = self.audio.voice_busy()
            except Exception as e:
                logger.error(f"Intro audio status failed: {e}", exc_info=True)
                busy = False
            if not busy:
                break
            clock.sleep(min(tm.poll_interval, tm.audio_timeout - elapsed), token)
        try:
            self.audio.stop_voice()
        except Exception as e:
            logger.error(f"Stopping intro audio failed: {e}", exc_info=True)
