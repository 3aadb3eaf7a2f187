from __future__ import annotations

import logging
from typing import Optional

from chatreel.engine.adapters.audio import IAudio, NullAudio
from chatreel.engine.audio_cues import AudioCueDispatcher, CueSettings
from chatreel.engine.characters import CharacterRoster
from chatreel.engine.clock import CancellationToken, Clock
from chatreel.engine.compiler import compile_timeline
from chatreel.engine.events import EventSystem
from chatreel.engine.intro import IntroSequencer
from chatreel.engine.playback import RealtimeExecutor, SteppedExecutor
from chatreel.engine.sink import IRenderSink
from chatreel.engine.timing import TimingConfig, get_timing_config
from chatreel.script.model import Story

logger = logging.getLogger(__name__)


class PlaybackSession:
    """One playback of one story: owns its timeline, cues, events and token.

    A preview and a background capture of the same story use two sessions,
    so neither sees the other's fired cues or state.
    """

    def __init__(
        self,
        story: Story,
        audio: Optional[IAudio] = None,
        cue_settings: Optional[CueSettings] = None,
        config: Optional[TimingConfig] = None,
        events: Optional[EventSystem] = None,
    ) -> None:
        self.story = story
        self.config = config if config is not None else get_timing_config()
        self.roster = CharacterRoster(story.characters)
        self.timeline = compile_timeline(story.dialogues, self.roster, self.config)
        self.events = events if events is not None else EventSystem()
        self.audio = audio if audio is not None else NullAudio()
        self.cues = AudioCueDispatcher(self.audio, self.events, cue_settings)
        self.token = CancellationToken()
        self._intro: Optional[IntroSequencer] = None

    def intro(self, sink: IRenderSink) -> IntroSequencer:
        if self._intro is None:
            self._intro = IntroSequencer(self.story.intro, sink, self.cues, self.audio, self.events)
        return self._intro

    def cancel(self) -> None:
        self.token.cancel()

    def preview(self, sink: IRenderSink, clock: Optional[Clock] = None, start_at: int = 0) -> bool:
        """Intro then realtime playback. Seeking (start_at > 0) skips the intro."""
        intro = self.intro(sink)
        if start_at > 0:
            intro.skip()
        elif not intro.run(clock, self.token):
            return False
        executor = RealtimeExecutor(self.timeline, sink, cues=self.cues, clock=clock,
                                    token=self.token, events=self.events, start_at=start_at)
        return executor.play()

    def stepped(self, sink: IRenderSink) -> SteppedExecutor:
        return SteppedExecutor(self.timeline, sink, events=self.events)
