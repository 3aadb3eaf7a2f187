"""
Playback drivers over one compiled Timeline.

RealtimeExecutor  - interactive preview; cooperative waits on a Clock,
                    cancellable through a CancellationToken.
SteppedExecutor   - frame capture; update(t) is called once per frame by an
                    external clock and converges the sink to the state at t.

Both fire message-appear callbacks in strictly increasing index order and
agree on which messages are visible once the timeline has been consumed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Set

from chatreel.engine.audio_cues import AudioCueDispatcher
from chatreel.engine.clock import CancellationToken, Clock, WallClock
from chatreel.engine.compiler import Timeline, TimelineEvent
from chatreel.engine.events import (
    CameraEffectEvent, EventSystem, MessageAppearEvent, PlaybackCancelledEvent, PlaybackCompleteEvent, PlaybackStartEvent,
)
from chatreel.engine.overlay import effect_state, overlay_state, typing_state
from chatreel.engine.sink import GuardedSink, IRenderSink

logger = logging.getLogger(__name__)


@dataclass
class PlaybackState:
    """Per-session mutable state. Never shared between sessions."""
    last_non_divider_sender: Optional[str] = None
    fired_indices: Set[int] = field(default_factory=set)
    typing_indicator_visible: bool = False
    overlay_active: bool = False

    def mark_fired(self, ev: TimelineEvent) -> bool:
        if ev.index in self.fired_indices:
            return False
        self.fired_indices.add(ev.index)
        self.last_non_divider_sender = None if ev.is_divider else ev.item.sender
        return True


def _guard(sink: IRenderSink) -> GuardedSink:
    return sink if isinstance(sink, GuardedSink) else GuardedSink(sink)


class RealtimeExecutor:
    def __init__(
        self,
        timeline: Timeline,
        sink: IRenderSink,
        cues: Optional[AudioCueDispatcher] = None,
        clock: Optional[Clock] = None,
        token: Optional[CancellationToken] = None,
        events: Optional[EventSystem] = None,
        start_at: int = 0,
    ) -> None:
        self.timeline = timeline
        self.sink = _guard(sink)
        self.cues = cues if cues is not None else AudioCueDispatcher(events=events)
        self.clock = clock if clock is not None else WallClock()
        self.token = token if token is not None else CancellationToken()
        self.events = events
        self.start_at = max(0, int(start_at))
        self.state = PlaybackState()
        self._origin: Optional[float] = None

    def cancel(self) -> None:
        self.token.cancel()

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def _wait_until(self, t: float) -> bool:
        """Suspend until timeline time t. False if cancelled."""
        if self.token.cancelled:
            return False
        remaining = (self._origin or 0.0) + t - self.clock.now()
        if remaining > 0:
            self.clock.sleep(remaining, self.token)
        return not self.token.cancelled

    def _appear(self, ev: TimelineEvent, instant: bool) -> None:
        if not self.state.mark_fired(ev):
            return
        self.sink.on_message_appear(ev.item, ev.character, ev.consecutive)
        if self.events is not None:
            self.events.emit(MessageAppearEvent(index=ev.index, kind=ev.kind, sender=ev.item.sender,
                                                appear_time=ev.appear_time, instant=instant))

    def _set_typing(self, ev: Optional[TimelineEvent]) -> None:
        if ev is not None:
            self.sink.on_typing_show(ev.character)
        else:
            self.sink.on_typing_hide()
        self.state.typing_indicator_visible = ev is not None

    def _set_overlay(self, text: Optional[str], active: bool) -> None:
        if active:
            self.sink.on_overlay_show(text)
        else:
            self.sink.on_overlay_hide()
        self.state.overlay_active = active

    def _stop(self, index: int) -> bool:
        logger.debug(f"Realtime playback cancelled before event {index}")
        if self.events is not None:
            self.events.emit(PlaybackCancelledEvent(next_index=index))
        return False

    def play(self) -> bool:
        """Run the timeline to the end. Returns False if cancelled."""
        cfg = self.timeline.config
        if self.events is not None:
            self.events.emit(PlaybackStartEvent(mode="realtime", start_at=self.start_at,
                                                event_count=len(self.timeline)))
        for ev in self.timeline:
            if self.token.cancelled:
                return self._stop(ev.index)

            if ev.index < self.start_at:
                # seek: render already-played history without waits or audio
                self._appear(ev, instant=True)
                self.clock.sleep(cfg.instant_yield, self.token)
                continue

            if self._origin is None:
                self._origin = self.clock.now() - ev.reaction_start

            if ev.is_divider:
                if not self._wait_until(ev.typing_start):
                    return self._stop(ev.index)
                self._set_overlay(ev.text, True)
                if not self._wait_until(ev.typing_start + cfg.divider_display):
                    return self._stop(ev.index)
                self._set_overlay(None, False)
                if not self._wait_until(ev.appear_time):
                    return self._stop(ev.index)
                self._appear(ev, instant=False)
                continue

            if ev.typing_end is not None:
                if not self._wait_until(ev.typing_start):
                    return self._stop(ev.index)
                self._set_typing(ev)
                if not self._wait_until(ev.typing_end):
                    return self._stop(ev.index)
                self._set_typing(None)
            if not self._wait_until(ev.appear_time):
                return self._stop(ev.index)
            self._appear(ev, instant=False)
            if self.token.cancelled:
                return self._stop(ev.index + 1)
            self.cues.pop(ev.index)
            if ev.effect is not None:
                self.sink.on_effect_start(ev.effect, ev.effect_duration)
                if self.events is not None:
                    self.events.emit(CameraEffectEvent(index=ev.index, effect=ev.effect,
                                                       duration=ev.effect_duration))

        if self.token.cancelled:
            return self._stop(len(self.timeline))
        if self.events is not None:
            self.events.emit(PlaybackCompleteEvent(fired_count=len(self.state.fired_indices),
                                                   duration=self.timeline.end_time))
        return True


class SteppedExecutor:
    """Externally clocked driver for frame-accurate capture.

    Audio is not played here; the capture pipeline mixes cues at the same
    timestamps (see capture.sfx_cue_offsets).
    """

    def __init__(self, timeline: Timeline, sink: IRenderSink, events: Optional[EventSystem] = None) -> None:
        self.timeline = timeline
        self.sink = _guard(sink)
        self.events = events
        self.state = PlaybackState()
        self._completed = False
        self._started = False

    @property
    def total_duration(self) -> float:
        return self.timeline.total_duration

    @property
    def finished(self) -> bool:
        return len(self.state.fired_indices) == len(self.timeline)

    def update(self, t: float) -> int:
        """Converge the sink to timeline time t. Returns how many elements were newly fired."""
        if not self._started:
            self._started = True
            if self.events is not None:
                self.events.emit(PlaybackStartEvent(mode="stepped", event_count=len(self.timeline)))

        overlay = overlay_state(self.timeline, t)
        if overlay.active:
            self.sink.on_overlay_show(overlay.text)
        else:
            self.sink.on_overlay_hide()
        self.state.overlay_active = overlay.active

        typing = typing_state(self.timeline, t)
        if typing is not None:
            self.sink.on_typing_show(typing.character)
        else:
            self.sink.on_typing_hide()
        self.state.typing_indicator_visible = typing is not None

        self.sink.on_effect_frame(effect_state(self.timeline, t))

        fired = 0
        for ev in self.timeline:
            if ev.appear_time > t:
                break
            if not self.state.mark_fired(ev):
                continue
            fired += 1
            self.sink.on_message_appear(ev.item, ev.character, ev.consecutive)
            if self.events is not None:
                self.events.emit(MessageAppearEvent(index=ev.index, kind=ev.kind, sender=ev.item.sender,
                                                    appear_time=ev.appear_time))

        if self.finished and not self._completed:
            self._completed = True
            if self.events is not None:
                self.events.emit(PlaybackCompleteEvent(fired_count=len(self.state.fired_indices),
                                                       duration=self.timeline.end_time))
        return fired
