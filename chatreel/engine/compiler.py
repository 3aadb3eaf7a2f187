"""
Timeline compiler.

Folds the timing calculator over an ordered dialogue list and produces an
immutable Timeline of absolute timestamps. Both playback drivers and the
capture pipeline read the same Timeline, so the live preview and the
exported video share one schedule.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from chatreel.engine.characters import CharacterRoster
from chatreel.engine.timing import TimingConfig, calculate_timing, get_timing_config, reaction_for
from chatreel.script.model import CharacterMeta, DialogueItem

logger = logging.getLogger(__name__)

KIND_MESSAGE = "message"
KIND_DIVIDER = "divider"

NO_EFFECT = ("", "none", "normal")
# effects that hold the longer cinematic duration; the rest are short pulses
CINEMATIC_EFFECTS = ("zoom_in",)


def normalize_effect(name: Optional[str]) -> Optional[str]:
    """Canonical camera effect name ("zoom-in" -> "zoom_in"), or None for no effect."""
    s = str(name or "").strip().lower().replace("-", "_")
    return None if s in NO_EFFECT else s


def effect_duration_for(effect: Optional[str], config: TimingConfig) -> float:
    if effect is None:
        return 0.0
    return config.cinematic_effect if effect in CINEMATIC_EFFECTS else config.camera_effect


@dataclass(frozen=True)
class TimelineEvent:
    index: int
    kind: str
    item: DialogueItem
    character: CharacterMeta
    reaction_start: float
    reaction_delay: float
    typing_start: float
    typing_duration: float
    appear_time: float
    consecutive: bool = False
    # end of the visible typing-indicator span; None when no indicator is shown
    typing_end: Optional[float] = None
    # camera effect started when the element appears
    effect: Optional[str] = None
    effect_duration: float = 0.0

    @property
    def is_divider(self) -> bool:
        return self.kind == KIND_DIVIDER

    @property
    def overlay_end(self) -> float:
        return self.appear_time

    @property
    def effect_end(self) -> float:
        return self.appear_time + self.effect_duration

    @property
    def text(self) -> str:
        return self.item.text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "kind": self.kind,
            "sender": self.item.sender,
            "reactionStart": self.reaction_start,
            "reactionDelay": self.reaction_delay,
            "typingStart": self.typing_start,
            "typingDuration": self.typing_duration,
            "typingEnd": self.typing_end,
            "appearTime": self.appear_time,
            "consecutive": self.consecutive,
            "effect": self.effect,
            "effectDuration": self.effect_duration,
        }


class Timeline:
    """Read-only sequence of compiled events."""

    def __init__(self, events: Sequence[TimelineEvent], config: TimingConfig,
                 last_sender: Optional[str] = None) -> None:
        self._events: Tuple[TimelineEvent, ...] = tuple(events)
        self._config = config
        self.last_sender = last_sender

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[TimelineEvent]:
        return iter(self._events)

    def __getitem__(self, i: int) -> TimelineEvent:
        return self._events[i]

    @property
    def events(self) -> Tuple[TimelineEvent, ...]:
        return self._events

    @property
    def config(self) -> TimingConfig:
        return self._config

    @property
    def end_time(self) -> float:
        return self._events[-1].appear_time if self._events else 0.0

    @property
    def total_duration(self) -> float:
        """When capture should stop: last appearance plus a trailing buffer."""
        if not self._events:
            return self._config.empty_duration
        return self.end_time + self._config.ending_buffer

    def message_events(self) -> List[TimelineEvent]:
        return [e for e in self._events if not e.is_divider]

    def divider_events(self) -> List[TimelineEvent]:
        return [e for e in self._events if e.is_divider]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "events": [e.to_dict() for e in self._events],
            "totalDuration": self.total_duration,
            "fps": self._config.fps,
        }


def compile_timeline(
    dialogues: Sequence[DialogueItem],
    roster: Optional[CharacterRoster] = None,
    config: Optional[TimingConfig] = None,
) -> Timeline:
    cfg = config if config is not None else get_timing_config()
    roster = roster if roster is not None else CharacterRoster()
    events: List[TimelineEvent] = []
    last_sender: Optional[str] = None
    cursor = 0.0
    prev: Optional[TimelineEvent] = None
    typing_ratio = min(1.0, max(0.0, cfg.typing_ratio))

    for i, item in enumerate(dialogues):
        reaction_start = cursor
        character = roster.resolve(item.sender)
        if item.is_divider:
            reaction = reaction_for(item.sender, last_sender, cfg)
            typing = cfg.divider_duration
            typing_start = reaction_start + reaction
            ev = TimelineEvent(
                index=i,
                kind=KIND_DIVIDER,
                item=item,
                character=character,
                reaction_start=reaction_start,
                reaction_delay=reaction,
                typing_start=typing_start,
                typing_duration=typing,
                appear_time=typing_start + typing,
            )
            # scene break: burst mode never spans a divider
            last_sender = None
        else:
            result = calculate_timing(item, last_sender, is_first=(i == 0),
                                      is_left=character.is_left, config=cfg)
            typing_start = reaction_start + result.reaction_delay
            effect = normalize_effect(item.camera_effect)
            consecutive = (prev is not None and not prev.is_divider
                           and prev.item.sender == item.sender)
            ev = TimelineEvent(
                index=i,
                kind=KIND_MESSAGE,
                item=item,
                character=character,
                reaction_start=reaction_start,
                reaction_delay=result.reaction_delay,
                typing_start=typing_start,
                typing_duration=result.typing_duration,
                appear_time=typing_start + result.typing_duration,
                consecutive=consecutive,
                typing_end=(typing_start + result.typing_duration * typing_ratio
                            if character.is_left else None),
                effect=effect,
                effect_duration=effect_duration_for(effect, cfg),
            )
            last_sender = item.sender
        events.append(ev)
        cursor = ev.appear_time
        prev = ev

    timeline = Timeline(events, cfg, last_sender)
    logger.debug(f"Compiled {len(events)} events over {timeline.total_duration:.2f}s")
    return timeline
