from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from chatreel.engine.compiler import TimelineEvent


@dataclass(frozen=True)
class OverlayState:
    active: bool = False
    text: Optional[str] = None


INACTIVE = OverlayState()


def overlay_state(timeline: Iterable[TimelineEvent], t: float) -> OverlayState:
    """Projection of the divider overlay at time t.

    Active with the divider's text iff t is in [typing_start, appear_time)
    of a divider event. Pure: safe with repeated or non-monotonic t.
    """
    for ev in timeline:
        if ev.is_divider and ev.typing_start <= t < ev.overlay_end:
            return OverlayState(active=True, text=ev.text)
    return INACTIVE


def typing_state(timeline: Iterable[TimelineEvent], t: float) -> Optional[TimelineEvent]:
    """The left-side message whose typing indicator is visible at t, if any."""
    for ev in timeline:
        if ev.typing_end is not None and ev.typing_start <= t < ev.typing_end:
            return ev
    return None


@dataclass(frozen=True)
class EffectState:
    name: str
    elapsed: float
    duration: float

    @property
    def progress(self) -> float:
        if self.duration <= 0:
            return 1.0
        return min(1.0, max(0.0, self.elapsed / self.duration))


def effect_state(timeline: Iterable[TimelineEvent], t: float) -> Optional[EffectState]:
    """Camera effect running at t.

    A newer effect resets the one still running: only the latest effect
    that started at or before t counts, and only until its own end.
    """
    latest: Optional[TimelineEvent] = None
    for ev in timeline:
        if ev.appear_time > t:
            break
        if ev.effect is not None:
            latest = ev
    if latest is None or t >= latest.effect_end:
        return None
    return EffectState(name=latest.effect, elapsed=t - latest.appear_time, duration=latest.effect_duration)
