"""
Typed playback events.

Carries the discrete signals a playback session sends to its host:
- BgmStartEvent, the one cross-boundary signal (the hosting dashboard
  starts background music when it receives it)
- intro, message and completion notifications for diagnostics/recorders

Listeners run in priority order; a failing listener is logged and never
interrupts playback.
"""
from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

logger = logging.getLogger(__name__)


class Priority(IntEnum):
    """Listener priority - higher values run first."""
    LOW = 25
    NORMAL = 50
    HIGH = 75


@dataclass
class Event:
    """Base class for all playback events."""
    _timestamp: float = field(default_factory=time.time, init=False, repr=False)

    @property
    def timestamp(self) -> float:
        return self._timestamp


# ============================================================================
# Session lifecycle
# ============================================================================

@dataclass
class PlaybackStartEvent(Event):
    """Fired when a driver starts consuming a timeline."""
    mode: str = "realtime"  # "realtime" or "stepped"
    start_at: int = 0
    event_count: int = 0


@dataclass
class PlaybackCompleteEvent(Event):
    """Fired once every event of the timeline has been rendered."""
    fired_count: int = 0
    duration: float = 0.0


@dataclass
class PlaybackCancelledEvent(Event):
    """Fired when a realtime playback stops early through its token."""
    next_index: int = 0


# ============================================================================
# Timeline
# ============================================================================

@dataclass
class MessageAppearEvent(Event):
    """Fired after an element (message or divider) enters the chat list."""
    index: int = 0
    kind: str = "message"
    sender: str = ""
    appear_time: float = 0.0
    instant: bool = False


@dataclass
class CameraEffectEvent(Event):
    """Fired when a live appearance starts a camera effect."""
    index: int = 0
    effect: str = ""
    duration: float = 0.0


# ============================================================================
# Intro & audio
# ============================================================================

@dataclass
class IntroStartEvent(Event):
    title: str = ""
    theme: str = "default"


@dataclass
class IntroCompleteEvent(Event):
    skipped: bool = False


@dataclass
class AudioCueEvent(Event):
    """Fired when a one-shot sound cue plays ("pop", "swoosh")."""
    cue: str = ""
    path: Optional[str] = None
    index: Optional[int] = None


@dataclass
class BgmStartEvent(Event):
    """Tells the host it may start background music."""
    reason: str = "intro"  # "intro", "no_intro", "skipped"


T = TypeVar('T', bound=Event)


@dataclass
class Listener:
    callback: Callable[[Any], None]
    priority: Priority = Priority.NORMAL
    once: bool = False


class EventSystem:
    """
    Typed pub/sub for a playback session.

    Usage:
        events = EventSystem()

        @events.on(BgmStartEvent)
        def start_music(event: BgmStartEvent):
            mixer.play_bgm(path)

        events.emit(BgmStartEvent(reason="intro"))
    """

    def __init__(self, debug: bool = False) -> None:
        self._listeners: Dict[Type[Event], List[Listener]] = defaultdict(list)
        self._debug = debug
        self._emit_count: Dict[Type[Event], int] = defaultdict(int)

    def subscribe(
        self,
        event_type: Type[T],
        callback: Callable[[T], None],
        priority: Priority = Priority.NORMAL,
        once: bool = False,
    ) -> Callable[[], None]:
        """Register a listener. Returns an unsubscribe function."""
        listeners = self._listeners[event_type]
        listeners.append(Listener(callback=callback, priority=priority, once=once))
        listeners.sort(key=lambda l: l.priority, reverse=True)

        def unsubscribe() -> None:
            self.unsubscribe(event_type, callback)
        return unsubscribe

    def unsubscribe(self, event_type: Type[T], callback: Callable[[T], None]) -> bool:
        listeners = self._listeners.get(event_type, [])
        for i, listener in enumerate(listeners):
            if listener.callback == callback:
                listeners.pop(i)
                return True
        return False

    def on(self, event_type: Type[T], priority: Priority = Priority.NORMAL):
        """Decorator form of subscribe()."""
        def decorator(fn: Callable[[T], None]) -> Callable[[T], None]:
            self.subscribe(event_type, fn, priority=priority)
            return fn
        return decorator

    def once(self, event_type: Type[T], callback: Callable[[T], None]) -> Callable[[], None]:
        return self.subscribe(event_type, callback, once=True)

    def emit(self, event: Event) -> Event:
        event_type = type(event)
        self._emit_count[event_type] += 1
        if self._debug:
            logger.debug(f"Emitting {event_type.__name__}: {event}")

        for listener in list(self._listeners.get(event_type, [])):
            if listener.once:
                self.unsubscribe(event_type, listener.callback)
            try:
                listener.callback(event)
            except Exception as e:
                logger.error(f"Error in listener for {event_type.__name__}: {e}", exc_info=True)
        return event

    def listener_count(self, event_type: Optional[Type[Event]] = None) -> int:
        if event_type:
            return len(self._listeners.get(event_type, []))
        return sum(len(l) for l in self._listeners.values())

    def emit_count(self, event_type: Type[Event]) -> int:
        return self._emit_count.get(event_type, 0)

