from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Hashable, Optional, Set

from chatreel.engine.adapters.audio import IAudio, NullAudio
from chatreel.engine.events import AudioCueEvent, BgmStartEvent, EventSystem

logger = logging.getLogger(__name__)


@dataclass
class CueSettings:
    pop_path: Optional[str] = None
    pop_volume: float = 0.5
    swoosh_path: Optional[str] = None
    swoosh_volume: float = 0.7
    sfx_enabled: bool = True


class AudioCueDispatcher:
    """One-shot audio cues and the BGM-start signal for one playback session.

    Each occurrence fires at most once: a pop per message index, a single
    swoosh and a single BGM-start per session, however often the intro or
    the executor re-invokes them.
    """

    def __init__(self, audio: Optional[IAudio] = None, events: Optional[EventSystem] = None,
                 settings: Optional[CueSettings] = None) -> None:
        self.audio = audio if audio is not None else NullAudio()
        self.events = events
        self.settings = settings if settings is not None else CueSettings()
        self._fired: Set[Hashable] = set()

    def has_fired(self, key: Hashable) -> bool:
        return key in self._fired

    def _claim(self, key: Hashable) -> bool:
        if key in self._fired:
            return False
        self._fired.add(key)
        return True

    def _play(self, cue: str, path: Optional[str], volume: float, index: Optional[int] = None) -> None:
        if self.settings.sfx_enabled and path:
            try:
                self.audio.play_se(path, volume)
            except Exception as e:
                logger.error(f"Audio cue {cue} failed: {e}", exc_info=True)
        if self.events is not None:
            self.events.emit(AudioCueEvent(cue=cue, path=path, index=index))

    def pop(self, index: int) -> bool:
        """Message pop at appear time. Returns False if already fired."""
        if not self._claim(("pop", index)):
            return False
        self._play("pop", self.settings.pop_path, self.settings.pop_volume, index)
        return True

    def swoosh(self) -> bool:
        if not self._claim("swoosh"):
            logger.debug("Swoosh already fired for this session")
            return False
        self._play("swoosh", self.settings.swoosh_path, self.settings.swoosh_volume)
        return True

    def bgm_start(self, reason: str = "intro") -> bool:
        if not self._claim("bgm"):
            logger.debug("BGM start already signalled for this session")
            return False
        logger.info(f"BGM start ({reason})")
        if self.events is not None:
            self.events.emit(BgmStartEvent(reason=reason))
        return True
