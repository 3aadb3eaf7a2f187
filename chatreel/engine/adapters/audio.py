from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class IAudio(ABC):
    @abstractmethod
    def play_se(self, path: str, volume: float | None = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def play_bgm(self, path: Optional[str], volume: float | None = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def play_voice(self, path: str, volume: float | None = None) -> Optional[float]:  # pragma: no cover - interface
        """Start a narration clip. Returns its length in seconds, None if it could not start."""
        raise NotImplementedError

    @abstractmethod
    def voice_busy(self) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    def stop_voice(self) -> None:
        pass


class NullAudio(IAudio):
    """Silent backend for headless runs."""

    def play_se(self, path: str, volume: float | None = None) -> None:
        pass

    def play_bgm(self, path: Optional[str], volume: float | None = None) -> None:
        pass

    def play_voice(self, path: str, volume: float | None = None) -> Optional[float]:
        return None

    def voice_busy(self) -> bool:
        return False


def _clamp_volume(volume: float | None) -> Optional[float]:
    if volume is None:
        return None
    return max(0.0, min(1.0, float(volume)))


class PygameAudio(IAudio):
    """pygame.mixer backend. Paths go through an optional resolver."""

    def __init__(self, resolve_path: Optional[Callable[[str], str]] = None) -> None:
        self._resolve = resolve_path or (lambda p: str(Path(p)))
        self._sounds: Dict[str, object] = {}
        self._voice_channel = None

    def _ensure_mixer(self) -> bool:
        import pygame
        try:
            if not pygame.mixer.get_init():
                pygame.mixer.init()
            return True
        except pygame.error as e:
            logger.warning(f"Audio mixer unavailable: {e}")
            return False

    def _sound(self, path: str):
        import pygame
        resolved = self._resolve(path)
        snd = self._sounds.get(resolved)
        if snd is None:
            snd = pygame.mixer.Sound(resolved)
            self._sounds[resolved] = snd
        return snd

    def play_se(self, path: str, volume: float | None = None) -> None:
        import pygame
        if not path or not self._ensure_mixer():
            return
        try:
            snd = self._sound(path)
            vol = _clamp_volume(volume)
            if vol is not None:
                snd.set_volume(vol)
            snd.play()
        except (pygame.error, FileNotFoundError) as e:
            logger.warning(f"Failed to play sound {path}: {e}")

    def play_bgm(self, path: Optional[str], volume: float | None = None) -> None:
        import pygame
        if not self._ensure_mixer():
            return
        try:
            if not path:
                pygame.mixer.music.stop()
                return
            pygame.mixer.music.load(self._resolve(path))
            vol = _clamp_volume(volume)
            if vol is not None:
                pygame.mixer.music.set_volume(vol)
            pygame.mixer.music.play(-1)
        except (pygame.error, FileNotFoundError) as e:
            logger.warning(f"Failed to play BGM {path}: {e}")

    def play_voice(self, path: str, volume: float | None = None) -> Optional[float]:
        import pygame
        if not path or not self._ensure_mixer():
            return None
        try:
            snd = pygame.mixer.Sound(self._resolve(path))
            vol = _clamp_volume(volume)
            if vol is not None:
                snd.set_volume(vol)
            self._voice_channel = snd.play()
            return float(snd.get_length())
        except (pygame.error, FileNotFoundError) as e:
            logger.warning(f"Failed to play intro audio {path}: {e}")
            self._voice_channel = None
            return None

    def voice_busy(self) -> bool:
        ch = self._voice_channel
        return bool(ch is not None and ch.get_busy())

    def stop_voice(self) -> None:
        if self._voice_channel is not None:
            self._voice_channel.stop()
            self._voice_channel = None
