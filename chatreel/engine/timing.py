"""
Timing configuration and per-message timing calculation.

TimingConfig holds every delay constant. The dashboard editor reads the same
values through get_timing_config().to_dict() for its auto-calculated delays.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from chatreel.script.model import DialogueItem, SPEEDS

logger = logging.getLogger(__name__)


def _default_speeds() -> Dict[str, float]:
    return {"fast": 0.7, "normal": 1.0, "slow": 1.4}


@dataclass(frozen=True)
class TimingConfig:
    # The editor's old "auto delay" button used a base of 1.0s; this value
    # is authoritative and the editor should call typing_duration_for().
    base_delay: float = 0.8
    delay_per_char: float = 0.05
    default_reaction: float = 0.6
    burst_reaction: float = 0.4
    speed_multiplier: Dict[str, float] = field(default_factory=_default_speeds)
    long_msg_threshold: int = 50
    long_msg_bonus: float = 1.2
    min_delay: float = 1.2
    max_delay: float = 7.0
    typing_ratio: float = 0.8
    sticker_delay: float = 0.8
    divider_display: float = 2.0
    divider_fade: float = 0.5
    first_left_typing: float = 1.0
    first_right_typing: float = 0.5
    instant_yield: float = 0.01
    fps: int = 30
    ending_buffer: float = 2.0
    empty_duration: float = 5.0
    cinematic_effect: float = 2.5
    camera_effect: float = 0.6

    @property
    def divider_duration(self) -> float:
        return self.divider_display + self.divider_fade

    def to_dict(self) -> Dict[str, Any]:
        """Export in the uppercase shape served to the dashboard."""
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[EXPORT_KEYS[f.name]] = dict(value) if isinstance(value, dict) else value
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimingConfig":
        """Merge a partial mapping over the defaults.

        Accepts both export keys (BASE_DELAY) and attribute names (base_delay).
        Values that cannot be coerced or fall outside VALUE_RANGES are logged
        and ignored.
        """
        base = cls()
        updates: Dict[str, Any] = {}
        for f in fields(cls):
            key = EXPORT_KEYS[f.name]
            if key in data:
                raw = data[key]
            elif f.name in data:
                raw = data[f.name]
            else:
                continue
            current = getattr(base, f.name)
            low, high = VALUE_RANGES.get(f.name, (0, math.inf))
            try:
                if isinstance(current, dict):
                    merged = dict(current)
                    for k, v in dict(raw).items():
                        merged[str(k)] = _checked(float(v), low, high)
                    updates[f.name] = merged
                elif isinstance(current, int) and not isinstance(current, bool):
                    if isinstance(raw, bool) or float(raw) != int(float(raw)):
                        raise ValueError(raw)
                    updates[f.name] = int(_checked(int(float(raw)), low, high))
                else:
                    updates[f.name] = _checked(float(raw), low, high)
            except (TypeError, ValueError, OverflowError):
                logger.warning(f"Ignoring invalid timing value {key}={raw!r}")
        if updates.get("min_delay", base.min_delay) > updates.get("max_delay", base.max_delay):
            logger.warning("Ignoring MIN_DELAY/MAX_DELAY: minimum exceeds maximum")
            updates.pop("min_delay", None)
            updates.pop("max_delay", None)
        return replace(base, **updates)


def _checked(value: float, low: float, high: float) -> float:
    if not math.isfinite(value) or value < low or value > high:
        raise ValueError(value)
    return value


# Accepted [low, high] per field; anything not listed must be >= 0 and finite.
VALUE_RANGES: Dict[str, Tuple[float, float]] = {
    "typing_ratio": (0.0, 1.0),
    "fps": (1, 240),
    "long_msg_bonus": (0.0, 10.0),
    "speed_multiplier": (0.01, 10.0),
}


EXPORT_KEYS: Dict[str, str] = {
    "base_delay": "BASE_DELAY",
    "delay_per_char": "DELAY_PER_CHAR",
    "default_reaction": "DEFAULT_REACTION_DELAY",
    "burst_reaction": "BURST_REACTION_DELAY",
    "speed_multiplier": "SPEED_MULTIPLIER",
    "long_msg_threshold": "LONG_MESSAGE_THRESHOLD",
    "long_msg_bonus": "LONG_MESSAGE_BONUS",
    "min_delay": "MIN_DELAY",
    "max_delay": "MAX_DELAY",
    "typing_ratio": "TYPING_RATIO",
    "sticker_delay": "STICKER_DELAY",
    "divider_display": "DIVIDER_DISPLAY",
    "divider_fade": "DIVIDER_FADE",
    "first_left_typing": "FIRST_LEFT_TYPING",
    "first_right_typing": "FIRST_RIGHT_TYPING",
    "instant_yield": "INSTANT_YIELD",
    "fps": "FPS",
    "ending_buffer": "ENDING_BUFFER",
    "empty_duration": "EMPTY_DURATION",
    "cinematic_effect": "CINEMATIC_EFFECT_DURATION",
    "camera_effect": "CAMERA_EFFECT_DURATION",
}


# ---------------------------------------------------------------------------
# Config persistence
# ---------------------------------------------------------------------------

def load_timing_config(path: Optional[Path | str] = None) -> TimingConfig:
    p = Path(path) if path else Path("timing.json")
    try:
        if p.exists():
            data = json.loads(p.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                return TimingConfig.from_dict(data)
            logger.warning(f"Timing config {p} is not an object, using defaults")
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read timing config {p}: {e}")
    return TimingConfig()


def save_timing_config(cfg: TimingConfig, path: Optional[Path | str] = None) -> bool:
    p = Path(path) if path else Path("timing.json")
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(cfg.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        return True
    except OSError as e:
        logger.error(f"Failed to write timing config {p}: {e}")
        return False


_active_config: Optional[TimingConfig] = None


def get_timing_config() -> TimingConfig:
    """Get the process-wide timing configuration."""
    global _active_config
    if _active_config is None:
        _active_config = TimingConfig()
    return _active_config


def set_timing_config(cfg: Optional[TimingConfig]) -> None:
    """Replace the process-wide configuration (None restores defaults)."""
    global _active_config
    _active_config = cfg


# ---------------------------------------------------------------------------
# Timing calculation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TimingResult:
    reaction_delay: float
    typing_duration: float
    speed: str = "normal"
    source: str = "computed"


def coerce_override(value: Any, what: str = "override") -> Optional[float]:
    """Return a usable override in seconds, or None to fall back to computation."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        logger.warning(f"Ignoring boolean {what} {value!r}")
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric {what} {value!r}")
        return None
    if math.isnan(v) or math.isinf(v) or v < 0:
        logger.warning(f"Ignoring out-of-range {what} {value!r}")
        return None
    return v


def normalize_speed(speed: Any) -> str:
    s = str(speed or "").strip().lower()
    return s if s in SPEEDS else "normal"


def typing_duration_for(text: Optional[str], speed: Any = "normal", config: Optional[TimingConfig] = None) -> float:
    """Clamped typing duration of a text message."""
    cfg = config if config is not None else get_timing_config()
    length = len(text) if isinstance(text, str) else 0
    multiplier = cfg.speed_multiplier.get(normalize_speed(speed), 1.0)
    raw = (cfg.base_delay + length * cfg.delay_per_char) * multiplier
    if length > cfg.long_msg_threshold:
        raw *= cfg.long_msg_bonus
    return max(cfg.min_delay, min(cfg.max_delay, raw))


def reaction_for(sender: str, last_sender: Optional[str], config: Optional[TimingConfig] = None) -> float:
    cfg = config if config is not None else get_timing_config()
    if last_sender is not None and sender == last_sender:
        return cfg.burst_reaction
    return cfg.default_reaction


def calculate_timing(
    item: DialogueItem,
    last_sender: Optional[str],
    is_first: bool = False,
    is_left: bool = True,
    config: Optional[TimingConfig] = None,
) -> TimingResult:
    """Compute (reaction_delay, typing_duration) for a non-divider item.

    Explicit overrides win per field. The first item of a timeline skips the
    reaction pause because the intro already gave the viewer a reading pause.
    """
    cfg = config if config is not None else get_timing_config()
    speed = normalize_speed(item.typing_speed)
    if speed != item.typing_speed:
        logger.debug(f"Unknown typing speed {item.typing_speed!r} for {item.sender!r}, using 'normal'")

    explicit_typing = coerce_override(item.explicit_delay, "delay")
    explicit_reaction = coerce_override(item.explicit_reaction_delay, "reaction_delay")

    source = "computed"
    if explicit_typing is not None:
        typing = explicit_typing
        source = "explicit"
    elif item.is_sticker:
        speed = "fast"
        typing = cfg.sticker_delay
        source = "sticker"
    else:
        typing = typing_duration_for(item.text, speed, cfg)

    if explicit_reaction is not None:
        reaction = explicit_reaction
    else:
        reaction = reaction_for(item.sender, last_sender, cfg)

    if is_first:
        if explicit_reaction is None:
            reaction = 0.0
        if explicit_typing is None:
            typing = cfg.first_left_typing if is_left else cfg.first_right_typing
            source = "first"

    return TimingResult(reaction_delay=reaction, typing_duration=typing, speed=speed, source=source)
