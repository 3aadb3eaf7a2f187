from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DIVIDER_SENDER = "time_divider"

SPEEDS = ("slow", "normal", "fast")


@dataclass(frozen=True)
class DialogueItem:
    sender: str
    message: Optional[str] = None
    image_path: Optional[str] = None
    explicit_delay: Optional[Any] = None
    explicit_reaction_delay: Optional[Any] = None
    typing_speed: str = "normal"
    order: int = 0
    camera_effect: Optional[str] = None

    @property
    def is_divider(self) -> bool:
        return self.sender == DIVIDER_SENDER

    @property
    def is_sticker(self) -> bool:
        return bool(self.image_path)

    @property
    def text(self) -> str:
        return self.message if isinstance(self.message, str) else ""


@dataclass(frozen=True)
class CharacterMeta:
    id: str
    name: str
    avatar: Optional[str] = None
    side: str = "left"

    @property
    def is_left(self) -> bool:
        return self.side != "right"


@dataclass(frozen=True)
class IntroSpec:
    title_text: str = ""
    audio_path: Optional[str] = None
    theme: str = "default"


@dataclass
class Story:
    title: str = ""
    room_name: str = ""
    characters: Dict[str, CharacterMeta] = field(default_factory=dict)
    dialogues: List[DialogueItem] = field(default_factory=list)
    intro: Optional[IntroSpec] = None
    category: Optional[str] = None
