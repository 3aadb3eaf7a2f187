from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Set

from chatreel.script.model import CharacterMeta, DIVIDER_SENDER

logger = logging.getLogger(__name__)

PLACEHOLDER_NAME = "Unknown"
PLACEHOLDER_AVATAR = "assets/avatars/placeholder.png"

DIVIDER_META = CharacterMeta(id=DIVIDER_SENDER, name="", avatar=None, side="center")


class CharacterRoster:
    """Resolves sender ids to display metadata.

    Unresolvable ids (e.g. a deleted custom character) resolve to a
    placeholder on the left side; each id is logged once.
    """

    def __init__(self, characters: Optional[Dict[str, CharacterMeta] | Iterable[CharacterMeta]] = None) -> None:
        self._chars: Dict[str, CharacterMeta] = {}
        if isinstance(characters, dict):
            self._chars.update(characters)
        elif characters is not None:
            for c in characters:
                self._chars[c.id] = c
        self._missing: Set[str] = set()

    def __contains__(self, sender: str) -> bool:
        return sender in self._chars

    def __len__(self) -> int:
        return len(self._chars)

    def add(self, meta: CharacterMeta) -> None:
        self._chars[meta.id] = meta

    def resolve(self, sender: str) -> CharacterMeta:
        if sender == DIVIDER_SENDER:
            return DIVIDER_META
        meta = self._chars.get(sender)
        if meta is not None:
            return meta
        if sender not in self._missing:
            self._missing.add(sender)
            logger.warning(f"Unknown sender {sender!r}, using placeholder character")
        return CharacterMeta(id=sender, name=PLACEHOLDER_NAME, avatar=PLACEHOLDER_AVATAR, side="left")

    @property
    def missing(self) -> Set[str]:
        return set(self._missing)
