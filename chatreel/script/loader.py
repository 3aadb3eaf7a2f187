from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import StoryError
from .model import CharacterMeta, DialogueItem, IntroSpec, Story

logger = logging.getLogger(__name__)


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value)
    return s if s.strip() else None


def _parse_characters(raw: Any) -> Dict[str, CharacterMeta]:
    # Either {id: {...}} (project export) or [{"id": ..., ...}] (character library)
    out: Dict[str, CharacterMeta] = {}
    if isinstance(raw, dict):
        pairs = list(raw.items())
    elif isinstance(raw, list):
        pairs = [(c.get("id"), c) for c in raw if isinstance(c, dict)]
    else:
        return out
    for cid, c in pairs:
        if cid is None or not isinstance(c, dict):
            continue
        cid = str(cid)
        side = str(c.get("side") or "left").strip().lower()
        if side not in ("left", "right"):
            logger.warning(f"Character {cid!r} has unknown side {side!r}, using 'left'")
            side = "left"
        out[cid] = CharacterMeta(
            id=cid,
            name=str(c.get("name") or cid),
            avatar=_opt_str(c.get("avatar")),
            side=side,
        )
    return out


def _parse_dialogue(raw: Dict[str, Any], position: int) -> DialogueItem:
    order = raw.get("order", raw.get("seq_order"))
    try:
        order_i = int(order) if order is not None else position
    except (TypeError, ValueError):
        logger.warning(f"Dialogue {position} has non-integer order {order!r}, using position")
        order_i = position
    message = raw.get("message")
    return DialogueItem(
        sender=str(raw.get("sender") or ""),
        message=None if message is None else str(message),
        image_path=_opt_str(raw.get("image_path", raw.get("imagePath"))),
        explicit_delay=raw.get("delay"),
        explicit_reaction_delay=raw.get("reaction_delay"),
        typing_speed=str(raw.get("typing_speed") or "normal"),
        order=order_i,
        camera_effect=_opt_str(raw.get("camera_effect")),
    )


def _parse_intro(data: Dict[str, Any]) -> Optional[IntroSpec]:
    from chatreel.engine.intro import theme_for_category

    raw = data.get("intro")
    if isinstance(raw, dict):
        title = raw.get("title") or raw.get("title_text") or ""
        audio = _opt_str(raw.get("audio_path") or raw.get("audioPath"))
        theme = raw.get("theme")
    else:
        title = data.get("intro_title") or ""
        audio = _opt_str(data.get("intro_audio_path"))
        theme = data.get("theme")
    if not str(title).strip():
        return None
    if not theme:
        theme = theme_for_category(data.get("category"))
    return IntroSpec(title_text=str(title), audio_path=audio, theme=str(theme).lower())


def parse_story(data: Dict[str, Any]) -> Story:
    """Build a Story from the persistence layer's JSON export.

    Structural problems raise StoryError. Field-level anomalies are left for
    the timing engine to degrade gracefully.
    """
    if not isinstance(data, dict):
        raise StoryError("Story must be a JSON object", context=type(data).__name__)
    raw_dialogues = data.get("dialogues", [])
    if not isinstance(raw_dialogues, list):
        raise StoryError("'dialogues' must be a list", context=type(raw_dialogues).__name__)

    dialogues: List[DialogueItem] = []
    for i, raw in enumerate(raw_dialogues):
        if not isinstance(raw, dict):
            raise StoryError("Dialogue entry must be an object", line=i, context=repr(raw)[:80])
        dialogues.append(_parse_dialogue(raw, i))
    # stable: ties keep export order
    dialogues.sort(key=lambda d: d.order)

    return Story(
        title=str(data.get("title") or ""),
        room_name=str(data.get("room_name") or ""),
        characters=_parse_characters(data.get("characters")),
        dialogues=dialogues,
        intro=_parse_intro(data),
        category=_opt_str(data.get("category")),
    )


def load_story(path: Path | str) -> Story:
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise StoryError("Story file is not valid JSON", context=str(e), path=str(p)) from e
    try:
        story = parse_story(data)
    except StoryError as e:
        e.path = str(p)
        raise
    logger.debug(f"Loaded story {story.title!r}: {len(story.dialogues)} dialogues, {len(story.characters)} characters")
    return story
