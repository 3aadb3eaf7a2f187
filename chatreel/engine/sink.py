from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from chatreel.engine.overlay import EffectState
from chatreel.script.model import CharacterMeta, DialogueItem

logger = logging.getLogger(__name__)


class IRenderSink:
    """Rendering surface driven by the playback executors.

    The pygame view and the test recorder implement the same API.
    Title-card hooks are optional.
    """

    def on_message_appear(self, item: DialogueItem, character: CharacterMeta, consecutive: bool) -> None:
        raise NotImplementedError

    def on_typing_show(self, character: CharacterMeta) -> None:
        raise NotImplementedError

    def on_typing_hide(self) -> None:
        raise NotImplementedError

    def on_overlay_show(self, text: Optional[str]) -> None:
        raise NotImplementedError

    def on_overlay_hide(self) -> None:
        raise NotImplementedError

    # Intro title card
    def on_title_show(self, text: str, theme: str) -> None:
        pass

    def on_title_fade(self, duration: float) -> None:
        pass

    def on_title_hide(self) -> None:
        pass

    # Camera effects: live start (realtime) or a projected frame (stepped, None = no effect)
    def on_effect_start(self, name: str, duration: float) -> None:
        pass

    def on_effect_frame(self, effect: Optional[EffectState]) -> None:
        pass


class GuardedSink(IRenderSink):
    """Forwards to a sink, logging instead of raising.

    Exceptions thrown by the rendering surface must never abort playback.
    """

    def __init__(self, inner: IRenderSink) -> None:
        self.inner = inner
        self.errors = 0

    def _call(self, name: str, *args: Any) -> None:
        try:
            getattr(self.inner, name)(*args)
        except Exception as e:
            self.errors += 1
            logger.error(f"Render sink {name} failed: {e}", exc_info=True)

    def on_message_appear(self, item: DialogueItem, character: CharacterMeta, consecutive: bool) -> None:
        self._call("on_message_appear", item, character, consecutive)

    def on_typing_show(self, character: CharacterMeta) -> None:
        self._call("on_typing_show", character)

    def on_typing_hide(self) -> None:
        self._call("on_typing_hide")

    def on_overlay_show(self, text: Optional[str]) -> None:
        self._call("on_overlay_show", text)

    def on_overlay_hide(self) -> None:
        self._call("on_overlay_hide")

    def on_title_show(self, text: str, theme: str) -> None:
        self._call("on_title_show", text, theme)

    def on_title_fade(self, duration: float) -> None:
        self._call("on_title_fade", duration)

    def on_title_hide(self) -> None:
        self._call("on_title_hide")

    def on_effect_start(self, name: str, duration: float) -> None:
        self._call("on_effect_start", name, duration)

    def on_effect_frame(self, effect: Optional[EffectState]) -> None:
        self._call("on_effect_frame", effect)


class RecordingSink(IRenderSink):
    """Headless sink that keeps the visible state and a call log."""

    def __init__(self) -> None:
        self.messages: List[Tuple[DialogueItem, CharacterMeta, bool]] = []
        self.typing: Optional[CharacterMeta] = None
        self.overlay: Optional[str] = None
        self.overlay_active = False
        self.title: Optional[str] = None
        self.effect: Optional[str] = None
        self.calls: List[Tuple[str, Any]] = []

    def on_message_appear(self, item: DialogueItem, character: CharacterMeta, consecutive: bool) -> None:
        self.messages.append((item, character, consecutive))
        self.calls.append(("message", item.order))

    def on_typing_show(self, character: CharacterMeta) -> None:
        self.typing = character
        self.calls.append(("typing_show", character.id))

    def on_typing_hide(self) -> None:
        self.typing = None
        self.calls.append(("typing_hide", None))

    def on_overlay_show(self, text: Optional[str]) -> None:
        self.overlay = text
        self.overlay_active = True
        self.calls.append(("overlay_show", text))

    def on_overlay_hide(self) -> None:
        self.overlay = None
        self.overlay_active = False
        self.calls.append(("overlay_hide", None))

    def on_title_show(self, text: str, theme: str) -> None:
        self.title = text
        self.calls.append(("title_show", theme))

    def on_title_fade(self, duration: float) -> None:
        self.calls.append(("title_fade", duration))

    def on_title_hide(self) -> None:
        self.title = None
        self.calls.append(("title_hide", None))

    def on_effect_start(self, name: str, duration: float) -> None:
        self.effect = name
        self.calls.append(("effect_start", name))

    def on_effect_frame(self, effect: Optional[EffectState]) -> None:
        self.effect = effect.name if effect is not None else None

    @property
    def visible(self) -> List[DialogueItem]:
        return [m[0] for m in self.messages]
