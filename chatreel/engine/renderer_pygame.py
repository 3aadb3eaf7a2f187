from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pygame
from pygame import Surface

from chatreel.engine.clock import CancellationToken, Clock
from chatreel.engine.intro import TitleState
from chatreel.engine.overlay import EffectState
from chatreel.engine.sink import IRenderSink
from chatreel.script.model import CharacterMeta, DialogueItem
from chatreel.ui.textwrap import wrap_text_generic

logger = logging.getLogger(__name__)

# Logical canvas: a phone screen (captured at 3x -> 1080x1920)
LOGICAL_SIZE: Tuple[int, int] = (360, 640)

BG_COLOR = (229, 221, 213)
HEADER_COLOR = (7, 94, 84)
LEFT_BUBBLE = (255, 255, 255)
RIGHT_BUBBLE = (220, 248, 198)
TEXT_COLOR = (20, 20, 20)
DIVIDER_COLOR = (120, 120, 120)
AVATAR_RADIUS = 14


def init_font(font_path: Optional[str], size: int) -> pygame.font.Font:
    if not pygame.font.get_init():
        pygame.font.init()
    if font_path:
        p = Path(font_path)
        if p.exists():
            return pygame.font.Font(str(p), size)
        logger.warning(f"Font not found: {font_path}")
    # Thai-capable system fonts first
    for family in ("Noto Sans Thai", "Tahoma", "Leelawadee UI", "Noto Sans"):
        match = pygame.font.match_font(family)
        if match:
            return pygame.font.Font(match, size)
    return pygame.font.Font(None, size)


def _avatar_color(cid: str) -> Tuple[int, int, int]:
    h = sum(ord(c) * (i + 1) for i, c in enumerate(cid or "?"))
    return (60 + h % 150, 60 + (h // 7) % 150, 60 + (h // 49) % 150)


@dataclass(frozen=True)
class CameraParams:
    zoom: float = 1.0
    offset: Tuple[int, int] = (0, 0)
    darkness: int = 0
    bars: int = 0

    @property
    def is_identity(self) -> bool:
        return self == CameraParams()


def camera_params(name: str, progress: float, size: Tuple[int, int] = LOGICAL_SIZE) -> CameraParams:
    """Camera transform of an effect at progress in [0, 1].

    zoom_in squeezes letterbox bars in and holds a close-up until released;
    shake, zoom_shake and darken are short pulses. Unknown names leave the
    frame untouched.
    """
    p = max(0.0, min(1.0, progress))
    pulse = math.sin(math.pi * p)
    shake = (int(round(6 * (1.0 - p) * math.sin(p * 10 * math.pi))), 0)
    if name == "zoom_in":
        # ease in over the first fifth, release over the last fifth
        hold = max(0.0, min(1.0, p / 0.2, (1.0 - p) / 0.2))
        return CameraParams(zoom=1.0 + 0.2 * hold, bars=int(size[1] * 0.08 * hold))
    if name == "shake":
        return CameraParams(offset=shake)
    if name == "zoom_shake":
        return CameraParams(zoom=1.0 + 0.12 * pulse, offset=shake)
    if name == "darken":
        return CameraParams(darkness=int(170 * pulse))
    return CameraParams()


class PygameChatView(IRenderSink):
    """Chat screen drawn with pygame; usable as a window or off-screen.

    Holds only visible state. Both playback drivers mutate it through the
    sink API, and draw() turns the state into a frame.
    """

    def __init__(self, room_name: str = "", size: Tuple[int, int] = LOGICAL_SIZE,
                 font_path: Optional[str] = None, font_size: int = 16) -> None:
        self.size = size
        self.room_name = room_name
        self.font = init_font(font_path, font_size)
        self.small_font = init_font(font_path, max(10, int(font_size * 0.75)))
        self.title_font = init_font(font_path, int(font_size * 1.8))
        self.messages: List[Tuple[DialogueItem, CharacterMeta, bool]] = []
        self.typing: Optional[CharacterMeta] = None
        self.overlay_text: Optional[str] = None
        self.overlay_active = False
        self.title: Optional[Tuple[str, str]] = None
        self._title_fade: Optional[Tuple[int, float]] = None
        self._images: Dict[str, Optional[Surface]] = {}
        self._avatars: Dict[str, Optional[Surface]] = {}
        # pinned by the stepped driver; a live effect runs off pygame ticks
        self.effect: Optional[EffectState] = None
        self._live_effect: Optional[Tuple[str, int, float]] = None

    # ------------------------------------------------------------------
    # Sink API
    # ------------------------------------------------------------------

    def on_message_appear(self, item: DialogueItem, character: CharacterMeta, consecutive: bool) -> None:
        self.messages.append((item, character, consecutive))

    def on_typing_show(self, character: CharacterMeta) -> None:
        self.typing = character

    def on_typing_hide(self) -> None:
        self.typing = None

    def on_overlay_show(self, text: Optional[str]) -> None:
        self.overlay_text = text
        self.overlay_active = True

    def on_overlay_hide(self) -> None:
        self.overlay_text = None
        self.overlay_active = False

    def on_title_show(self, text: str, theme: str) -> None:
        self.title = (text, theme)
        self._title_fade = None

    def on_title_fade(self, duration: float) -> None:
        self._title_fade = (pygame.time.get_ticks(), max(0.001, duration))

    def on_title_hide(self) -> None:
        self.title = None
        self._title_fade = None

    def on_effect_start(self, name: str, duration: float) -> None:
        self.effect = None
        self._live_effect = (name, pygame.time.get_ticks(), max(0.001, duration))

    def on_effect_frame(self, effect: Optional[EffectState]) -> None:
        self._live_effect = None
        self.effect = effect

    def current_effect(self) -> Optional[EffectState]:
        if self._live_effect is None:
            return self.effect
        name, start, duration = self._live_effect
        elapsed = (pygame.time.get_ticks() - start) / 1000.0
        if elapsed >= duration:
            self._live_effect = None
            return None
        return EffectState(name, elapsed, duration)

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def _image(self, path: str) -> Optional[Surface]:
        if path not in self._images:
            try:
                img = pygame.image.load(path)
                w, h = img.get_size()
                scale = min(130 / max(1, w), 130 / max(1, h), 1.0)
                self._images[path] = pygame.transform.smoothscale(img, (max(1, int(w * scale)), max(1, int(h * scale))))
            except (pygame.error, FileNotFoundError) as e:
                logger.warning(f"Failed to load image {path}: {e}")
                self._images[path] = None
        return self._images[path]

    def _avatar(self, path: str) -> Optional[Surface]:
        if path not in self._avatars:
            try:
                d = AVATAR_RADIUS * 2
                face = pygame.Surface((d, d), pygame.SRCALPHA)
                face.blit(pygame.transform.scale(pygame.image.load(path), (d, d)), (0, 0))
                mask = pygame.Surface((d, d), pygame.SRCALPHA)
                pygame.draw.circle(mask, (255, 255, 255, 255), (AVATAR_RADIUS, AVATAR_RADIUS), AVATAR_RADIUS)
                face.blit(mask, (0, 0), special_flags=pygame.BLEND_RGBA_MIN)
                self._avatars[path] = face
            except (pygame.error, FileNotFoundError) as e:
                logger.warning(f"Failed to load avatar {path}: {e}")
                self._avatars[path] = None
        return self._avatars[path]

    def _bubble(self, item: DialogueItem, character: CharacterMeta, consecutive: bool) -> Surface:
        if character.side == "center":
            label = self.small_font.render(item.text, True, (255, 255, 255))
            pill = pygame.Surface((label.get_width() + 20, label.get_height() + 8), pygame.SRCALPHA)
            pygame.draw.rect(pill, DIVIDER_COLOR, pill.get_rect(), border_radius=10)
            pill.blit(label, (10, 4))
            return pill
        max_w = int(self.size[0] * 0.62)
        lines = wrap_text_generic(item.text, lambda s: self.font.size(s)[0], max_w - 16)
        rendered = [self.font.render(line, True, TEXT_COLOR) for line in lines]
        image = self._image(item.image_path) if item.image_path else None
        if item.image_path and image is None:
            image = self.small_font.render("[sticker]", True, DIVIDER_COLOR)
        width = max([r.get_width() for r in rendered] + [image.get_width() if image else 0] + [20]) + 16
        height = sum(r.get_height() for r in rendered) + (image.get_height() + 4 if image else 0) + 12
        surf = pygame.Surface((width, height), pygame.SRCALPHA)
        color = LEFT_BUBBLE if character.is_left else RIGHT_BUBBLE
        pygame.draw.rect(surf, color, surf.get_rect(), border_radius=4 if consecutive else 10)
        y = 6
        if image is not None:
            surf.blit(image, ((width - image.get_width()) // 2, y))
            y += image.get_height() + 4
        for r in rendered:
            surf.blit(r, (8, y))
            y += r.get_height()
        return surf

    def _draw_avatar(self, canvas: Surface, character: CharacterMeta, pos: Tuple[int, int]) -> None:
        face = self._avatar(character.avatar) if character.avatar else None
        if face is not None:
            canvas.blit(face, face.get_rect(center=pos))
            return
        pygame.draw.circle(canvas, _avatar_color(character.id), pos, AVATAR_RADIUS)
        initial = self.small_font.render((character.name or "?")[:1].upper(), True, (255, 255, 255))
        canvas.blit(initial, initial.get_rect(center=pos))

    def draw(self, canvas: Surface, title: Optional[TitleState] = None) -> None:
        w, h = self.size
        canvas.fill(BG_COLOR)
        header_h = 48
        bottom = h - 12

        if self.typing is not None:
            dots = self.font.render("...", True, TEXT_COLOR)
            bubble = pygame.Rect(46, bottom - 28, dots.get_width() + 20, 28)
            pygame.draw.rect(canvas, LEFT_BUBBLE, bubble, border_radius=10)
            canvas.blit(dots, (bubble.x + 10, bubble.y + 2))
            self._draw_avatar(canvas, self.typing, (24, bubble.centery))
            bottom = bubble.y - 8

        # newest at the bottom; older bubbles scroll off the top
        for item, character, consecutive in reversed(self.messages):
            if bottom <= header_h:
                break
            surf = self._bubble(item, character, consecutive)
            y = bottom - surf.get_height()
            if character.side == "center":
                x = (w - surf.get_width()) // 2
            elif character.is_left:
                x = 46
                if not consecutive:
                    self._draw_avatar(canvas, character, (24, y + 14))
            else:
                x = w - surf.get_width() - 12
            canvas.blit(surf, (x, y))
            bottom = y - (4 if consecutive else 10)

        pygame.draw.rect(canvas, HEADER_COLOR, pygame.Rect(0, 0, w, header_h))
        name = self.font.render(self.room_name or "Chat", True, (255, 255, 255))
        canvas.blit(name, (16, (header_h - name.get_height()) // 2))

        effect = self.current_effect()
        if effect is not None:
            self._apply_camera(canvas, camera_params(effect.name, effect.progress, self.size))

        if self.overlay_active:
            shade = pygame.Surface((w, h), pygame.SRCALPHA)
            shade.fill((0, 0, 0, 220))
            canvas.blit(shade, (0, 0))
            text = self.title_font.render(self.overlay_text or "", True, (255, 255, 255))
            canvas.blit(text, text.get_rect(center=(w // 2, h // 2)))

        self._draw_title(canvas, title)

    def _apply_camera(self, canvas: Surface, params: CameraParams) -> None:
        if params.is_identity:
            return
        w, h = self.size
        if params.zoom != 1.0 or params.offset != (0, 0):
            zw, zh = int(w * params.zoom), int(h * params.zoom)
            shot = pygame.transform.scale(canvas, (zw, zh)) if (zw, zh) != (w, h) else canvas.copy()
            canvas.fill(BG_COLOR)
            dx, dy = params.offset
            canvas.blit(shot, ((w - zw) // 2 + dx, (h - zh) // 2 + dy))
        if params.bars:
            pygame.draw.rect(canvas, (0, 0, 0), pygame.Rect(0, 0, w, params.bars))
            pygame.draw.rect(canvas, (0, 0, 0), pygame.Rect(0, h - params.bars, w, params.bars))
        if params.darkness:
            shade = pygame.Surface((w, h), pygame.SRCALPHA)
            shade.fill((0, 0, 0, params.darkness))
            canvas.blit(shade, (0, 0))

    def _draw_title(self, canvas: Surface, state: Optional[TitleState]) -> None:
        if state is None:
            if self.title is None:
                return
            opacity = 1.0
            if self._title_fade is not None:
                start, duration = self._title_fade
                opacity = max(0.0, 1.0 - (pygame.time.get_ticks() - start) / (duration * 1000))
            text = self.title[0]
        else:
            if not state.visible:
                return
            opacity = state.opacity
            text = self.title[0] if self.title else ""
        w, h = self.size
        card = pygame.Surface((w, h), pygame.SRCALPHA)
        card.fill((0, 0, 0, int(255 * opacity)))
        label = self.title_font.render(text, True, (255, 255, 255))
        label.set_alpha(int(255 * opacity))
        card.blit(label, label.get_rect(center=(w // 2, h // 2)))
        canvas.blit(card, (0, 0))

    def render_frame(self, title: Optional[TitleState] = None) -> Surface:
        canvas = pygame.Surface(self.size)
        self.draw(canvas, title)
        return canvas

    def save_frame(self, path: Path | str, title: Optional[TitleState] = None, scale: int = 1) -> None:
        frame = self.render_frame(title)
        if scale > 1:
            frame = pygame.transform.scale(frame, (self.size[0] * scale, self.size[1] * scale))
        pygame.image.save(frame, str(path))


class PygameClock(Clock):
    """Clock whose waits keep a preview window alive.

    Sleeping pumps window events, redraws the view and ticks at `fps`
    until the deadline. Closing the window or pressing Escape cancels
    the playback token.
    """

    def __init__(self, view: PygameChatView, screen: Surface, fps: int = 60) -> None:
        self.view = view
        self.screen = screen
        self.fps = max(10, int(fps))
        self._clock = pygame.time.Clock()

    def now(self) -> float:
        return pygame.time.get_ticks() / 1000.0

    def pump(self, token: Optional[CancellationToken] = None) -> None:
        for event in pygame.event.get():
            if event.type == pygame.QUIT or (event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE):
                if token is not None:
                    token.cancel()
        self.view.draw(self.screen)
        pygame.display.flip()

    def sleep(self, seconds: float, token: Optional[CancellationToken] = None) -> None:
        deadline = self.now() + max(0.0, seconds)
        while True:
            self.pump(token)
            if (token is not None and token.cancelled) or self.now() >= deadline:
                break
            self._clock.tick(self.fps)
