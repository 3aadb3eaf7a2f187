from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List

from .engine.audio_cues import CueSettings
from .engine.events import BgmStartEvent
from .engine.session import PlaybackSession
from .engine.timing import TimingConfig, load_timing_config, save_timing_config, set_timing_config
from .script.errors import StoryError
from .script.loader import load_story

logger = logging.getLogger(__name__)

COMMANDS = {"preview", "timeline", "capture", "config"}


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {n}")
    return n


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--timing", type=str, default=None, help="Timing config JSON (defaults if missing)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chatreel", description="Chat story playback and capture")
    sub = parser.add_subparsers(dest="cmd")

    p_prev = sub.add_parser("preview", help="Play a story in a window")
    p_prev.add_argument("story", type=str, help="Story JSON exported by the dashboard")
    p_prev.add_argument("--start-at", type=int, default=0, help="Render dialogues before this index instantly and skip the intro")
    p_prev.add_argument("--font", type=str, default=None, help="TTF/OTF font path")
    p_prev.add_argument("--pop", type=str, default=None, help="Message pop sound")
    p_prev.add_argument("--pop-volume", type=float, default=0.5)
    p_prev.add_argument("--swoosh", type=str, default=None, help="Intro swoosh sound")
    p_prev.add_argument("--swoosh-volume", type=float, default=0.7)
    p_prev.add_argument("--bgm", type=str, default=None, help="Background music started after the intro")
    p_prev.add_argument("--bgm-volume", type=float, default=0.3)
    _add_common(p_prev)

    p_tl = sub.add_parser("timeline", help="Print the compiled timeline as JSON")
    p_tl.add_argument("story", type=str)
    p_tl.add_argument("--output", type=str, default=None, help="Write to file instead of stdout")
    _add_common(p_tl)

    p_cap = sub.add_parser("capture", help="Render PNG frames and a cue manifest for the encoder")
    p_cap.add_argument("story", type=str)
    p_cap.add_argument("--out", type=str, default="output/frames", help="Frames directory")
    p_cap.add_argument("--fps", type=_positive_int, default=None, help="Frames per second (timing config FPS by default)")
    p_cap.add_argument("--scale", type=_positive_int, default=3, help="Pixel scale of saved frames (3 -> 1080x1920)")
    p_cap.add_argument("--font", type=str, default=None)
    p_cap.add_argument("--intro-audio-length", type=float, default=None,
                       help="Length of the intro narration clip in seconds")
    _add_common(p_cap)

    p_cfg = sub.add_parser("config", help="Print the timing configuration")
    p_cfg.add_argument("--write", type=str, default=None, help="Write the effective config to this path")
    _add_common(p_cfg)
    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    argv_list = list(argv) if argv is not None else sys.argv[1:]
    # Back-compat: a bare story path means preview
    if argv_list and argv_list[0] not in COMMANDS and not argv_list[0].startswith("-"):
        argv_list = ["preview"] + argv_list
    args = parser.parse_args(argv_list)
    if not args.cmd:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg = load_timing_config(args.timing) if args.timing else TimingConfig()
    set_timing_config(cfg)

    if args.cmd == "config":
        print(json.dumps(cfg.to_dict(), ensure_ascii=False, indent=2))
        if args.write:
            return 0 if save_timing_config(cfg, args.write) else 1
        return 0

    story_path = Path(args.story)
    if not story_path.exists():
        print(f"Story not found: {story_path}")
        return 2
    try:
        story = load_story(story_path)
    except StoryError as e:
        print(f"Invalid story: {e}")
        return 2

    if args.cmd == "timeline":
        session = PlaybackSession(story, config=cfg)
        text = json.dumps(session.timeline.to_dict(), ensure_ascii=False, indent=2)
        if args.output:
            Path(args.output).write_text(text, encoding="utf-8")
        else:
            print(text)
        return 0

    if args.cmd == "capture":
        return _cmd_capture(story, cfg, args)

    return _cmd_preview(story, cfg, args)


def _cmd_preview(story, cfg: TimingConfig, args: argparse.Namespace) -> int:
    import pygame
    from .engine.adapters.audio import PygameAudio
    from .engine.renderer_pygame import LOGICAL_SIZE, PygameChatView, PygameClock

    pygame.init()
    screen = pygame.display.set_mode(LOGICAL_SIZE)
    pygame.display.set_caption(story.title or "chatreel")
    view = PygameChatView(room_name=story.room_name, font_path=args.font)
    audio = PygameAudio()
    cues = CueSettings(pop_path=args.pop, pop_volume=args.pop_volume,
                       swoosh_path=args.swoosh, swoosh_volume=args.swoosh_volume)
    session = PlaybackSession(story, audio=audio, cue_settings=cues, config=cfg)
    if args.bgm:
        session.events.subscribe(BgmStartEvent, lambda e: audio.play_bgm(args.bgm, args.bgm_volume))
    clock = PygameClock(view, screen)
    try:
        completed = session.preview(view, clock=clock, start_at=args.start_at)
        # keep the final state on screen until the window is closed
        while completed and not session.token.cancelled:
            clock.sleep(0.25, session.token)
    finally:
        pygame.quit()
    return 0


def _cmd_capture(story, cfg: TimingConfig, args: argparse.Namespace) -> int:
    # frames are rendered off-screen
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    import pygame
    from .engine.capture import capture_frames, write_manifest
    from .engine.renderer_pygame import PygameChatView

    pygame.init()
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    view = PygameChatView(room_name=story.room_name, font_path=args.font)
    session = PlaybackSession(story, config=cfg)
    intro = session.intro(view)
    if story.intro is not None:
        view.on_title_show(story.intro.title_text, story.intro.theme)

    def save(frame: int, t: float, title) -> None:
        view.save_frame(out_dir / f"frame_{frame:06d}.png", title, scale=args.scale)

    try:
        result = capture_frames(session.stepped(view), save, fps=args.fps, intro=intro,
                                audio_length=args.intro_audio_length)
    finally:
        pygame.quit()
    manifest = write_manifest(out_dir / "manifest.json", session.timeline, result)
    print(f"Captured {result.frame_count} frames -> {out_dir} (manifest: {manifest})")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
