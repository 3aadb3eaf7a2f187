from __future__ import annotations

"""Pluggable audio backends for playback.

- IAudio: interface used by the cue dispatcher and the intro sequencer
- PygameAudio: pygame.mixer implementation
- NullAudio: silent backend for headless capture
"""

from .audio import IAudio, NullAudio, PygameAudio  # noqa: F401
