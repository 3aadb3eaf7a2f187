from __future__ import annotations

from dataclasses import dataclass


@dataclass
class StoryError(Exception):
    """Structural problem in a story export, raised before playback starts.

    `line` is the index of the offending dialogue entry, when there is one.
    """
    message: str
    line: int | None = None
    context: str | None = None
    path: str | None = None

    def __str__(self) -> str:
        where = self.path or ""
        if self.line is not None:
            where = f"{where} dialogue {self.line}".strip()
        loc = f" ({where})" if where else ""
        ctx = f"\n  >> {self.context}" if self.context else ""
        return f"{self.message}{loc}{ctx}"
