from __future__ import annotations

from typing import Callable, List


def _breaks_by_char(s: str) -> bool:
    # Thai and CJK scripts don't separate words with spaces
    return any("\u0e00" <= ch <= "\u0e7f" or "\u4e00" <= ch <= "\u9fff" for ch in s)


def wrap_text_generic(text: str, measure: Callable[[str], int], max_width: int) -> List[str]:
    """Wrap bubble text into lines no wider than max_width.

    - Thai/CJK paragraphs wrap by character.
    - Other paragraphs wrap on spaces; a single word wider than the bubble
      is split by character.

    Parameters:
        text: Message text, may contain newlines.
        measure: Returns the pixel width of a string.
        max_width: Line width limit in pixels.
    Returns:
        List[str]: Wrapped lines; explicit newlines are preserved.
    """
    out: List[str] = []
    for para in text.split("\n"):
        if para == "":
            out.append("")
            continue
        if _breaks_by_char(para):
            out.extend(_wrap_chars(para, measure, max_width))
            continue
        cur = ""
        for word in para.split():
            test = (cur + " " + word).strip()
            if measure(test) <= max_width:
                cur = test
                continue
            if cur:
                out.append(cur)
            if measure(word) > max_width:
                pieces = _wrap_chars(word, measure, max_width)
                out.extend(pieces[:-1])
                cur = pieces[-1] if pieces else ""
            else:
                cur = word
        if cur:
            out.append(cur)
    return out


def _wrap_chars(s: str, measure: Callable[[str], int], max_width: int) -> List[str]:
    lines: List[str] = []
    cur = ""
    for ch in s:
        test = cur + ch
        if measure(test) <= max_width or not cur:
            cur = test
        else:
            lines.append(cur)
            cur = ch
    if cur:
        lines.append(cur)
    return lines
