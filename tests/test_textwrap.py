from chatreel.ui.textwrap import wrap_text_generic


def test_wrap_on_spaces():
    assert wrap_text_generic("hello world foo", len, 10) == ["hello", "world foo"]


def test_long_word_is_split():
    assert wrap_text_generic("abcdefghijklmnop", len, 5) == ["abcde", "fghij", "klmno", "p"]


def test_thai_wraps_by_character():
    text = "สวัสดีครับ"
    lines = wrap_text_generic(text, len, 4)
    assert all(len(line) <= 4 for line in lines)
    assert "".join(lines) == text


def test_newlines_preserved():
    assert wrap_text_generic("a\n\nb", len, 10) == ["a", "", "b"]


def test_empty_text():
    assert wrap_text_generic("", len, 10) == [""]
