"""Small helpers for scanning HTML fragments and cleaning feed values."""

from __future__ import annotations

import enum
import html.entities
import re


class HtmlTag(enum.Enum):
    """HTML tags recognised by :func:`get_tag_type`."""

    UNKNOWN = "unknown"
    A = "a"
    BR = "br"
    DIV = "div"
    EM = "em"
    P = "p"
    IMG = "img"
    SPAN = "span"
    H1 = "h1"
    H2 = "h2"
    H3 = "h3"
    H4 = "h4"
    H5 = "h5"


_TAG_ORDER = (
    HtmlTag.A,
    HtmlTag.BR,
    HtmlTag.DIV,
    HtmlTag.EM,
    HtmlTag.P,
    HtmlTag.IMG,
    HtmlTag.SPAN,
    HtmlTag.H1,
    HtmlTag.H2,
    HtmlTag.H3,
    HtmlTag.H4,
    HtmlTag.H5,
)

_ENTITY_RE = re.compile(r"&(#[0-9]+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);")


def skip_to_char(text: str, index: int, char: str) -> int:
    """Return the index just past the next ``char`` at or after ``index``, or ``len(text)``."""
    found = text.find(char, index)
    if found == -1:
        return max(index, len(text))
    return found + 1


def next_characters_equal(text: str, index: int, expected: str) -> int | None:
    """Match ``expected`` at ``index`` ignoring spaces in ``text``.

    Returns the index just past the match, or None when it does not match.
    """
    if not expected:
        return None
    position = 0
    for current in range(index, len(text)):
        char = text[current]
        if char == " ":
            continue
        if char != expected[position]:
            return None
        position += 1
        if position >= len(expected):
            return current + 1
    return None


def skip_to(text: str, index: int, target: str) -> int:
    """Return the index just past the next match of ``target``, or ``len(text)``."""
    for current in range(index, len(text)):
        end = next_characters_equal(text, current, target)
        if end is not None:
            return end
    return max(index, len(text))


def get_tag_type(text: str, index: int) -> HtmlTag:
    """Identify the tag starting at ``index`` (an optional leading '<' is skipped)."""
    if index < len(text) and text[index] == "<":
        index += 1
    for tag in _TAG_ORDER:
        if next_characters_equal(text, index, tag.value) is not None:
            return tag
    return HtmlTag.UNKNOWN


def fix_invalid_utf8(data: bytes | str) -> str:
    """Decode ``data`` as UTF-8, replacing invalid sequences with U+FFFD."""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")


def _decode_entity(match: re.Match[str]) -> str:
    body = match.group(1)
    if body.startswith("#"):
        digits = body[1:]
        try:
            codepoint = int(digits[1:], 16) if digits[:1] in ("x", "X") else int(digits)
        except ValueError:
            return match.group(0)
        if codepoint > 0x10FFFF or 0xD800 <= codepoint <= 0xDFFF or codepoint == 0:
            return match.group(0)
        return chr(codepoint)
    return html.entities.html5.get(body + ";", match.group(0))


def decode_html_entities(text: str) -> str:
    """Replace named and numeric HTML entities; unknown ones are left as they are."""
    return _ENTITY_RE.sub(_decode_entity, text)


def clean_xml_value(text: bytes | str) -> str:
    """Drop line breaks, repair invalid UTF-8 and decode HTML entities."""
    if isinstance(text, bytes):
        text = text.replace(b"\r\n", b"").replace(b"\n", b"")
        value = fix_invalid_utf8(text)
    else:
        value = fix_invalid_utf8(text.replace("\r\n", "").replace("\n", ""))
    return decode_html_entities(value)