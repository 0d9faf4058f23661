"""String and path helpers shared by the feed reader."""

from __future__ import annotations

import os
from pathlib import Path

_FORBIDDEN_FILENAME_CHARS = ("/", "\\", ":", "*", "?", '"', "<", ">", "|", "=")
_MAX_FILENAME_LENGTH = 150
_URL_SAFE_PUNCTUATION = frozenset("~!*()'")


def replace_all(text: str, old: str, new: str) -> str:
    """Replace every occurrence of ``old`` in ``text``; an empty ``old`` changes nothing."""
    if not old:
        return text
    return text.replace(old, new)


def convert_to_valid_filename(name: str) -> str:
    """Strip characters that are unsafe in file names and keep at most the last 150."""
    for char in _FORBIDDEN_FILENAME_CHARS:
        name = name.replace(char, "")
    if len(name) > _MAX_FILENAME_LENGTH:
        name = name[-_MAX_FILENAME_LENGTH:]
    return name


def get_host_name(url: str) -> str:
    """Return the host part of ``url``, or ``url`` itself when it has no path."""
    start = 0
    protocol_end = url.find("://")
    if protocol_end != -1:
        start = protocol_end + 3
    slash = url.find("/", start)
    if slash != -1:
        return url[start:slash]
    return url


def char_to_hex(char: str | int) -> str:
    """Return the two lower-case hex digits of a single byte."""
    value = ord(char) if isinstance(char, str) else char
    return f"{value & 0xFF:02x}"


def url_encode(text: str) -> str:
    """Percent-encode ``text`` byte by byte, keeping ASCII letters, digits and ~!*()'."""
    parts = []
    for byte in text.encode("utf-8"):
        char = chr(byte)
        if byte < 128 and (char.isalnum() or char in _URL_SAFE_PUNCTUATION):
            parts.append(char)
        else:
            parts.append("%" + char_to_hex(byte))
    return "".join(parts)


def is_file_valid(path: str | os.PathLike[str]) -> bool:
    """Return True when ``path`` is an existing, non-empty file."""
    candidate = Path(path)
    try:
        return candidate.is_file() and candidate.stat().st_size > 0
    except OSError:
        return False