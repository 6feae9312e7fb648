"""Text helpers shared by the document store, checkers and feature handlers.

Positions exchanged with the client count columns in UTF-16 code units, while
Python strings index by code point. Everything that crosses that boundary goes
through the helpers in this module.
"""

import re
from typing import Iterator, List, Optional, Tuple

WORD_RE = re.compile(r"\w+")


def normalize_newlines(text: str) -> str:
    """Convert ``\\r\\n`` and lone ``\\r`` line endings to ``\\n``."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def split_lines(text: str) -> List[str]:
    """Split text into lines the way the client numbers them.

    Args:
        text: Full document text.

    Returns:
        List of lines without terminators. Empty text yields no lines; a
        trailing newline yields a final empty line.
    """
    if not text:
        return []
    return normalize_newlines(text).split("\n")


def utf16_length(text: str) -> int:
    """Get the length of a string in UTF-16 code units."""
    return len(text.encode("utf-16-le")) // 2


def to_utf16_column(line: str, index: int) -> int:
    """Convert a code point index on a line to a UTF-16 column."""
    return utf16_length(line[:index])


def from_utf16_column(line: str, column: int) -> int:
    """Convert a UTF-16 column on a line to a code point index.

    Columns past the end of the line clamp to the line length.
    """
    units = 0
    for index, char in enumerate(line):
        if units >= column:
            return index
        units += 2 if ord(char) > 0xFFFF else 1
    return len(line)


def iter_words(line: str) -> Iterator[Tuple[int, int, str]]:
    """Yield ``(start, end, word)`` code point spans of every word on a line."""
    for match in WORD_RE.finditer(line):
        yield match.start(), match.end(), match.group()


def word_at(lines: List[str], line: int, column: int) -> Optional[Tuple[int, int, str]]:
    """Find the word touching a client position.

    Args:
        lines: Document lines.
        line: Zero-based line number.
        column: UTF-16 column.

    Returns:
        ``(start, end, word)`` with UTF-16 columns, or None if the position is
        outside the document or not on a word.
    """
    if line < 0 or line >= len(lines):
        return None
    text = lines[line]
    index = from_utf16_column(text, column)
    for start, end, word in iter_words(text):
        # A cursor right after the last character still belongs to the word
        if start <= index <= end:
            return to_utf16_column(text, start), to_utf16_column(text, end), word
    return None


def prefix_at(lines: List[str], line: int, column: int) -> str:
    """Get the part of the word under a client position that precedes it.

    Returns an empty string when the position is not on a word.
    """
    found = word_at(lines, line, column)
    if found is None:
        return ""
    start, _, word = found
    # Both columns are UTF-16, the slice is in code points
    return word[: from_utf16_column(word, column - start)]
