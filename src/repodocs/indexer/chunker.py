"""Split file content into overlapping fixed-size windows."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_OVERLAP = 200


@dataclass(frozen=True)
class TextWindow:
    index: int
    start: int  # character offset, inclusive
    end: int  # character offset, exclusive
    start_line: int  # 1-indexed
    end_line: int
    text: str


def split_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> list[TextWindow]:
    """Split ``text`` into windows of ``chunk_size`` chars sharing ``overlap`` chars.

    Consecutive windows overlap so no boundary falls between two chunks
    unseen. The final window ends exactly at the end of the text.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if not 0 <= overlap < chunk_size:
        raise ValueError(f"overlap must be in [0, {chunk_size}), got {overlap}")

    windows: list[TextWindow] = []
    step = chunk_size - overlap
    length = len(text)
    start = 0
    line = 1  # line number at `start`
    line_offset = 0  # offset up to which `line` has been counted

    while start < length:
        end = min(start + chunk_size, length)
        line += text.count("\n", line_offset, start)
        line_offset = start
        piece = text[start:end]
        windows.append(TextWindow(
            index=len(windows),
            start=start,
            end=end,
            start_line=line,
            end_line=line + piece.count("\n", 0, len(piece) - 1),
            text=piece,
        ))
        if end == length:
            break
        start += step

    return windows
