"""Bounds-checked character grid over a block of diagram text."""
from __future__ import annotations

from typing import Tuple

BLANK = " "


class Grid:
    """Immutable 2D character surface built from newline-separated text.

    Rows keep their original length; ``width`` is the longest row and cells
    past the end of a shorter row read as blank.
    """

    __slots__ = ("_lines", "_width")

    def __init__(self, text: str) -> None:
        normalized = text.replace("\r\n", "\n").replace("\r", "\n")
        lines = normalized.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        self._lines: Tuple[str, ...] = tuple(lines)
        self._width = max((len(line) for line in self._lines), default=0)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> Tuple[str, ...]:
        return self._lines

    def at(self, x: int, y: int) -> str:
        if y < 0 or y >= len(self._lines) or x < 0:
            return BLANK
        line = self._lines[y]
        if x >= len(line):
            return BLANK
        return line[x]

    def row(self, y: int) -> str:
        if y < 0 or y >= len(self._lines):
            return ""
        return self._lines[y]

    def segment(self, y: int, start: int, stop: int) -> str:
        """Cells ``[start, stop)`` of row ``y``, padded with blanks."""
        return "".join(self.at(x, y) for x in range(start, stop))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self._lines == other._lines

    def __hash__(self) -> int:
        return hash(self._lines)

    def __repr__(self) -> str:
        return f"Grid(width={self._width}, height={self.height})"
