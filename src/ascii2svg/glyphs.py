"""Glyph classification for box-drawing and ASCII diagram characters."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Iterable


class ArrowDirection(str, Enum):
    NONE = "none"
    FORWARD = "forward"
    BACKWARD = "backward"


def _chars(text: str) -> FrozenSet[str]:
    return frozenset(text.replace(" ", ""))


@dataclass(frozen=True)
class GlyphSet:
    """Accepted glyph vocabulary, one frozenset per structural role.

    Junction sets are tolerated wherever a straight border of the matching
    direction is expected.
    """

    horizontal: FrozenSet[str] = field(default_factory=lambda: _chars("─ ━ ═ - — ╌ ╍ ┄ ┅ ┈ ┉"))
    vertical: FrozenSet[str] = field(default_factory=lambda: _chars("│ ┃ ║ | ╎ ╏ ┆ ┇ ┊ ┋"))
    horizontal_junctions: FrozenSet[str] = field(
        default_factory=lambda: _chars("┬ ┴ ┼ ┳ ┻ ╋ ╦ ╩ ╬ ╤ ╧ ╪ ╥ ╨ ╫")
    )
    vertical_junctions: FrozenSet[str] = field(
        default_factory=lambda: _chars("├ ┤ ┼ ┣ ┫ ╋ ╠ ╣ ╬ ╞ ╡ ╪ ╟ ╢ ╫")
    )
    top_left: FrozenSet[str] = field(default_factory=lambda: _chars("┌ ┏ ╔ ╭ ╒ ╓ +"))
    top_right: FrozenSet[str] = field(default_factory=lambda: _chars("┐ ┓ ╗ ╮ ╕ ╖ +"))
    bottom_left: FrozenSet[str] = field(default_factory=lambda: _chars("└ ┗ ╚ ╰ ╘ ╙ +"))
    bottom_right: FrozenSet[str] = field(default_factory=lambda: _chars("┘ ┛ ╝ ╯ ╛ ╜ +"))
    forward_arrows: FrozenSet[str] = field(default_factory=lambda: _chars("▶ ► > → ⇒ ⟶"))
    backward_arrows: FrozenSet[str] = field(default_factory=lambda: _chars("◀ ◄ < ← ⇐ ⟵"))

    def extended(self, **extra: Iterable[str]) -> "GlyphSet":
        """Return a copy with extra glyphs merged into the named roles."""
        changes = {}
        for role, glyphs in extra.items():
            current = getattr(self, role)
            changes[role] = current | frozenset(glyphs)
        return replace(self, **changes)

    @property
    def structural(self) -> FrozenSet[str]:
        return (
            self.horizontal
            | self.vertical
            | self.horizontal_junctions
            | self.vertical_junctions
            | self.top_left
            | self.top_right
            | self.bottom_left
            | self.bottom_right
            | self.forward_arrows
            | self.backward_arrows
        )


DEFAULT_GLYPHS = GlyphSet()


def is_horizontal(c: str, glyphs: GlyphSet = DEFAULT_GLYPHS) -> bool:
    return c in glyphs.horizontal or c in glyphs.horizontal_junctions


def is_vertical(c: str, glyphs: GlyphSet = DEFAULT_GLYPHS) -> bool:
    return c in glyphs.vertical or c in glyphs.vertical_junctions


def is_corner_top_left(c: str, glyphs: GlyphSet = DEFAULT_GLYPHS) -> bool:
    return c in glyphs.top_left


def is_corner_top_right(c: str, glyphs: GlyphSet = DEFAULT_GLYPHS) -> bool:
    return c in glyphs.top_right


def is_corner_bottom_left(c: str, glyphs: GlyphSet = DEFAULT_GLYPHS) -> bool:
    return c in glyphs.bottom_left


def is_corner_bottom_right(c: str, glyphs: GlyphSet = DEFAULT_GLYPHS) -> bool:
    return c in glyphs.bottom_right


def arrow_direction(c: str, glyphs: GlyphSet = DEFAULT_GLYPHS) -> ArrowDirection:
    if c in glyphs.forward_arrows:
        return ArrowDirection.FORWARD
    if c in glyphs.backward_arrows:
        return ArrowDirection.BACKWARD
    return ArrowDirection.NONE


def is_structural(c: str, glyphs: GlyphSet = DEFAULT_GLYPHS) -> bool:
    return c in glyphs.structural


__all__ = [
    "ArrowDirection",
    "DEFAULT_GLYPHS",
    "GlyphSet",
    "arrow_direction",
    "is_corner_bottom_left",
    "is_corner_bottom_right",
    "is_corner_top_left",
    "is_corner_top_right",
    "is_horizontal",
    "is_structural",
    "is_vertical",
]
