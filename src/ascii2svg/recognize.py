"""Rectangle, connection and label recognition over a character grid.

Everything here is a pure function of the input grid. Rejected box candidates
and dropped arrows are not errors; they are recorded on a ``Diagnostics``
record returned with the result so callers can log or inspect them.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from .glyphs import (
    DEFAULT_GLYPHS,
    ArrowDirection,
    GlyphSet,
    arrow_direction,
    is_corner_bottom_left,
    is_corner_bottom_right,
    is_corner_top_left,
    is_corner_top_right,
    is_horizontal,
    is_vertical,
)
from .grid import BLANK, Grid

_TEXT_RUN = re.compile(r"\S+(?: \S+)*")


@dataclass(frozen=True)
class Rectangle:
    id: int
    left: int
    top: int
    right: int
    bottom: int
    lines: Tuple[str, ...] = ()

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def center(self) -> Tuple[float, float]:
        return (self.left + self.right) / 2.0, (self.top + self.bottom) / 2.0

    @property
    def label(self) -> str:
        return "\n".join(self.lines)

    def contains(self, x: int, y: int) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom


@dataclass(frozen=True)
class Connection:
    source: int
    target: int
    row: int
    column: int
    direction: ArrowDirection

    @property
    def key(self) -> Tuple[int, int, int]:
        return self.source, self.target, self.row


@dataclass(frozen=True)
class Label:
    text: str
    x: int
    y: int
    category: str = "annotation"
    priority: int = 2


@dataclass(frozen=True)
class RejectedCandidate:
    x: int
    y: int
    reason: str


@dataclass(frozen=True)
class DroppedArrow:
    x: int
    y: int
    glyph: str
    reason: str


@dataclass
class Diagnostics:
    corner_candidates: int = 0
    rejected: List[RejectedCandidate] = field(default_factory=list)
    arrows_seen: int = 0
    dropped_arrows: List[DroppedArrow] = field(default_factory=list)
    duplicate_connections: int = 0


@dataclass(frozen=True)
class Recognition:
    grid: Grid
    rectangles: Tuple[Rectangle, ...]
    connections: Tuple[Connection, ...]
    labels: Tuple[Label, ...]
    title: Optional[Label]
    diagnostics: Diagnostics
    glyphs: GlyphSet = DEFAULT_GLYPHS


def recognize(
    source: Union[str, Grid],
    glyphs: GlyphSet = DEFAULT_GLYPHS,
    *,
    detect_title: bool = True,
) -> Recognition:
    """Recognize boxes, arrows and free text in an ASCII diagram."""
    grid = source if isinstance(source, Grid) else Grid(source)
    diagnostics = Diagnostics()
    rectangles = detect_rectangles(grid, glyphs, diagnostics)
    connections = infer_connections(grid, rectangles, glyphs, diagnostics)
    labels = extract_labels(grid, rectangles, glyphs)
    title: Optional[Label] = None
    if detect_title:
        title, labels = _split_title(grid, rectangles, labels)
    return Recognition(
        grid=grid,
        rectangles=rectangles,
        connections=connections,
        labels=labels,
        title=title,
        diagnostics=diagnostics,
        glyphs=glyphs,
    )


def detect_rectangles(
    grid: Grid,
    glyphs: GlyphSet = DEFAULT_GLYPHS,
    diagnostics: Optional[Diagnostics] = None,
) -> Tuple[Rectangle, ...]:
    """Find every strictly closed rectangle, in row-major order of its top-left corner."""
    if diagnostics is None:
        diagnostics = Diagnostics()
    claimed: Set[Tuple[int, int]] = set()
    found: List[Rectangle] = []
    for y in range(grid.height):
        for x in range(grid.width):
            if not is_corner_top_left(grid.at(x, y), glyphs):
                continue
            diagnostics.corner_candidates += 1
            if (x, y) in claimed:
                diagnostics.rejected.append(RejectedCandidate(x, y, "claimed"))
                continue
            closed = _close_rectangle(grid, x, y, glyphs)
            if isinstance(closed, str):
                diagnostics.rejected.append(RejectedCandidate(x, y, closed))
                continue
            right, bottom = closed
            found.append(
                Rectangle(
                    id=len(found),
                    left=x,
                    top=y,
                    right=right,
                    bottom=bottom,
                    lines=_extract_interior(grid, x, y, right, bottom),
                )
            )
            claimed.add((x, y))
    return tuple(found)


def _close_rectangle(
    grid: Grid, left: int, top: int, glyphs: GlyphSet
) -> Union[Tuple[int, int], str]:
    right = left + 1
    while right < grid.width and is_horizontal(grid.at(right, top), glyphs):
        right += 1
    if not is_corner_top_right(grid.at(right, top), glyphs):
        return "no-top-right"

    bottom = top + 1
    while bottom < grid.height and is_vertical(grid.at(left, bottom), glyphs):
        bottom += 1
    if not is_corner_bottom_left(grid.at(left, bottom), glyphs):
        return "no-bottom-left"

    if not is_corner_bottom_right(grid.at(right, bottom), glyphs):
        return "no-bottom-right"

    for x in range(left + 1, right):
        if not is_horizontal(grid.at(x, top), glyphs) or not is_horizontal(
            grid.at(x, bottom), glyphs
        ):
            return "border-mismatch"
    for y in range(top + 1, bottom):
        if not is_vertical(grid.at(left, y), glyphs) or not is_vertical(
            grid.at(right, y), glyphs
        ):
            return "border-mismatch"
    return right, bottom


def _extract_interior(grid: Grid, left: int, top: int, right: int, bottom: int) -> Tuple[str, ...]:
    rows = [grid.segment(y, left + 1, right) for y in range(top + 1, bottom)]
    return _normalize_interior(rows)


def _normalize_interior(rows: Sequence[str]) -> Tuple[str, ...]:
    """Strip the common leading-space indent, trim trailing whitespace, drop blank rows."""
    indents = [len(row) - len(row.lstrip(" ")) for row in rows if row.strip()]
    indent = min(indents, default=0)
    lines = []
    for row in rows:
        if not row.strip():
            continue
        lines.append(row[indent:].rstrip())
    return tuple(lines)


def display_lines(
    grid: Grid,
    rect: Rectangle,
    rectangles: Sequence[Rectangle],
    glyphs: GlyphSet = DEFAULT_GLYPHS,
) -> Tuple[str, ...]:
    """Interior lines of ``rect`` as drawn on its rendered box.

    Cells of rectangles nested inside ``rect`` are blanked, and rows left with
    nothing but structural glyphs are dropped. A box with no nested rectangles
    keeps its extracted ``lines``.
    """
    nested = [other for other in rectangles if other.id != rect.id and _encloses(rect, other)]
    if not nested:
        return rect.lines
    structural = glyphs.structural
    rows = []
    for y in range(rect.top + 1, rect.bottom):
        row = "".join(
            BLANK if any(inner.contains(x, y) for inner in nested) else grid.at(x, y)
            for x in range(rect.left + 1, rect.right)
        )
        if all(c == BLANK or c in structural for c in row):
            row = ""
        rows.append(row)
    return _normalize_interior(rows)


def _encloses(outer: Rectangle, inner: Rectangle) -> bool:
    return (
        outer.left <= inner.left
        and inner.right <= outer.right
        and outer.top <= inner.top
        and inner.bottom <= outer.bottom
    )


def rectangle_at(rectangles: Sequence[Rectangle], x: int, y: int) -> Optional[int]:
    """Id of the innermost rectangle whose border-inclusive region covers ``(x, y)``.

    Nested boxes win over their containers: the smallest covering area is
    chosen, and among equal areas the later rectangle.
    """
    best: Optional[Rectangle] = None
    for rect in rectangles:
        if not rect.contains(x, y):
            continue
        if best is None or rect.width * rect.height <= best.width * best.height:
            best = rect
    return best.id if best is not None else None


def infer_connections(
    grid: Grid,
    rectangles: Sequence[Rectangle],
    glyphs: GlyphSet = DEFAULT_GLYPHS,
    diagnostics: Optional[Diagnostics] = None,
) -> Tuple[Connection, ...]:
    """Resolve each horizontal arrow glyph to a (source, target) rectangle pair."""
    if diagnostics is None:
        diagnostics = Diagnostics()
    unique: Dict[Tuple[int, int, int], Connection] = {}
    for y in range(grid.height):
        for x in range(len(grid.row(y))):
            glyph = grid.at(x, y)
            direction = arrow_direction(glyph, glyphs)
            if direction is ArrowDirection.NONE:
                continue
            diagnostics.arrows_seen += 1

            left_hit = _resolve_left(grid, rectangles, x, y, glyphs)
            right_hit = _resolve_right(grid, rectangles, x, y, glyphs)
            if direction is ArrowDirection.FORWARD:
                source, target = left_hit, right_hit
            else:
                source, target = right_hit, left_hit

            if source is None or target is None:
                diagnostics.dropped_arrows.append(DroppedArrow(x, y, glyph, "dangling"))
                continue
            if source == target:
                diagnostics.dropped_arrows.append(DroppedArrow(x, y, glyph, "self-loop"))
                continue

            connection = Connection(source, target, y, x, direction)
            if connection.key in unique:
                diagnostics.duplicate_connections += 1
                continue
            unique[connection.key] = connection
    return tuple(unique.values())


def _is_passable(c: str, glyphs: GlyphSet) -> bool:
    # Further arrowheads on the same line belong to the same edge.
    return c == BLANK or is_horizontal(c, glyphs) or arrow_direction(c, glyphs) is not ArrowDirection.NONE


def _resolve_left(
    grid: Grid, rectangles: Sequence[Rectangle], x: int, y: int, glyphs: GlyphSet
) -> Optional[int]:
    xl = x - 1
    while xl >= 0 and _is_passable(grid.at(xl, y), glyphs):
        xl -= 1
    hit = rectangle_at(rectangles, xl, y)
    if hit is None:
        hit = rectangle_at(rectangles, xl + 1, y)
    return hit


def _resolve_right(
    grid: Grid, rectangles: Sequence[Rectangle], x: int, y: int, glyphs: GlyphSet
) -> Optional[int]:
    xr = x + 1
    while xr < grid.width and _is_passable(grid.at(xr, y), glyphs):
        xr += 1
    hit = rectangle_at(rectangles, xr, y)
    if hit is None:
        hit = rectangle_at(rectangles, xr - 1, y)
    return hit


def extract_labels(
    grid: Grid,
    rectangles: Sequence[Rectangle],
    glyphs: GlyphSet = DEFAULT_GLYPHS,
) -> Tuple[Label, ...]:
    """Collect free-text runs lying outside every rectangle."""
    structural = glyphs.structural
    labels: List[Label] = []
    for y in range(grid.height):
        covering = [rect for rect in rectangles if rect.top <= y <= rect.bottom]
        cells = []
        for x in range(grid.width):
            if any(rect.left <= x <= rect.right for rect in covering):
                cells.append(BLANK)
            else:
                cells.append(grid.at(x, y))
        row = "".join(cells)
        for match in _TEXT_RUN.finditer(row):
            text = match.group(0)
            start = match.start()
            while text and (text[0] in structural or text[0] == BLANK):
                text = text[1:]
                start += 1
            while text and (text[-1] in structural or text[-1] == BLANK):
                text = text[:-1]
            if not text:
                continue
            if text.startswith("[") and text.endswith("]"):
                labels.append(Label(text, start, y, "header", 1))
            else:
                labels.append(Label(text, start, y, "annotation", 2))
    return tuple(labels)


def _split_title(
    grid: Grid, rectangles: Sequence[Rectangle], labels: Tuple[Label, ...]
) -> Tuple[Optional[Label], Tuple[Label, ...]]:
    first_row = next((y for y, line in enumerate(grid.lines) if line.strip()), None)
    if first_row is None:
        return None, labels
    if any(rect.top <= first_row for rect in rectangles):
        return None, labels
    on_row = [label for label in labels if label.y == first_row]
    if len(on_row) != 1 or on_row[0].category != "annotation":
        return None, labels
    candidate = on_row[0]
    text = candidate.text.rstrip(":").strip()
    if not text:
        return None, labels
    title = Label(text, candidate.x, candidate.y, "title", 0)
    return title, tuple(label for label in labels if label is not candidate)


__all__ = [
    "Connection",
    "Diagnostics",
    "DroppedArrow",
    "Label",
    "Recognition",
    "Rectangle",
    "RejectedCandidate",
    "detect_rectangles",
    "display_lines",
    "extract_labels",
    "infer_connections",
    "recognize",
    "rectangle_at",
]
