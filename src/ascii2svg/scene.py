"""Map recognized diagram structure onto positioned, render-ready scene elements."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .glyphs import ArrowDirection
from .recognize import Connection, Label, Recognition, Rectangle, display_lines

OVERLAP_POLICIES = ("keep", "drop-partial")


class Ascii2SvgConfigError(ValueError):
    """Invalid scene or render configuration, with a stable code for CLI mapping."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class SceneConfig:
    cell_width: float = 12.0
    cell_height: float = 22.0
    padding: float = 20.0
    box_inset: float = 1.0
    arrow_offset: float = 6.0
    title_height: float = 40.0
    min_box_width: int = 0
    min_box_height: int = 0
    overlap_policy: str = "keep"


@dataclass(frozen=True)
class SceneBox:
    id: int
    x: float
    y: float
    width: float
    height: float
    lines: Tuple[str, ...]
    label: str

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0


@dataclass(frozen=True)
class SceneEdge:
    source: int
    target: int
    x1: float
    y1: float
    x2: float
    y2: float
    direction: ArrowDirection
    row: int


@dataclass(frozen=True)
class SceneLabel:
    text: str
    x: float
    y: float
    category: str
    priority: int


@dataclass(frozen=True)
class Scene:
    width: float
    height: float
    title: Optional[SceneLabel]
    headers: Tuple[SceneLabel, ...]
    labels: Tuple[SceneLabel, ...]
    boxes: Tuple[SceneBox, ...]
    edges: Tuple[SceneEdge, ...]


def validate_scene_config(config: SceneConfig) -> None:
    if config.cell_width <= 0 or config.cell_height <= 0:
        raise Ascii2SvgConfigError("E_CONFIG", "cell width and height must be > 0")
    if (
        config.padding < 0
        or config.box_inset < 0
        or config.arrow_offset < 0
        or config.title_height < 0
    ):
        raise Ascii2SvgConfigError(
            "E_CONFIG", "padding, box inset, arrow offset and title height must be >= 0"
        )
    if config.min_box_width < 0 or config.min_box_height < 0:
        raise Ascii2SvgConfigError("E_CONFIG", "minimum box size must be >= 0")
    if config.overlap_policy not in OVERLAP_POLICIES:
        raise Ascii2SvgConfigError(
            "E_CONFIG",
            f'unknown overlap policy "{config.overlap_policy}" '
            f"(expected one of: {', '.join(OVERLAP_POLICIES)})",
        )


def map_scene(recognition: Recognition, config: Optional[SceneConfig] = None) -> Scene:
    """Position every surviving rectangle, connection and label on a pixel canvas."""
    if config is None:
        config = SceneConfig()
    validate_scene_config(config)

    cw = config.cell_width
    ch = config.cell_height
    title_band = config.title_height if recognition.title is not None else 0.0
    ox = config.padding
    oy = config.padding + title_band
    width = 2 * config.padding + recognition.grid.width * cw
    height = 2 * config.padding + title_band + recognition.grid.height * ch

    kept = _select_rectangles(recognition.rectangles, config)
    by_id: Dict[int, Rectangle] = {rect.id: rect for rect in kept}

    boxes = tuple(
        _position_box(
            rect,
            display_lines(recognition.grid, rect, recognition.rectangles, recognition.glyphs),
            ox,
            oy,
            config,
        )
        for rect in kept
    )
    edges = tuple(
        _position_edge(conn, by_id, ox, oy, config)
        for conn in recognition.connections
        if conn.source in by_id and conn.target in by_id
    )

    title: Optional[SceneLabel] = None
    if recognition.title is not None:
        title = SceneLabel(
            recognition.title.text,
            width / 2.0,
            config.padding + title_band / 2.0,
            recognition.title.category,
            recognition.title.priority,
        )

    headers = tuple(
        _position_label(label, ox, oy, cw, ch)
        for label in recognition.labels
        if label.category == "header"
    )
    labels = tuple(
        _position_label(label, ox, oy, cw, ch)
        for label in recognition.labels
        if label.category != "header"
    )

    return Scene(
        width=width,
        height=height,
        title=title,
        headers=headers,
        labels=labels,
        boxes=boxes,
        edges=edges,
    )


def _select_rectangles(rectangles: Tuple[Rectangle, ...], config: SceneConfig) -> List[Rectangle]:
    sized = [
        rect
        for rect in rectangles
        if rect.width >= config.min_box_width and rect.height >= config.min_box_height
    ]
    if config.overlap_policy == "keep":
        return sized
    kept: List[Rectangle] = []
    for rect in sized:
        if any(_overlaps_partially(rect, other) for other in kept):
            continue
        kept.append(rect)
    return kept


def _overlaps_partially(a: Rectangle, b: Rectangle) -> bool:
    disjoint = a.right < b.left or b.right < a.left or a.bottom < b.top or b.bottom < a.top
    if disjoint:
        return False
    a_in_b = b.left <= a.left and a.right <= b.right and b.top <= a.top and a.bottom <= b.bottom
    b_in_a = a.left <= b.left and b.right <= a.right and a.top <= b.top and b.bottom <= a.bottom
    return not (a_in_b or b_in_a)


def _position_box(
    rect: Rectangle, lines: Tuple[str, ...], ox: float, oy: float, config: SceneConfig
) -> SceneBox:
    inset = config.box_inset
    return SceneBox(
        id=rect.id,
        x=ox + rect.left * config.cell_width + inset,
        y=oy + rect.top * config.cell_height + inset,
        width=max(rect.width * config.cell_width - 2 * inset, 0.0),
        height=max(rect.height * config.cell_height - 2 * inset, 0.0),
        lines=lines,
        label="\n".join(lines),
    )


def _position_edge(
    conn: Connection,
    by_id: Dict[int, Rectangle],
    ox: float,
    oy: float,
    config: SceneConfig,
) -> SceneEdge:
    src = by_id[conn.source]
    dst = by_id[conn.target]
    cw = config.cell_width
    ch = config.cell_height
    offset = config.arrow_offset
    y1 = oy + (src.top + src.bottom) / 2.0 * ch
    y2 = oy + (dst.top + dst.bottom) / 2.0 * ch
    if conn.direction is ArrowDirection.BACKWARD:
        x1 = ox + src.left * cw - offset
        x2 = ox + dst.right * cw + offset
    else:
        x1 = ox + src.right * cw + offset
        x2 = ox + dst.left * cw - offset
    return SceneEdge(conn.source, conn.target, x1, y1, x2, y2, conn.direction, conn.row)


def _position_label(label: Label, ox: float, oy: float, cw: float, ch: float) -> SceneLabel:
    return SceneLabel(
        label.text,
        ox + label.x * cw,
        oy + (label.y + 0.5) * ch,
        label.category,
        label.priority,
    )


__all__ = [
    "Ascii2SvgConfigError",
    "OVERLAP_POLICIES",
    "Scene",
    "SceneBox",
    "SceneConfig",
    "SceneEdge",
    "SceneLabel",
    "map_scene",
    "validate_scene_config",
]
