"""ASCII box diagram to SVG converter."""
from __future__ import annotations

import html
import logging
import math
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Tuple

from PIL import ImageFont

from .glyphs import DEFAULT_GLYPHS, GlyphSet
from .recognize import Recognition, recognize
from .scene import Ascii2SvgConfigError, Scene, SceneBox, SceneConfig, SceneEdge, SceneLabel, map_scene

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"
ET.register_namespace("", SVG_NS)

DEFAULT_FONT_FAMILY = "monospace"
GENERIC_FONT_FALLBACKS = {
    "sans-serif": ["Helvetica", "Arial", "Liberation Sans", "DejaVu Sans"],
    "serif": ["Times New Roman", "Times", "Liberation Serif", "DejaVu Serif"],
    "monospace": [
        "Courier New",
        "Courier",
        "Liberation Mono",
        "DejaVu Sans Mono",
    ],
}

ARROW_MARKER_ID = "arrowhead"


@dataclass(frozen=True)
class BoxStyle:
    fill: str
    stroke: str
    text: str


DEFAULT_BOX_STYLES: Tuple[BoxStyle, ...] = (
    BoxStyle(fill="#DBEAFE", stroke="#3B82F6", text="#1E40AF"),
    BoxStyle(fill="#D1FAE5", stroke="#10B981", text="#047857"),
    BoxStyle(fill="#E9D5FF", stroke="#8B5CF6", text="#5B21B6"),
    BoxStyle(fill="#FEF3C7", stroke="#F59E0B", text="#92400E"),
    BoxStyle(fill="#FECACA", stroke="#EF4444", text="#991B1B"),
)


@dataclass(frozen=True)
class RenderOptions:
    font_family: str = DEFAULT_FONT_FAMILY
    font_size: float = 12.0
    title_size: float = 20.0
    header_size: float = 14.0
    label_size: float = 11.0
    line_height: float = 18.0
    text_padding: float = 12.0
    min_font_size: float = 6.0
    box_styles: Tuple[BoxStyle, ...] = field(default_factory=lambda: DEFAULT_BOX_STYLES)
    title_color: str = "#1F2937"
    header_color: str = "#2563EB"
    label_color: str = "#6B7280"
    arrow_color: str = "#374151"
    arrow_width: float = 2.0
    corner_radius: float = 8.0
    endpoint_markers: bool = False
    background: Optional[str] = None


class _TextMeasurer:
    """Caches Pillow fonts and exposes width helpers."""

    FONT_DIRS = [
        Path("/System/Library/Fonts"),
        Path("/System/Library/Fonts/Supplemental"),
        Path("/Library/Fonts"),
        Path("~/Library/Fonts").expanduser(),
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path("C:/Windows/Fonts"),
    ]

    def __init__(self) -> None:
        self._font_cache: dict[Tuple[str, int], Optional["ImageFont.ImageFont"]] = {}
        self._font_paths: dict[str, Optional[str]] = {}

    def font(self, size: float, family: Optional[str]) -> Optional["ImageFont.ImageFont"]:
        key_size = max(1, int(round(size)))
        if family is None:
            family = DEFAULT_FONT_FAMILY
        cache_key = (family.lower(), key_size)
        if cache_key in self._font_cache:
            return self._font_cache[cache_key]

        font: Optional["ImageFont.ImageFont"] = None
        candidates: list[str] = []
        for fam in GENERIC_FONT_FALLBACKS.get(family.lower(), [family]):
            resolved = self._locate_font(fam)
            if resolved:
                candidates.append(resolved)
        candidates.append("DejaVuSansMono.ttf")

        for candidate in candidates:
            try:
                path, index = self._parse_font_candidate(candidate)
                font = ImageFont.truetype(path, key_size, index=index)
                break
            except OSError:
                continue
        if font is None:
            try:
                font = ImageFont.load_default()
            except OSError:
                font = None

        self._font_cache[cache_key] = font
        return font

    def measure(self, text: str, size: float, family: Optional[str]) -> float:
        font = self.font(size, family)
        if font is None:
            return _heuristic_width(text, size)
        return float(font.getlength(text))

    def _locate_font(self, family: str) -> Optional[str]:
        key = family.lower()
        if key in self._font_paths:
            return self._font_paths[key]
        normalized = re.sub(r"[^a-z0-9]+", "", family, flags=re.IGNORECASE).lower()
        aliases = {normalized, normalized + "mt", normalized + "psmt"}
        best_match: Optional[Tuple[int, str]] = None
        for directory in self.FONT_DIRS:
            if not normalized or not directory.exists():
                continue
            try:
                for glob in ("*.ttf", "*.ttc"):
                    for path in directory.rglob(glob):
                        stem = re.sub(r"[^a-z0-9]+", "", path.stem, flags=re.IGNORECASE).lower()
                        if stem in aliases:
                            match_score = 0
                        elif stem.startswith(normalized):
                            match_score = 1
                        else:
                            continue
                        candidate = str(path) if glob == "*.ttf" else f"{path};0"
                        if best_match is None or match_score < best_match[0]:
                            best_match = (match_score, candidate)
            except OSError:
                continue
        resolved = best_match[1] if best_match else None
        self._font_paths[key] = resolved
        return resolved

    @staticmethod
    def _parse_font_candidate(candidate: str) -> Tuple[str, int]:
        if ";" in candidate:
            path, idx = candidate.split(";", 1)
            try:
                return path, int(idx)
            except ValueError:
                return path, 0
        return candidate, 0


_TEXT_MEASURER = _TextMeasurer()


def _q(tag: str) -> str:
    return f"{{{SVG_NS}}}{tag}"


def ascii2svg(
    text: str,
    *,
    scene_config: Optional[SceneConfig] = None,
    options: Optional[RenderOptions] = None,
    glyphs: GlyphSet = DEFAULT_GLYPHS,
    detect_title: bool = True,
) -> str:
    """Convert an ASCII box diagram to an SVG document."""
    scene = build_scene(text, scene_config=scene_config, glyphs=glyphs, detect_title=detect_title)
    return render_svg(scene, options)


def ascii2html(
    text: str,
    *,
    scene_config: Optional[SceneConfig] = None,
    options: Optional[RenderOptions] = None,
    glyphs: GlyphSet = DEFAULT_GLYPHS,
    detect_title: bool = True,
) -> str:
    """Convert an ASCII box diagram to an HTML page embedding the SVG and the source."""
    scene = build_scene(text, scene_config=scene_config, glyphs=glyphs, detect_title=detect_title)
    return render_html(scene, text, options)


def build_scene(
    text: str,
    *,
    scene_config: Optional[SceneConfig] = None,
    glyphs: GlyphSet = DEFAULT_GLYPHS,
    detect_title: bool = True,
) -> Scene:
    recognition = recognize(text, glyphs, detect_title=detect_title)
    log_recognition(recognition)
    return map_scene(recognition, scene_config)


def log_recognition(recognition: Recognition, log: logging.Logger = logger) -> None:
    if not log.isEnabledFor(logging.DEBUG):
        return
    diagnostics = recognition.diagnostics
    log.debug(
        "grid %dx%d: %d rectangles from %d corner candidates, %d connections from %d arrows",
        recognition.grid.width,
        recognition.grid.height,
        len(recognition.rectangles),
        diagnostics.corner_candidates,
        len(recognition.connections),
        diagnostics.arrows_seen,
    )
    for rejected in diagnostics.rejected:
        log.debug("rejected box candidate at (%d, %d): %s", rejected.x, rejected.y, rejected.reason)
    for dropped in diagnostics.dropped_arrows:
        log.debug("dropped arrow %r at (%d, %d): %s", dropped.glyph, dropped.x, dropped.y, dropped.reason)
    if diagnostics.duplicate_connections:
        log.debug("collapsed %d duplicate connections", diagnostics.duplicate_connections)


def validate_render_options(options: RenderOptions) -> None:
    sizes = (options.font_size, options.title_size, options.header_size, options.label_size)
    if any(size <= 0 for size in sizes):
        raise Ascii2SvgConfigError("E_CONFIG", "font sizes must be > 0")
    if options.min_font_size <= 0 or options.min_font_size > options.font_size:
        raise Ascii2SvgConfigError("E_CONFIG", "min font size must be > 0 and <= font size")
    if not options.box_styles:
        raise Ascii2SvgConfigError("E_CONFIG", "at least one box style is required")


def render_svg(scene: Scene, options: Optional[RenderOptions] = None) -> str:
    return _pretty_xml(_build_svg(scene, options))


def render_html(scene: Scene, source: str, options: Optional[RenderOptions] = None) -> str:
    svg_text = ET.tostring(_build_svg(scene, options), encoding="unicode")
    title = scene.title.text if scene.title is not None else "ASCII diagram"
    return _HTML_TEMPLATE.format(
        title=html.escape(title),
        source=html.escape(source.replace("\r\n", "\n")),
        svg=svg_text,
    )


def _build_svg(scene: Scene, options: Optional[RenderOptions]) -> ET.Element:
    if options is None:
        options = RenderOptions()
    validate_render_options(options)

    svg_root = ET.Element(
        _q("svg"),
        {
            "width": _fmt(scene.width),
            "height": _fmt(scene.height),
            "viewBox": f"0 0 {_fmt(scene.width)} {_fmt(scene.height)}",
        },
    )
    if options.background:
        ET.SubElement(
            svg_root,
            _q("rect"),
            {"x": "0", "y": "0", "width": "100%", "height": "100%", "fill": options.background},
        )

    if scene.title is not None:
        _emit_text(
            svg_root,
            scene.title,
            size=options.title_size,
            fill=options.title_color,
            family=options.font_family,
            anchor="middle",
            bold=True,
        )
    for header in scene.headers:
        _emit_text(
            svg_root, header, size=options.header_size, fill=options.header_color,
            family=options.font_family, bold=True,
        )

    for box in scene.boxes:
        _emit_box(svg_root, box, options)

    if scene.edges:
        _ensure_arrow_marker(svg_root, options.arrow_color)
        styles = {box.id: _box_style(box.id, options) for box in scene.boxes}
        for edge in scene.edges:
            _emit_edge(svg_root, edge, options, styles)

    for label in scene.labels:
        _emit_text(
            svg_root, label, size=options.label_size, fill=options.label_color,
            family=options.font_family,
        )
    return svg_root


def _box_style(box_id: int, options: RenderOptions) -> BoxStyle:
    return options.box_styles[box_id % len(options.box_styles)]


def _emit_box(svg_root: ET.Element, box: SceneBox, options: RenderOptions) -> None:
    style = _box_style(box.id, options)
    group = ET.SubElement(
        svg_root,
        _q("g"),
        {"id": f"box-{box.id}", "class": "node", "data-id": str(box.id)},
    )
    if box.label:
        title = ET.SubElement(group, _q("title"))
        title.text = box.label
    ET.SubElement(
        group,
        _q("rect"),
        {
            "x": _fmt(box.x),
            "y": _fmt(box.y),
            "width": _fmt(box.width),
            "height": _fmt(box.height),
            "rx": _fmt(options.corner_radius),
            "ry": _fmt(options.corner_radius),
            "fill": style.fill,
            "stroke": style.stroke,
            "stroke-width": "2",
        },
    )
    if not box.lines:
        return

    font_size = _fit_font_size(box.lines, box.width - 2 * options.text_padding, options)
    line_height = options.line_height * font_size / options.font_size
    center_x = box.x + box.width / 2.0
    baseline = box.y + options.text_padding + font_size
    for idx, line in enumerate(box.lines):
        attrs = {
            "x": _fmt(center_x),
            "y": _fmt(baseline + idx * line_height),
            "text-anchor": "middle",
            "font-family": options.font_family,
            "font-size": _fmt(font_size),
            "font-weight": "bold" if idx == 0 else "normal",
            "fill": style.text,
        }
        text = ET.SubElement(group, _q("text"), attrs)
        if line != line.lstrip(" "):
            text.set(XML_SPACE, "preserve")
        text.text = line


def _fit_font_size(lines: Sequence[str], available: float, options: RenderOptions) -> float:
    widest = max(
        (_TEXT_MEASURER.measure(line, options.font_size, options.font_family) for line in lines),
        default=0.0,
    )
    if widest <= 0 or widest <= available:
        return options.font_size
    scaled = options.font_size * max(available, 0.0) / widest
    return max(options.min_font_size, math.floor(scaled * 10) / 10)


def _emit_edge(
    svg_root: ET.Element,
    edge: SceneEdge,
    options: RenderOptions,
    styles: dict[int, BoxStyle],
) -> None:
    ET.SubElement(
        svg_root,
        _q("line"),
        {
            "class": "edge",
            "data-source": str(edge.source),
            "data-target": str(edge.target),
            "x1": _fmt(edge.x1),
            "y1": _fmt(edge.y1),
            "x2": _fmt(edge.x2),
            "y2": _fmt(edge.y2),
            "stroke": options.arrow_color,
            "stroke-width": _fmt(options.arrow_width),
            "marker-end": f"url(#{ARROW_MARKER_ID})",
        },
    )
    if not options.endpoint_markers:
        return
    for box_id, (cx, cy) in ((edge.source, (edge.x1, edge.y1)), (edge.target, (edge.x2, edge.y2))):
        ET.SubElement(
            svg_root,
            _q("circle"),
            {"cx": _fmt(cx), "cy": _fmt(cy), "r": "4", "fill": styles[box_id].stroke},
        )


def _ensure_arrow_marker(svg_root: ET.Element, color: str) -> str:
    defs = svg_root.find(_q("defs"))
    if defs is None:
        defs = ET.Element(_q("defs"))
        svg_root.insert(0, defs)

    marker = ET.Element(
        _q("marker"),
        {
            "id": ARROW_MARKER_ID,
            "viewBox": "0 0 12 8",
            "refX": "10",
            "refY": "4",
            "markerWidth": "12",
            "markerHeight": "8",
            "orient": "auto",
            "markerUnits": "strokeWidth",
        },
    )
    ET.SubElement(marker, _q("path"), {"d": "M0,0 L0,8 L12,4 z", "fill": color})
    defs.append(marker)
    return ARROW_MARKER_ID


def _emit_text(
    svg_root: ET.Element,
    label: SceneLabel,
    *,
    size: float,
    fill: str,
    family: str,
    anchor: str = "start",
    bold: bool = False,
) -> None:
    attrs = {
        "x": _fmt(label.x),
        "y": _fmt(label.y),
        "class": label.category,
        "text-anchor": anchor,
        "dominant-baseline": "middle",
        "font-family": family,
        "font-size": _fmt(size),
        "fill": fill,
    }
    if bold:
        attrs["font-weight"] = "bold"
    text = ET.SubElement(svg_root, _q("text"), attrs)
    text.text = label.text


def _pretty_xml(element: ET.Element) -> str:
    ET.indent(element, space="  ")
    return ET.tostring(element, encoding="unicode")


def _heuristic_width(text: str, font_size: float) -> float:
    width = 0.0
    for ch in text:
        if ch.isspace():
            width += font_size * 0.33
        elif ch in "il":
            width += font_size * 0.3
        elif ch in "mwMW@#":
            width += font_size * 0.9
        else:
            width += font_size * 0.6
    return width


def _fmt(value: float) -> str:
    if math.isclose(value, round(value)):
        return str(int(round(value)))
    return f"{value:.3f}".rstrip("0").rstrip(".")


_HTML_TEMPLATE = """<!doctype html>
<html lang="en">
<meta charset="utf-8">
<meta name="viewport" content="width=device-width,initial-scale=1">
<title>{title}</title>
<style>
  body {{ margin: 0; background: #F9FAFB; color: #1F2937; font: 14px/1.4 ui-sans-serif, system-ui, sans-serif; }}
  .wrap {{ padding: 12px; }}
  .legend {{ color: #6B7280; margin: 8px 0 2px; font-size: 12px; }}
  .source {{ white-space: pre; font-family: monospace; background: #FFFFFF; border: 1px solid #D1D5DB;
             border-radius: 8px; padding: 12px; overflow: auto; max-height: 30vh; margin-bottom: 12px; }}
  svg {{ max-width: 100%; height: auto; border: 1px solid #D1D5DB; border-radius: 8px; background: #FFFFFF; }}
</style>
<div class="wrap">
  <div class="legend">Original ASCII</div>
  <div class="source">{source}</div>
  {svg}
</div>
</html>
"""


__all__ = [
    "BoxStyle",
    "DEFAULT_BOX_STYLES",
    "RenderOptions",
    "ascii2html",
    "ascii2svg",
    "build_scene",
    "log_recognition",
    "render_html",
    "render_svg",
    "validate_render_options",
]
