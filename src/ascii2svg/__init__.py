"""Public API for ascii2svg."""
from .ascii2svg import RenderOptions, ascii2html, ascii2svg, build_scene, render_html, render_svg
from .glyphs import DEFAULT_GLYPHS, ArrowDirection, GlyphSet
from .grid import Grid
from .recognize import Connection, Label, Recognition, Rectangle, recognize
from .scene import Ascii2SvgConfigError, Scene, SceneConfig, map_scene

__all__ = [
    "ArrowDirection",
    "Ascii2SvgConfigError",
    "Connection",
    "DEFAULT_GLYPHS",
    "GlyphSet",
    "Grid",
    "Label",
    "Recognition",
    "Rectangle",
    "RenderOptions",
    "Scene",
    "SceneConfig",
    "ascii2html",
    "ascii2svg",
    "build_scene",
    "map_scene",
    "recognize",
    "render_html",
    "render_svg",
]
