from __future__ import annotations

import sys
import unittest
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from ascii2svg.glyphs import ArrowDirection
from ascii2svg.recognize import recognize
from ascii2svg.scene import Ascii2SvgConfigError, SceneConfig, map_scene

TWO_BOXES = "\n".join(
    [
        "┌───┐   ┌───┐",
        "│ A │──▶│ B │",
        "└───┘   └───┘",
    ]
)

OVERLAPPING = "\n".join(
    [
        "┌───┐",
        "│ ┌─┼─┐",
        "└─┼─┘ │",
        "  └───┘",
    ]
)


class SceneMappingTests(unittest.TestCase):
    def test_default_geometry_for_two_boxes(self) -> None:
        scene = map_scene(recognize(TWO_BOXES))
        self.assertEqual((scene.width, scene.height), (196, 106))
        self.assertIsNone(scene.title)
        a, b = scene.boxes
        self.assertEqual((a.x, a.y, a.width, a.height), (21, 21, 46, 42))
        self.assertEqual((b.x, b.y), (117, 21))
        self.assertEqual(a.label, "A")
        self.assertEqual(a.center, (44, 42))

        (edge,) = scene.edges
        self.assertEqual((edge.source, edge.target), (0, 1))
        self.assertEqual((edge.x1, edge.y1, edge.x2, edge.y2), (74, 42, 110, 42))
        self.assertIs(edge.direction, ArrowDirection.FORWARD)

    def test_backward_edge_runs_right_to_left(self) -> None:
        text = "\n".join(["┌───┐   ┌───┐", "│ A │◀──│ B │", "└───┘   └───┘"])
        (edge,) = map_scene(recognize(text)).edges
        self.assertEqual((edge.source, edge.target), (1, 0))
        self.assertEqual((edge.x1, edge.x2), (110, 74))
        self.assertGreater(edge.x1, edge.x2)

    def test_custom_cell_size_and_padding(self) -> None:
        config = SceneConfig(cell_width=10, cell_height=20, padding=0, box_inset=0, arrow_offset=0)
        scene = map_scene(recognize(TWO_BOXES), config)
        self.assertEqual((scene.width, scene.height), (130, 60))
        a, b = scene.boxes
        self.assertEqual((a.x, a.y, a.width, a.height), (0, 0, 40, 40))
        self.assertEqual(b.x, 80)
        (edge,) = scene.edges
        self.assertEqual((edge.x1, edge.x2, edge.y1), (40, 80, 20))

    def test_title_band_shifts_content(self) -> None:
        text = "\n".join(
            [
                "Architecture:",
                "[ Host ]   [ Plugins ]",
                "┌────┐  mounts  ┌────┐",
                "│ H  │─────────▶│ P  │",
                "└────┘          └────┘",
            ]
        )
        scene = map_scene(recognize(text))
        self.assertEqual((scene.width, scene.height), (304, 190))
        self.assertIsNotNone(scene.title)
        self.assertEqual((scene.title.text, scene.title.x, scene.title.y), ("Architecture", 152, 40))
        self.assertEqual([(h.text, h.x) for h in scene.headers], [("[ Host ]", 20), ("[ Plugins ]", 152)])
        self.assertEqual(scene.headers[0].y, 93)
        (mounts,) = scene.labels
        self.assertEqual((mounts.text, mounts.x, mounts.y, mounts.category), ("mounts", 116, 115, "annotation"))
        self.assertEqual(scene.boxes[0].y, 20 + 40 + 2 * 22 + 1)

    def test_empty_input_maps_to_padding_only(self) -> None:
        scene = map_scene(recognize(""))
        self.assertEqual((scene.width, scene.height), (40, 40))
        self.assertEqual(scene.boxes, ())
        self.assertEqual(scene.edges, ())

    def test_minimum_box_size_filters_boxes_and_their_edges(self) -> None:
        scene = map_scene(recognize(TWO_BOXES), SceneConfig(min_box_width=5))
        self.assertEqual(scene.boxes, ())
        self.assertEqual(scene.edges, ())
        kept = map_scene(recognize(TWO_BOXES), SceneConfig(min_box_width=4, min_box_height=2))
        self.assertEqual(len(kept.boxes), 2)
        self.assertEqual(len(kept.edges), 1)

    def test_overlap_policy(self) -> None:
        recognition = recognize(OVERLAPPING)
        self.assertEqual(len(recognition.rectangles), 2)
        self.assertEqual(len(map_scene(recognition).boxes), 2)
        dropped = map_scene(recognition, SceneConfig(overlap_policy="drop-partial"))
        self.assertEqual([box.id for box in dropped.boxes], [0])

    def test_nested_boxes_survive_drop_partial(self) -> None:
        text = "\n".join(
            [
                "┌─────────┐",
                "│ ┌─────┐ │",
                "│ │ in  │ │",
                "│ └─────┘ │",
                "└─────────┘",
            ]
        )
        scene = map_scene(recognize(text), SceneConfig(overlap_policy="drop-partial"))
        self.assertEqual([box.id for box in scene.boxes], [0, 1])

    def test_container_draws_only_its_own_text(self) -> None:
        text = "\n".join(
            [
                "┌─────────────────┐",
                "│ Cluster         │",
                "│ ┌───┐   ┌───┐   │",
                "│ │ C │──▶│ D │   │",
                "│ └───┘   └───┘   │",
                "└─────────────────┘",
            ]
        )
        recognition = recognize(text)
        self.assertEqual(len(recognition.rectangles[0].lines), 4)
        scene = map_scene(recognition)
        container, c, d = scene.boxes
        self.assertEqual(container.lines, ("Cluster",))
        self.assertEqual(container.label, "Cluster")
        self.assertEqual((c.lines, d.lines), (("C",), ("D",)))
        (edge,) = scene.edges
        self.assertEqual((edge.source, edge.target), (1, 2))

    def test_invalid_config_raises(self) -> None:
        recognition = recognize(TWO_BOXES)
        for config in [
            SceneConfig(cell_width=0),
            SceneConfig(cell_height=-1),
            SceneConfig(padding=-5),
            SceneConfig(arrow_offset=-1),
            SceneConfig(min_box_width=-1),
            SceneConfig(overlap_policy="bogus"),
        ]:
            with self.assertRaises(Ascii2SvgConfigError) as ctx:
                map_scene(recognition, config)
            self.assertEqual(ctx.exception.code, "E_CONFIG")

    def test_zero_interior_box_never_has_negative_size(self) -> None:
        scene = map_scene(recognize("┌┐\n└┘"), SceneConfig(cell_width=1, cell_height=1, box_inset=2))
        (box,) = scene.boxes
        self.assertEqual((box.width, box.height), (0, 0))


if __name__ == "__main__":
    unittest.main()
