"""Command-line interface for ascii2svg convert/inspect workflows."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

from .ascii2svg import RenderOptions, log_recognition, render_html, render_svg
from .recognize import Recognition, recognize
from .resources import load_cheatsheet
from .scene import OVERLAP_POLICIES, Ascii2SvgConfigError, SceneConfig, map_scene

logger = logging.getLogger(__name__)

SUBCOMMANDS_HINT = "Use one of: convert, inspect, cheatsheet."
DEBUG_HANDLER_NAME = "ascii2svg-cli-debug"


@dataclass
class CliError(Exception):
    code: str
    message: str
    hint: Optional[str] = None
    exit_code: int = 1
    file: Optional[str] = None


class UsageError(Exception):
    pass


class FriendlyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # pragma: no cover - argparse callback
        raise UsageError(message)


def _add_input_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", nargs="?", help="Input ASCII diagram file")
    parser.add_argument("--text", help="Raw ASCII diagram source")
    parser.add_argument("--no-title", action="store_true", help="Do not treat the first line as a title")


def _build_parser() -> argparse.ArgumentParser:
    parser = FriendlyArgumentParser(
        prog="ascii2svg",
        description="Convert box-drawing ASCII diagrams to SVG.",
    )
    parser.add_argument("--error-format", choices=["text", "json"], default="text")
    parser.add_argument("--debug", action="store_true")

    subparsers = parser.add_subparsers(dest="command")

    convert_parser = subparsers.add_parser("convert", help="Convert an ASCII diagram to SVG or HTML")
    _add_input_arguments(convert_parser)
    convert_parser.add_argument("--stdout", action="store_true", help="Write output to stdout")
    convert_parser.add_argument("-o", "--output", help="Output path")
    convert_parser.add_argument("--format", choices=["svg", "html"], default="svg")
    convert_parser.add_argument("--cell-width", type=float, default=SceneConfig.cell_width)
    convert_parser.add_argument("--cell-height", type=float, default=SceneConfig.cell_height)
    convert_parser.add_argument("--padding", type=float, default=SceneConfig.padding)
    convert_parser.add_argument("--min-box-width", type=int, default=0, metavar="CELLS")
    convert_parser.add_argument("--min-box-height", type=int, default=0, metavar="CELLS")
    convert_parser.add_argument("--overlap", choices=list(OVERLAP_POLICIES), default="keep")
    convert_parser.add_argument("--font-size", type=float, default=RenderOptions.font_size)
    convert_parser.add_argument("--font-family", default=RenderOptions.font_family)
    convert_parser.add_argument("--background", help="Background fill color")
    convert_parser.add_argument(
        "--endpoint-markers", action="store_true", help="Draw dots at both ends of every arrow"
    )

    inspect_parser = subparsers.add_parser("inspect", help="Print recognized structure as JSON")
    _add_input_arguments(inspect_parser)

    subparsers.add_parser("cheatsheet", help="Print the accepted glyph reference")

    return parser


def _read_input(path: Optional[str], text: Optional[str]) -> tuple[str, str, Optional[Path]]:
    if path and text is not None:
        raise CliError(
            "E_ARGS",
            "--text cannot be combined with file input",
            hint="Use either FILE or --text.",
            exit_code=2,
        )

    if text is not None:
        return text, "<text>", None

    if path:
        input_path = Path(path)
        if not input_path.exists():
            raise CliError(
                "E_IO_READ",
                f"input file not found: {input_path}",
                exit_code=2,
                file=str(input_path),
            )
        try:
            return input_path.read_text(encoding="utf-8"), str(input_path), input_path
        except (OSError, UnicodeDecodeError) as exc:
            raise CliError(
                "E_IO_READ",
                f"failed to read input file: {input_path}",
                hint=str(exc),
                exit_code=2,
                file=str(input_path),
            )

    if sys.stdin.isatty():
        raise CliError(
            "E_ARGS",
            "no input provided",
            hint="Use a subcommand with FILE, --text, or pipe stdin.",
            exit_code=2,
        )

    data = sys.stdin.read()
    if not data.strip():
        raise CliError(
            "E_ARGS",
            "stdin was empty",
            hint="Pipe an ASCII diagram into stdin.",
            exit_code=2,
        )
    return data, "<stdin>", None


def _write_text(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise CliError(
            "E_IO_WRITE",
            f"failed to write output file: {path}",
            hint=str(exc),
            exit_code=4,
            file=str(path),
        )


def _error_from_exception(exc: Exception) -> CliError:
    if isinstance(exc, CliError):
        return exc
    if isinstance(exc, Ascii2SvgConfigError):
        return CliError(
            exc.code,
            exc.message,
            hint="Check the size, padding and font options.",
            exit_code=3,
        )
    return CliError(
        "E_INTERNAL",
        str(exc) or exc.__class__.__name__,
        hint="Re-run with --debug to see traceback.",
        exit_code=1,
    )


def _emit_error(err: CliError, *, error_format: str) -> None:
    if error_format == "json":
        payload = {
            "ok": False,
            "code": err.code,
            "message": err.message,
            "file": err.file,
            "hint": err.hint,
        }
        sys.stderr.write(json.dumps(payload) + "\n")
        return

    sys.stderr.write(f"error[{err.code}]: {err.message}\n")
    if err.hint:
        sys.stderr.write(f"hint: {err.hint}\n")


def _recognition_payload(recognition: Recognition) -> dict[str, Any]:
    diagnostics = recognition.diagnostics
    title = recognition.title
    return {
        "width": recognition.grid.width,
        "height": recognition.grid.height,
        "title": title.text if title is not None else None,
        "rectangles": [
            {
                "id": rect.id,
                "left": rect.left,
                "top": rect.top,
                "right": rect.right,
                "bottom": rect.bottom,
                "lines": list(rect.lines),
            }
            for rect in recognition.rectangles
        ],
        "connections": [
            {
                "source": conn.source,
                "target": conn.target,
                "row": conn.row,
                "column": conn.column,
                "direction": conn.direction.value,
            }
            for conn in recognition.connections
        ],
        "labels": [
            {
                "text": label.text,
                "x": label.x,
                "y": label.y,
                "category": label.category,
                "priority": label.priority,
            }
            for label in recognition.labels
        ],
        "diagnostics": {
            "corner_candidates": diagnostics.corner_candidates,
            "rejected": [
                {"x": item.x, "y": item.y, "reason": item.reason} for item in diagnostics.rejected
            ],
            "arrows_seen": diagnostics.arrows_seen,
            "dropped_arrows": [
                {"x": item.x, "y": item.y, "glyph": item.glyph, "reason": item.reason}
                for item in diagnostics.dropped_arrows
            ],
            "duplicate_connections": diagnostics.duplicate_connections,
        },
    }


def _handle_convert(args: argparse.Namespace) -> int:
    if args.stdout and args.output:
        raise CliError(
            "E_ARGS",
            "--stdout and --output are mutually exclusive",
            hint="Choose either --stdout or --output.",
            exit_code=2,
        )

    source, source_name, source_path = _read_input(args.input, args.text)
    scene_config = SceneConfig(
        cell_width=args.cell_width,
        cell_height=args.cell_height,
        padding=args.padding,
        min_box_width=args.min_box_width,
        min_box_height=args.min_box_height,
        overlap_policy=args.overlap,
    )
    options = RenderOptions(
        font_family=args.font_family,
        font_size=args.font_size,
        endpoint_markers=args.endpoint_markers,
        background=args.background,
    )

    recognition = recognize(source, detect_title=not args.no_title)
    log_recognition(recognition, logger)
    scene = map_scene(recognition, scene_config)
    logger.debug("%s: scene %sx%s with %d boxes", source_name, scene.width, scene.height, len(scene.boxes))
    if args.format == "html":
        output = render_html(scene, source, options)
    else:
        output = render_svg(scene, options)

    if args.output:
        output_path = Path(args.output)
    elif source_path is not None and not args.stdout:
        output_path = source_path.with_suffix(f".{args.format}")
    else:
        sys.stdout.write(output)
        if not output.endswith("\n"):
            sys.stdout.write("\n")
        return 0
    _write_text(output_path, output)
    print(f"Wrote {output_path}")
    return 0


def _handle_inspect(args: argparse.Namespace) -> int:
    source, _source_name, _source_path = _read_input(args.input, args.text)
    recognition = recognize(source, detect_title=not args.no_title)
    log_recognition(recognition, logger)
    sys.stdout.write(json.dumps(_recognition_payload(recognition), ensure_ascii=False, indent=2) + "\n")
    return 0


def _configure_logging(debug_enabled: bool) -> None:
    if not debug_enabled:
        return
    package_logger = logging.getLogger("ascii2svg")
    for existing in list(package_logger.handlers):
        if existing.get_name() == DEBUG_HANDLER_NAME:
            package_logger.removeHandler(existing)
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(DEBUG_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)


def main(argv: Optional[Iterable[str]] = None) -> int:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    parser = _build_parser()

    if not raw_argv:
        err = CliError("E_ARGS", "missing subcommand", hint=SUBCOMMANDS_HINT, exit_code=2)
        _emit_error(err, error_format="text")
        return err.exit_code

    debug_enabled = "--debug" in raw_argv or os.getenv("ASCII2SVG_DEBUG") == "1"
    error_format = "text"
    if "--error-format" in raw_argv:
        idx = raw_argv.index("--error-format")
        if idx + 1 < len(raw_argv):
            error_format = raw_argv[idx + 1]

    _configure_logging(debug_enabled)
    try:
        args = parser.parse_args(raw_argv)
        error_format = args.error_format

        if args.command == "convert":
            return _handle_convert(args)
        if args.command == "inspect":
            return _handle_inspect(args)
        if args.command == "cheatsheet":
            print(load_cheatsheet())
            return 0

        raise CliError("E_ARGS", "missing subcommand", hint=SUBCOMMANDS_HINT, exit_code=2)
    except UsageError as exc:
        err = CliError("E_ARGS", str(exc), hint=SUBCOMMANDS_HINT, exit_code=2)
        _emit_error(err, error_format=error_format)
        return err.exit_code
    except Exception as exc:  # pragma: no cover - exercised in integration tests
        err = _error_from_exception(exc)
        _emit_error(err, error_format=error_format)
        if debug_enabled:
            traceback.print_exc(file=sys.stderr)
        return err.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
