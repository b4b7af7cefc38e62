from __future__ import annotations

import argparse
import json
import logging
import os
import threading
import time
from pathlib import Path

from rich.console import Console

from .config import EngineSettings, get_settings
from .describe import describe_sync
from .device import DeviceState, OutputDevice
from .errors import InvalidSeriesError
from .logging_utils import DEBUG_ENV, configure_logging, log_exception
from .metadata import audio_filename, build_metadata, metadata_filename
from .playback import PlaybackScheduler
from .render import render_to_file
from .series import DataPoint, load_series
from .spinner import Spinner, render_error
from .styles import Style
from .voices import NoteEvent, voice_seconds
from .wav import decode_header

_LOGGER = logging.getLogger("gasmelody.cli")
_CONSOLE = Console()


def _read_series(path: str) -> list[DataPoint]:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("blocks", raw.get("series"))
    if not isinstance(raw, list):
        raise InvalidSeriesError(f"{path}: expected a JSON list of data points")
    return load_series(raw)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gasmelody")
    sub = parser.add_subparsers(dest="command", required=True)
    styles = [style.value for style in Style]

    render = sub.add_parser("render", help="Render a series to a WAV file.")
    render.add_argument("input", type=str, help="JSON file with the data points.")
    render.add_argument("--style", choices=styles, default=Style.CYBERPUNK.value)
    render.add_argument("--tempo", type=float, default=0.5, help="Seconds per data point.")
    render.add_argument("--output", type=str, default=None)
    render.add_argument(
        "--metadata", action="store_true", help="Also write a JSON metadata document."
    )

    play = sub.add_parser("play", help="Play a series live on the default output device.")
    play.add_argument("input", type=str)
    play.add_argument("--style", choices=styles, default=Style.CYBERPUNK.value)
    play.add_argument("--tempo", type=float, default=0.5)

    describe = sub.add_parser("describe", help="Print a short description of a series.")
    describe.add_argument("input", type=str)

    info = sub.add_parser("info", help="Show the header of a WAV file.")
    info.add_argument("path", type=str)
    return parser


def _render(args: argparse.Namespace) -> int:
    series = _read_series(args.input)
    style = Style.parse(args.style)
    with Spinner(f"Rendering {len(series)} notes ({style.value})"):
        data = render_to_file(series, style, args.tempo)
    target = Path(args.output or audio_filename(series, style))
    target.write_bytes(data)
    header = decode_header(data)
    seconds = header.frame_count / header.sample_rate
    _CONSOLE.print(f"Wrote {target} ({seconds:.2f}s, sr={header.sample_rate})")

    if args.metadata:
        description = describe_sync(series)
        metadata = build_metadata(series, style, description)
        meta_path = target.with_name(metadata_filename(series))
        meta_path.write_text(metadata.to_json(), encoding="utf-8")
        _CONSOLE.print(f"Wrote {meta_path}")
    return 0


def _release_seconds(style: Style, tempo_seconds: float, settings: EngineSettings) -> float:
    """How long the last voice keeps sounding after the run completes.

    Completion fires one tempo after the last note started.
    """
    last = NoteEvent(
        frequency_hz=0.0,
        start_time_seconds=0.0,
        style=style,
        note_duration_seconds=tempo_seconds,
    )
    return max(voice_seconds(last, settings) - tempo_seconds, 0.0)


def _play(args: argparse.Namespace) -> int:
    series = _read_series(args.input)
    style = Style.parse(args.style)
    settings = get_settings()
    done = threading.Event()
    scheduler = PlaybackScheduler(settings=settings)

    def _on_note(index: int) -> None:
        point = series[index]
        _CONSOLE.print(
            f"♪ {index + 1:>4}/{len(series)}  #{point.sequence_number}  "
            f"{point.primary_metric:.4f}",
            highlight=False,
        )

    state = scheduler.play(series, style, args.tempo, _on_note, done.set)
    if state is not DeviceState.RUNNING:
        _CONSOLE.print("[yellow]Output device not active; stepping without sound.[/]")
    try:
        done.wait()
        if series and state is DeviceState.RUNNING:
            time.sleep(_release_seconds(style, args.tempo, settings))
    except KeyboardInterrupt:
        scheduler.stop()
        _CONSOLE.print("Stopped.")
    finally:
        OutputDevice.reset_shared()
    return 0


def _describe(args: argparse.Namespace) -> int:
    series = _read_series(args.input)
    with Spinner("Asking the description model"):
        text = describe_sync(series)
    _CONSOLE.print(text)
    return 0


def _info(args: argparse.Namespace) -> int:
    data = Path(args.path).read_bytes()
    header = decode_header(data)
    for key, value in header.model_dump().items():
        _CONSOLE.print(f"{key}: {value}")
    _CONSOLE.print(f"frames: {header.frame_count}")
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        get_settings()

        match args.command:
            case "render":
                return _render(args)
            case "play":
                return _play(args)
            case "describe":
                return _describe(args)
            case "info":
                return _info(args)

        parser.print_help()
        return 1
    except Exception as exc:
        debug = bool(os.environ.get(DEBUG_ENV))
        _LOGGER.warning("gasmelody CLI failed: %s", exc, exc_info=debug)
        log_exception("gasmelody CLI", exc)
        render_error("gasmelody CLI", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
