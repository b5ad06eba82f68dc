"""Command line entry point for the synthesiser."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from . import diagnostics
from .config import DEFAULT_CONFIG_PATH, load_configuration
from .genmap import GenmapError
from .render import render_beep, render_script_file
from .stereo import StereoPosition

PROG = "retrosynth"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Render a single note to a 16-bit PCM WAV file",
    )
    parser.add_argument("path", type=Path, help="Output WAV file (overwritten if present)")
    parser.add_argument("pitch", type=int, help="Piano key, 0 is middle C, range -39 to 48")
    parser.add_argument("seconds", type=int, help="Note duration in seconds, 1 to 60")
    parser.add_argument("rate", type=int, help="Sampling rate, 44100 or 48000")
    parser.add_argument("amplitude", type=int, help="Peak sample level, 16 to 32000")
    parser.add_argument(
        "script",
        type=Path,
        nargs="?",
        help="Generator map script; a plain square wave is rendered when omitted",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to a JSON render configuration",
    )
    parser.add_argument(
        "--pan",
        type=int,
        help="Render in stereo at this position (-32767 full left to 32767 full right)",
    )
    parser.add_argument(
        "--log",
        action="store_true",
        help="Append render diagnostics to the configured log file",
    )
    return parser


def _fail(message: str) -> int:
    sys.stderr.write(f"{PROG}: {message}\n")
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_configuration(args.config)
    except (OSError, ValueError) as exc:
        return _fail(f"Can't load configuration: {exc}")

    if args.log or config.log_events:
        if config.log_path:
            diagnostics.set_render_log_path(config.log_path)
        diagnostics.enable_render_logging(True)

    try:
        stereo = None if args.pan is None else StereoPosition.constant(args.pan)
        note = dict(
            pitch=args.pitch,
            seconds=args.seconds,
            rate=args.rate,
            amplitude=args.amplitude,
            config=config,
            stereo=stereo,
        )
        if args.script is None:
            summary = render_beep(args.path, **note)
        else:
            summary = render_script_file(args.path, args.script, **note)
    except ValueError as exc:
        return _fail(str(exc))
    except GenmapError as exc:
        diagnostics.log_render_event(f"genmap: {exc}")
        return _fail(f"Script interpretation failed: {exc}")
    except OSError as exc:
        return _fail(f"I/O error: {exc}")

    print(summary.describe())
    return 0


__all__ = ["build_parser", "main"]
