"""Command line entry point for the capture controller."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from . import controller
from .exceptions import DexcaliburnError
from .logging_config import (
    close_debug_logger,
    configure_console_logging,
    configure_debug_file_logger,
)

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Dynamic dex and reflection capture")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    sub = parser.add_subparsers(dest="command", required=True)

    capture = sub.add_parser("capture", help="Instrument an app and collect its run data")
    capture.add_argument("target", help="package name to spawn, or pid / process name to attach")
    capture.add_argument("--script", required=True, help="compiled agent script")
    capture.add_argument("--hooks", default=None, help="file listing Class.method lines to hook")
    capture.add_argument("--out", default="out")
    capture.add_argument("--device", choices=["usb", "local", "remote"], default="usb")
    capture.add_argument("--spawn", action="store_true")
    capture.add_argument("--duration", type=float, default=30.0)
    capture.add_argument("--timeout", type=int, default=10)
    capture.add_argument("--log-file", default=None)
    return parser


def _run_capture(args: argparse.Namespace) -> int:
    try:
        script_source = Path(args.script).read_text(encoding="utf-8")
        hooks = controller.load_hooks(Path(args.hooks) if args.hooks else None)
    except OSError as exc:
        LOGGER.error("%s", exc)
        return 2
    try:
        result = controller.capture_with_frida(
            args.target,
            script_source=script_source,
            output_dir=Path(args.out),
            hooks=hooks,
            device=args.device,
            spawn=args.spawn,
            duration=args.duration,
            timeout=args.timeout,
        )
    except DexcaliburnError as exc:
        LOGGER.error("Capture failed: %s", exc)
        return 1
    run_data = result.run_data or {}
    summary = {
        "dumps": len(result.dumps),
        "dexFiles": len(run_data.get("dexFiles", [])),
        "xrefs": len(run_data.get("xrefs", [])),
        "manifest": result.metadata.get("manifest"),
    }
    print(json.dumps(summary, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_console_logging(args.verbose)

    if args.command == "capture":
        if not args.log_file:
            return _run_capture(args)
        file_logger = configure_debug_file_logger("dexcaliburn", Path(args.log_file))
        try:
            return _run_capture(args)
        finally:
            close_debug_logger(file_logger)

    parser.error("Unhandled command")
    return 2


if __name__ == "__main__":  # pragma: no cover - CLI wrapper
    raise SystemExit(main())
