"""Command-line interface for form field detection."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from .io_utils import prepare_run_directory, write_json
from .logging_utils import build_logger
from .runner import DetectInputs, WatchInputs, run_detection, run_watch
from .settings import load_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect, classify and fill form fields on a web page"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--run-id", dest="run_id", help="Optional run identifier")
    common.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    common.add_argument("--url", required=True, help="Page to open")
    common.add_argument("--settings", type=Path, help="JSON settings file")
    common.add_argument(
        "--headed", action="store_true", help="Show the browser window"
    )

    detect_parser = subparsers.add_parser(
        "detect", help="Detect and classify every field once", parents=[common]
    )
    detect_parser.add_argument(
        "--async",
        dest="use_async",
        action="store_true",
        help="Run the full classifier chain, oracle included",
    )
    detect_parser.add_argument(
        "--fill", action="store_true", help="Fill detected fields with sample values"
    )

    watch_parser = subparsers.add_parser(
        "watch", help="Watch the page for form changes", parents=[common]
    )
    watch_parser.add_argument(
        "--seconds", type=float, default=30.0, help="How long to watch"
    )
    watch_parser.add_argument(
        "--auto-refill",
        action="store_true",
        help="Fill newly appearing fields with sample values",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    run_paths = prepare_run_directory(args.run_id)
    logger = build_logger(run_paths, verbose=args.verbose)
    settings = load_settings(args.settings)

    if args.command == "detect":
        inputs = DetectInputs(
            url=args.url,
            run_paths=run_paths,
            logger=logger,
            settings=settings,
            use_async=args.use_async,
            fill=args.fill,
            headless=not args.headed,
        )
        result = asyncio.run(run_detection(inputs))
    elif args.command == "watch":
        inputs = WatchInputs(
            url=args.url,
            run_paths=run_paths,
            logger=logger,
            settings=settings,
            seconds=args.seconds,
            auto_refill=args.auto_refill or settings.watcher.auto_refill,
            headless=not args.headed,
        )
        result = asyncio.run(run_watch(inputs))
    else:
        parser.error(f"Unknown command: {args.command}")

    summary_path = run_paths.build_path(f"{args.command}.json")
    write_json(summary_path, result)

    print(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":  # pragma: no cover
    main()
