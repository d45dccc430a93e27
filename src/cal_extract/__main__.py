"""Entry point for ``python -m cal_extract``.

Provides a CLI that extracts calendar events from a text file (or stdin)
and a benchmark that compares models on a set of inputs.  Uses stdlib
:mod:`argparse` for argument parsing.

Subcommands:
    extract   -- Default. Extract events from a file or ``-`` for stdin.
    benchmark -- Compare models on a JSON cases file (or the built-in cases).

Exit codes:
    0 -- Completed successfully.
    1 -- An error occurred (file not found, config error, extraction failed).
    2 -- Argument parsing error (handled by argparse).
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

from cal_extract.benchmark import (
    DEFAULT_CASES,
    format_console_summary,
    format_markdown_report,
    generate_report_filename,
    load_cases,
    run_benchmark,
)
from cal_extract.config import Settings, load_settings
from cal_extract.cost import MODEL_PRICING
from cal_extract.demo_output import (
    events_to_json,
    format_single_event,
    print_extraction_run,
)
from cal_extract.exceptions import (
    ConfigurationError,
    ExtractionError,
    InputError,
    MalformedResponseError,
    ModelError,
)
from cal_extract.gateway import build_gateway
from cal_extract.log import setup_logging
from cal_extract.models.options import ProcessingOptions
from cal_extract.pipeline import extract_event_details, run_extraction


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser with subcommands.

    Returns:
        Configured :class:`argparse.ArgumentParser` with ``extract`` and
        ``benchmark`` subcommands.
    """
    parser = argparse.ArgumentParser(
        prog="cal-extract",
        description="Extract calendar events from natural-language text.",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- "extract" subcommand (default) -------------------------------
    extract_parser = subparsers.add_parser(
        "extract",
        help="Extract events from a text file.",
    )
    extract_parser.add_argument(
        "input_file",
        type=str,
        help="Path to the text file, or '-' to read stdin.",
    )
    extract_parser.add_argument(
        "--single",
        action="store_true",
        default=False,
        help="Treat the whole input as one event (skip segmentation).",
    )
    extract_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print events as JSON instead of the formatted report.",
    )
    extract_parser.add_argument(
        "--rules",
        action="store_true",
        default=False,
        help="Segment with the rule-based segmenter instead of the model.",
    )
    extract_parser.add_argument(
        "--timezone",
        type=str,
        default=None,
        help="IANA timezone for the events (defaults to TIMEZONE from config).",
    )
    extract_parser.add_argument(
        "--now",
        type=str,
        default=None,
        help="Reference time as ISO 8601 (defaults to the current time).",
    )
    extract_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )

    # --- "benchmark" subcommand ---------------------------------------
    bench_parser = subparsers.add_parser(
        "benchmark",
        help="Compare models on a set of benchmark cases.",
    )
    bench_parser.add_argument(
        "cases_file",
        nargs="?",
        default=None,
        help="JSON file of benchmark cases (default: built-in cases).",
    )
    bench_parser.add_argument(
        "--models",
        type=str,
        default=None,
        help="Comma-separated model identifiers (default: MODEL from config).",
    )
    bench_parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Directory for the markdown report (default: reports/).",
    )
    bench_parser.add_argument(
        "--delay",
        type=float,
        default=1.0,
        help="Seconds to wait between model calls (default: 1.0).",
    )
    bench_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )

    return parser


def _resolve_command(
    parser: argparse.ArgumentParser,
    argv: list[str],
) -> argparse.Namespace:
    """Parse *argv* with an implicit ``extract`` subcommand.

    If the first token is not a known subcommand, ``extract`` is
    prepended so that ``python -m cal_extract notes.txt`` works.

    Args:
        parser: The top-level argument parser.
        argv: Command-line arguments.

    Returns:
        Parsed :class:`argparse.Namespace`.
    """
    known_subcommands = {"extract", "benchmark"}
    if not argv:
        argv = ["extract"]
    elif argv[0] in {"-h", "--help"}:
        pass
    elif argv[0] not in known_subcommands:
        argv = ["extract", *argv]

    return parser.parse_args(argv)


def _read_input(source: str) -> str:
    """Read the input text from *source* (a path, or ``-`` for stdin).

    Raises:
        FileNotFoundError: If the path does not exist.
        IsADirectoryError: If the path is a directory.
    """
    if source == "-":
        return sys.stdin.read()

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if not path.is_file():
        raise IsADirectoryError(f"Not a file: {path}")
    return path.read_text(encoding="utf-8")


def _parse_now(value: str | None) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value)


def _handle_extract(args: argparse.Namespace, settings: Settings) -> int:
    """Execute the ``extract`` subcommand.

    Args:
        args: Parsed arguments from the ``extract`` subparser.
        settings: Loaded settings.

    Returns:
        Exit code: ``0`` on success, ``1`` on error.
    """
    try:
        text = _read_input(args.input_file)
        options = ProcessingOptions(
            timezone=args.timezone or settings.timezone,
            current_date=_parse_now(args.now),
            default_duration=settings.default_duration,
            model=settings.model,
            multi_event=not args.single,
        )
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    gateway = build_gateway(settings)
    segmentation = "rules" if args.rules else settings.segmentation_mode

    try:
        if args.single:
            event = asyncio.run(extract_event_details(text, options, gateway))
        else:
            run = asyncio.run(
                run_extraction(text, options, gateway, segmentation=segmentation)
            )
    except (InputError, MalformedResponseError, ModelError, ExtractionError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    # --- Render output ------------------------------------------------
    if args.single:
        output = events_to_json([event], single=True) if args.json else format_single_event(event)
        print(output)
    elif args.json:
        print(events_to_json(run.events))
    else:
        print_extraction_run(run)

    return 0


def _handle_benchmark(args: argparse.Namespace, settings: Settings) -> int:
    """Execute the ``benchmark`` subcommand.

    Args:
        args: Parsed arguments from the ``benchmark`` subparser.
        settings: Loaded settings.

    Returns:
        Exit code: ``0`` on success, ``1`` on error.
    """
    models = [m.strip() for m in (args.models or settings.model).split(",") if m.strip()]
    unknown = [m for m in models if m not in MODEL_PRICING]
    if unknown:
        print(f"Error: No pricing for model(s): {', '.join(unknown)}", file=sys.stderr)
        return 1

    try:
        cases = load_cases(Path(args.cases_file)) if args.cases_file else list(DEFAULT_CASES)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    gateway = build_gateway(settings)
    result = asyncio.run(
        run_benchmark(
            cases,
            lambda _model: gateway,
            models,
            segmentation=settings.segmentation_mode,
            delay_s=args.delay,
        )
    )

    print(format_console_summary(result))

    output_dir = Path(args.output or "reports")
    output_dir.mkdir(parents=True, exist_ok=True)
    report_path = output_dir / generate_report_filename()
    report_path.write_text(format_markdown_report(result), encoding="utf-8")
    print(f"Report written to {report_path}", file=sys.stderr)

    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the cal-extract CLI.

    Args:
        argv: Command-line arguments.  Defaults to ``sys.argv[1:]``
            when ``None`` (the normal case).

    Returns:
        Exit code: ``0`` on success, ``1`` on error.
    """
    parser = build_parser()
    args = _resolve_command(parser, argv if argv is not None else sys.argv[1:])

    # --- Configure logging --------------------------------------------
    log_level = "DEBUG" if getattr(args, "verbose", False) else "INFO"
    setup_logging(log_level)

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    # --- Dispatch to subcommand handler -------------------------------
    if args.command == "benchmark":
        return _handle_benchmark(args, settings)

    return _handle_extract(args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
