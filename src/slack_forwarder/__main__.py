"""CLI entry point for Slack Forwarder.

This module runs the output adapter under a minimal host: JSON lines are
read from stdin (or a file), grouped into batches and written to Slack,
re-delivering a batch when a transient error is raised.

Usage:
    python -m slack_forwarder [options] < records.jsonl
"""

from __future__ import annotations

import argparse
import itertools
import json
import logging
import logging.config
import sys
import time
from typing import TYPE_CHECKING, NoReturn, TextIO

from pydantic import ValidationError

from slack_forwarder import __version__
from slack_forwarder.clients.base import filter_params
from slack_forwarder.config import Settings, clear_settings_cache, get_settings
from slack_forwarder.delivery import WriteResult
from slack_forwarder.output import SlackOutput

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from slack_forwarder.formatter.builder import Event

# Application info
APP_NAME = "Slack Forwarder"
APP_VERSION = __version__

DEFAULT_TAG = "slack_forwarder"

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


class RetriesExhaustedError(Exception):
    """Raised when a batch still fails after all retries."""


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="slack-forwarder",
        description="Forward structured log records to Slack channels.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m slack_forwarder < records.jsonl          Forward records from stdin
  python -m slack_forwarder --config-check           Validate config and exit
  python -m slack_forwarder --dry-run -i app.jsonl   Print payloads instead of posting
  python -m slack_forwarder --log-level DEBUG        Enable debug logging
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print payloads as JSON instead of posting them",
    )

    parser.add_argument(
        "-i",
        "--input",
        type=argparse.FileType("r", encoding="utf-8"),
        default=None,
        help="Read JSON lines from FILE instead of stdin",
    )

    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Override records per batch (default: from settings)",
    )

    parser.add_argument(
        "--tag",
        default=DEFAULT_TAG,
        help=f"Tag for records without one (default: {DEFAULT_TAG})",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # Quieter logging for noisy libraries
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"]) or "settings"
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Print the validated configuration.

    Args:
        settings: Validated settings.

    Returns:
        Exit code (0 for success).
    """
    print("Configuration is valid!")
    print()
    print("Configuration:")
    for key, value in settings.redacted_summary().items():
        print(f"  {key}: {value}")
    print()
    return EXIT_SUCCESS


def parse_event(line: str, default_tag: str) -> Event:
    """Parse one JSON line into a (tag, timestamp, record) event.

    A line is either a bare record object or an envelope
    ``{"tag": ..., "time": ..., "record": {...}}``.
    """
    data = json.loads(line)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    record = data.get("record")
    if isinstance(record, dict):
        return (data.get("tag", default_tag), data.get("time", time.time()), record)
    return (default_tag, time.time(), data)


def read_events(stream: TextIO, default_tag: str) -> Iterator[Event]:
    """Read events from JSON lines, skipping blank and malformed lines."""
    logger = logging.getLogger(__name__)
    for lineno, line in enumerate(stream, start=1):
        if not line.strip():
            continue
        try:
            yield parse_event(line, default_tag)
        except ValueError as e:
            logger.warning(f"Skipping malformed line {lineno}: {e}")


def iter_batches(events: Iterable[Event], size: int) -> Iterator[list[Event]]:
    """Group events into batches of at most ``size``."""
    iterator = iter(events)
    while batch := list(itertools.islice(iterator, size)):
        yield batch


def write_with_retry(
    output: SlackOutput,
    batch: list[Event],
    *,
    max_retries: int,
    retry_delay: float,
) -> WriteResult:
    """Write a batch, re-delivering it after errors raised by the output.

    Raises:
        RetriesExhaustedError: If the batch fails ``max_retries + 1`` times.
    """
    logger = logging.getLogger(__name__)
    attempt = 0
    while True:
        try:
            return output.write(batch)
        except Exception as e:
            if attempt >= max_retries:
                raise RetriesExhaustedError(
                    f"Batch of {len(batch)} record(s) failed after {attempt + 1} attempt(s)"
                ) from e
            delay = retry_delay * (2**attempt)
            logger.warning(f"Batch write failed (attempt {attempt + 1}), retrying in {delay:.2f}s")
            time.sleep(delay)
            attempt += 1


def print_payloads(output: SlackOutput, batch: list[Event], out: TextIO) -> None:
    """Print the payloads for a batch as JSON lines."""
    for payload in output.build_payloads(batch):
        print(json.dumps(filter_params(payload.to_dict()), ensure_ascii=False), file=out)


def run_forwarder(
    settings: Settings,
    stream: TextIO,
    *,
    dry_run: bool,
    chunk_size: int,
    tag: str = DEFAULT_TAG,
    output: SlackOutput | None = None,
) -> int:
    """Forward every record from ``stream``.

    Args:
        settings: Application settings.
        stream: Source of JSON lines.
        dry_run: Print payloads instead of posting.
        chunk_size: Records per batch.
        tag: Tag for records without one.
        output: Output to use instead of one built from settings.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    if output is None:
        output = SlackOutput.from_settings(settings.slack)

    delivered = discarded = 0
    try:
        for batch in iter_batches(read_events(stream, tag), chunk_size):
            if dry_run:
                print_payloads(output, batch, sys.stdout)
                continue
            result = write_with_retry(
                output,
                batch,
                max_retries=settings.max_retries,
                retry_delay=settings.retry_delay,
            )
            delivered += result.delivered
            discarded += result.discarded
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except RetriesExhaustedError as e:
        logger.error(f"{e}: {e.__cause__}")
        return EXIT_ERROR

    logger.info(f"Done: {delivered} payload(s) delivered, {discarded} discarded")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Validate configuration first
    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    if args.config_check:
        sys.exit(run_config_check(settings))

    dry_run = args.dry_run or settings.dry_run
    chunk_size = args.chunk_size or settings.chunk_size
    stream = args.input or sys.stdin

    try:
        exit_code = run_forwarder(
            settings,
            stream,
            dry_run=dry_run,
            chunk_size=chunk_size,
            tag=args.tag,
        )
    finally:
        if args.input is not None:
            args.input.close()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
