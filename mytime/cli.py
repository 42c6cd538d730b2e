"""Command-line entry point."""

from __future__ import annotations

import argparse
import logging
import sys

from mytime.ui.app import start_app

LOG_FILE = "mytime.log"


def setup_logging(enabled: bool) -> logging.Handler | None:
    """Send log records to ``mytime.log`` when enabled, otherwise discard them.

    Returns the file handler, or None when logging is off. Exits with status 1
    when the log file cannot be opened.
    """
    root = logging.getLogger()
    if not enabled:
        root.addHandler(logging.NullHandler())
        return None

    try:
        handler = logging.FileHandler(LOG_FILE, mode="a", encoding="utf-8")
    except OSError as exc:
        print(f"Failed to open log file: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(filename)s:%(lineno)d: %(message)s", datefmt="%Y/%m/%d %H:%M:%S"
        )
    )
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    root.info("\n===== Logging started =====")
    return handler


def main(argv: list[str] | None = None) -> int:
    """Parse the options and run the application."""
    parser = argparse.ArgumentParser(prog="mytime", description="Track the time spent on tasks.")
    parser.add_argument("-logs", "--logs", action="store_true", help="Enable logs to file")
    args = parser.parse_args(argv)

    handler = setup_logging(args.logs)
    try:
        start_app()
    finally:
        if handler is not None:
            logging.getLogger().removeHandler(handler)
            handler.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())