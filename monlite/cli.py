"""
Command line entrypoint: run every configured monitor until SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError

from .config import DEFAULT_CONFIG_PATH, Settings, load_settings
from .fleet import build_fleet
from .monitor import MonliteError
from .notify import MailNotifier, Notifier, TelegramNotifier
from .utils import setup_logging

logger = logging.getLogger(__name__)

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="monlite", description="Lightweight URL monitor.")
    parser.add_argument(
        "-c",
        "--configuration",
        type=Path,
        default=Path(os.environ.get("MONLITE_CONFIG", str(DEFAULT_CONFIG_PATH))),
        help="Configuration file (default: $MONLITE_CONFIG or %(default)s).",
    )
    parser.add_argument("-l", "--log", type=Path, help="File to log to.")
    parser.add_argument(
        "-v",
        "--level",
        choices=LOG_LEVELS,
        type=str.lower,
        help="Log level, overrides the configuration file.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the monlite daemon."""
    args = parse_args(argv)
    try:
        settings = load_settings(args.configuration)
    except (FileNotFoundError, ValidationError) as e:
        print(f"Error reading configuration file {args.configuration}: {e}", file=sys.stderr)
        return 1

    overrides = {}
    if args.log is not None:
        overrides["log_file"] = args.log
    if args.level is not None:
        overrides["log_level"] = args.level
    setup_logging(settings.logging.model_copy(update=overrides))

    try:
        asyncio.run(run(settings))
    except MonliteError as e:
        logger.error("%s", e)
        return 1
    logger.info("End.")
    return 0


async def run(settings: Settings, stop_signals: Sequence[int] = (signal.SIGINT, signal.SIGTERM)) -> None:
    notifiers: List[Notifier] = []
    if settings.mail is not None:
        notifiers.append(MailNotifier(settings.mail))
    telegram: Optional[TelegramNotifier] = None
    if settings.telegram is not None:
        telegram = TelegramNotifier.from_config(settings.telegram)
        notifiers.append(telegram)
    if not notifiers:
        logger.warning("No [mail] or [telegram] section configured, alerts are only logged")

    fleet = build_fleet(settings, notifiers=notifiers)
    if not len(fleet):
        logger.warning("No [service.*] sections configured")

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in stop_signals:
        loop.add_signal_handler(sig, stop.set)

    try:
        logger.info("Starting monitors...")
        await fleet.start()
        await stop.wait()
        logger.info("Stop monitors...")
        await fleet.stop()
    finally:
        for sig in stop_signals:
            loop.remove_signal_handler(sig)
        if telegram is not None:
            await telegram.close()


if __name__ == "__main__":
    sys.exit(main())
