"""
Utility helpers: logging setup and a retry decorator for alert transports.
"""

from __future__ import annotations

import asyncio
import logging
from functools import wraps
from logging.handlers import RotatingFileHandler
from typing import Any, Awaitable, Callable, TypeVar

from .config import LoggingConfig


T = TypeVar("T")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def setup_logging(logging_cfg: LoggingConfig | None = None) -> None:
    """
    Configure application-wide logging.

    Logs go to the console and, when `log_file` is set, to a rotating file.
    """
    if logging_cfg is None:
        logging_cfg = LoggingConfig(log_file=None)

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root = logging.getLogger()
    root.setLevel(logging_cfg.log_level.upper())
    root.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if logging_cfg.log_file is not None:
        logging_cfg.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            logging_cfg.log_file,
            maxBytes=logging_cfg.max_bytes,
            backupCount=logging_cfg.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


def async_retry(
    attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Exponential backoff retry decorator for async functions."""
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        log = logging.getLogger(func.__module__)

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            delay = base_delay
            for attempt in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as exc:  # type: ignore[misc]
                    if attempt >= attempts:
                        raise
                    log.warning(
                        "Retrying %s after error %s (attempt %s/%s, delay %.1fs)",
                        func.__qualname__,
                        exc,
                        attempt,
                        attempts,
                        delay,
                    )
                    await asyncio.sleep(delay)
                    delay = min(max_delay, delay * 2)
            raise AssertionError("unreachable")

        return wrapper

    return decorator


__all__ = ["setup_logging", "async_retry"]
