"""
Config loading via Pydantic v2, python-dotenv and an INI file.

Monitor definitions live in `[service.<name>]` sections; secrets can be
supplied through the environment (or a .env file) instead of the INI file.
"""

from __future__ import annotations

import configparser
from functools import lru_cache
import os
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator


BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
DEFAULT_CONFIG_PATH = Path("/etc/monlite.ini")
SERVICE_PREFIX = "service."
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=False)


class ServiceConfig(BaseModel):
    """One `[service.<name>]` section."""

    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    timeout: float = Field(default=10, gt=0)
    period: float = Field(gt=0)
    sleep: float = Field(default=0, ge=0)
    fails: int = Field(default=1, ge=0)


class MailConfig(BaseModel):
    smtp: str
    account: str = ""
    password: str = ""
    sender: str
    to: List[str] = Field(min_length=1)
    helo: Optional[str] = None
    timeout: float = Field(default=10, gt=0)

    @field_validator("smtp")
    @classmethod
    def _check_smtp(cls, value: str) -> str:
        host, sep, port = value.rpartition(":")
        if not sep:
            host = value
        if not host:
            raise ValueError("smtp server is empty")
        if sep and not (port.isdigit() and 0 < int(port) < 65536):
            raise ValueError(f"invalid smtp port in {value!r}")
        return value

    @property
    def host(self) -> str:
        return self.smtp.rpartition(":")[0] if ":" in self.smtp else self.smtp

    @property
    def port(self) -> int:
        if ":" in self.smtp:
            return int(self.smtp.rpartition(":")[2])
        return 25


class TelegramConfig(BaseModel):
    token: str = Field(min_length=1)
    chat_id: int


class LoggingConfig(BaseModel):
    log_file: Optional[Path] = Field(default=Path("/var/log/monlite.log"))
    log_level: str = Field(default="INFO")
    max_bytes: int = Field(default=5 * 1024 * 1024)  # 5 MB
    backup_count: int = Field(default=5)

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level {value!r}, expected one of {', '.join(LOG_LEVELS)}")
        return level


class Settings(BaseModel):
    services: List[ServiceConfig] = Field(default_factory=list)
    mail: Optional[MailConfig] = None
    telegram: Optional[TelegramConfig] = None
    logging: LoggingConfig = LoggingConfig()


def _split_list(value: str) -> List[str]:
    return [x.strip() for x in value.split(",") if x.strip()]


def parse_settings(parser: configparser.ConfigParser) -> Settings:
    """Build Settings from an already read INI parser and the environment."""
    env = os.environ

    services: List[ServiceConfig] = []
    for section in parser.sections():
        if not section.startswith(SERVICE_PREFIX):
            continue
        sec = parser[section]
        services.append(
            ServiceConfig(
                name=section[len(SERVICE_PREFIX):],
                url=sec.get("url", ""),
                timeout=sec.get("timeout", "10"),
                # config files spell it "periode"
                period=sec.get("periode", sec.get("period", "0")),
                sleep=sec.get("sleep", "0"),
                fails=sec.get("fails", "1"),
            )
        )

    mail: Optional[MailConfig] = None
    if parser.has_section("mail"):
        sec = parser["mail"]
        mail = MailConfig(
            smtp=sec.get("smtp", ""),
            account=sec.get("account", ""),
            password=env.get("MONLITE_SMTP_PASSWORD") or sec.get("password", ""),
            sender=sec.get("from", ""),
            to=_split_list(sec.get("to", "")),
            helo=sec.get("helo") or None,
            timeout=sec.get("timeout", "10"),
        )

    telegram: Optional[TelegramConfig] = None
    token = env.get("MONLITE_BOT_TOKEN") or parser.get("telegram", "token", fallback="")
    if token:
        telegram = TelegramConfig(
            token=token,
            chat_id=env.get("MONLITE_CHAT_ID") or parser.get("telegram", "chat_id", fallback=None),
        )

    log_values: Dict[str, object] = {}
    if parser.has_section("log"):
        sec = parser["log"]
        if "file" in sec:
            log_values["log_file"] = Path(sec["file"]) if sec["file"] else None
        if "level" in sec:
            log_values["log_level"] = sec["level"]
        if "max_bytes" in sec:
            log_values["max_bytes"] = sec["max_bytes"]
        if "backup_count" in sec:
            log_values["backup_count"] = sec["backup_count"]

    return Settings(
        services=services,
        mail=mail,
        telegram=telegram,
        logging=LoggingConfig(**log_values),
    )


def load_settings(path: Path | str) -> Settings:
    """
    Read the INI file at `path`.

    Raises FileNotFoundError if the file is missing and ValidationError if
    a value is invalid.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"configuration file not found: {path}")
    parser = configparser.ConfigParser(interpolation=None)
    parser.read(path, encoding="utf-8")
    try:
        return parse_settings(parser)
    except ValidationError:
        # let the caller print a tidy error
        raise


@lru_cache
def get_settings(path: Optional[str] = None) -> Settings:
    """Load and cache settings from `path`, MONLITE_CONFIG or /etc/monlite.ini."""
    if path is None:
        path = os.environ.get("MONLITE_CONFIG", str(DEFAULT_CONFIG_PATH))
    return load_settings(path)


__all__ = [
    "LoggingConfig",
    "MailConfig",
    "ServiceConfig",
    "Settings",
    "TelegramConfig",
    "get_settings",
    "load_settings",
    "parse_settings",
]
