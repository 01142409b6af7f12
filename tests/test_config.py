from pathlib import Path

import pytest
from pydantic import ValidationError

from monlite.config import get_settings, load_settings


CONFIG = """
[log]
file = {log_file}
level = debug

[mail]
smtp = smtp.example.com:587
account = monitor@example.com
password = from-file
from = monitor@example.com
to = ops@example.com, oncall@example.com
helo = monitor.local
timeout = 7

[service.website]
url = https://example.com
timeout = 5
periode = 60
sleep = 600
fails = 3

[service.api]
url = https://api.example.com/health
period = 15

[other]
ignored = yes
"""


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    for var in ("MONLITE_SMTP_PASSWORD", "MONLITE_BOT_TOKEN", "MONLITE_CHAT_ID"):
        monkeypatch.delenv(var, raising=False)
    path = tmp_path / "monlite.ini"
    path.write_text(CONFIG.format(log_file=tmp_path / "monlite.log"), encoding="utf-8")
    return path


def test_services_are_read_from_sections(config_file):
    settings = load_settings(config_file)

    assert [s.name for s in settings.services] == ["website", "api"]
    website, api = settings.services
    assert website.url == "https://example.com"
    assert website.period == 60
    assert website.timeout == 5
    assert website.sleep == 600
    assert website.fails == 3
    assert api.period == 15
    assert api.timeout == 10
    assert api.sleep == 0
    assert api.fails == 1


def test_mail_and_logging_sections(config_file, tmp_path):
    settings = load_settings(config_file)

    assert settings.mail is not None
    assert settings.mail.host == "smtp.example.com"
    assert settings.mail.port == 587
    assert settings.mail.to == ["ops@example.com", "oncall@example.com"]
    assert settings.mail.password == "from-file"
    assert settings.mail.timeout == 7
    assert settings.telegram is None
    assert settings.logging.log_level == "DEBUG"
    assert settings.logging.log_file == tmp_path / "monlite.log"


def test_secrets_from_environment(config_file, monkeypatch):
    monkeypatch.setenv("MONLITE_SMTP_PASSWORD", "from-env")
    monkeypatch.setenv("MONLITE_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("MONLITE_CHAT_ID", "42")

    settings = load_settings(config_file)

    assert settings.mail.password == "from-env"
    assert settings.telegram is not None
    assert settings.telegram.token == "123:abc"
    assert settings.telegram.chat_id == 42


def test_invalid_period_is_rejected(tmp_path):
    path = tmp_path / "bad.ini"
    path.write_text("[service.broken]\nurl = https://example.com\nperiode = 0\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        load_settings(path)


def test_missing_url_is_rejected(tmp_path):
    path = tmp_path / "bad.ini"
    path.write_text("[service.broken]\nperiode = 10\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        load_settings(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "absent.ini")


def test_get_settings_uses_environment_path(config_file, monkeypatch):
    monkeypatch.setenv("MONLITE_CONFIG", str(config_file))
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert get_settings() is settings
        assert len(settings.services) == 2
    finally:
        get_settings.cache_clear()


def test_log_file_can_be_disabled(tmp_path):
    path = tmp_path / "nolog.ini"
    path.write_text("[log]\nfile =\n", encoding="utf-8")

    settings = load_settings(Path(path))

    assert settings.logging.log_file is None
    assert settings.services == []


def test_log_level_is_normalised_and_checked(tmp_path):
    path = tmp_path / "level.ini"
    path.write_text("[log]\nfile =\nlevel = Warning\n", encoding="utf-8")
    assert load_settings(path).logging.log_level == "WARNING"

    path.write_text("[log]\nfile =\nlevel = verbose\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_settings(path)


@pytest.mark.parametrize("smtp", ["smtp.example.com:abc", "smtp.example.com:0", ":25", ""])
def test_malformed_smtp_server_is_rejected(tmp_path, smtp):
    path = tmp_path / "mail.ini"
    path.write_text(
        f"[mail]\nsmtp = {smtp}\nfrom = a@example.com\nto = b@example.com\n",
        encoding="utf-8",
    )

    with pytest.raises(ValidationError):
        load_settings(path)


def test_smtp_port_defaults_to_25(tmp_path):
    path = tmp_path / "mail.ini"
    path.write_text(
        "[mail]\nsmtp = smtp.example.com\nfrom = a@example.com\nto = b@example.com\n",
        encoding="utf-8",
    )

    mail = load_settings(path).mail
    assert (mail.host, mail.port) == ("smtp.example.com", 25)


def test_telegram_token_requires_chat_id(tmp_path, monkeypatch):
    monkeypatch.delenv("MONLITE_BOT_TOKEN", raising=False)
    monkeypatch.delenv("MONLITE_CHAT_ID", raising=False)
    path = tmp_path / "tg.ini"
    path.write_text("[telegram]\ntoken = 123:abc\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        load_settings(path)
