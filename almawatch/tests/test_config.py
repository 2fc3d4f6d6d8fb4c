from __future__ import annotations

import pytest

from almawatch.config import DEFAULT_BASE_URL, load_settings

_OPTIONAL = (
    "TARGET_SITE_ID",
    "TARGET_MONTH_OFFSET",
    "PERSONS",
    "BASE_URL",
    "STATE_DB",
    "CHECK_INTERVAL_SECONDS",
    "HTTP_TIMEOUT_SECONDS",
    "TIMESTAMP_TZ",
    "TRIGGER_HOST",
    "TRIGGER_PORT",
)


@pytest.fixture
def required_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _OPTIONAL:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("EMAIL", "user@example.com")
    monkeypatch.setenv("PASSWORD", "p")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "t")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "1")
    return monkeypatch


def test_load_settings_defaults(required_env: pytest.MonkeyPatch) -> None:
    settings = load_settings(dotenv_path=None)

    assert settings.site_id == "16"
    assert settings.month_offset == 0
    assert settings.persons == "1"
    assert settings.base_url == DEFAULT_BASE_URL
    assert settings.check_interval_seconds == 300
    assert settings.state_db == "state.db"
    assert settings.timestamp_tz == "Europe/Moscow"


def test_load_settings_reads_optional_values(required_env: pytest.MonkeyPatch) -> None:
    required_env.setenv("TARGET_SITE_ID", "21")
    required_env.setenv("TARGET_MONTH_OFFSET", "2")
    required_env.setenv("PERSONS", "3")
    required_env.setenv("BASE_URL", "https://example.test/")

    settings = load_settings(dotenv_path=None)
    assert settings.site_id == "21"
    assert settings.month_offset == 2
    assert settings.persons == "3"
    # Trailing slash is dropped so endpoints can be appended.
    assert settings.base_url == "https://example.test"


def test_load_settings_empty_optional_values_use_defaults(required_env: pytest.MonkeyPatch) -> None:
    required_env.setenv("TARGET_SITE_ID", "")
    required_env.setenv("TARGET_MONTH_OFFSET", "")
    required_env.setenv("PERSONS", " ")

    settings = load_settings(dotenv_path=None)
    assert (settings.site_id, settings.month_offset, settings.persons) == ("16", 0, "1")


def test_load_settings_rejects_non_integer_month_offset(required_env: pytest.MonkeyPatch) -> None:
    required_env.setenv("TARGET_MONTH_OFFSET", "next")

    with pytest.raises(RuntimeError, match=r"Invalid TARGET_MONTH_OFFSET"):
        load_settings(dotenv_path=None)


def test_load_settings_requires_credentials(required_env: pytest.MonkeyPatch) -> None:
    required_env.delenv("PASSWORD")

    with pytest.raises(RuntimeError, match=r"Missing required environment variable: PASSWORD"):
        load_settings(dotenv_path=None)


def test_load_settings_rejects_zero_check_interval(required_env: pytest.MonkeyPatch) -> None:
    required_env.setenv("CHECK_INTERVAL_SECONDS", "0")

    with pytest.raises(RuntimeError, match=r"CHECK_INTERVAL_SECONDS must be >= 1"):
        load_settings(dotenv_path=None)


def test_load_settings_parses_multiple_telegram_chat_ids(required_env: pytest.MonkeyPatch) -> None:
    # Chat ids (csv) with spaces, duplicates and empty parts.
    required_env.setenv("TELEGRAM_CHAT_ID", "1, 2,2,, -1003, 1")

    settings = load_settings(dotenv_path=None)
    assert settings.telegram_chat_ids == ("1", "2", "-1003")


def test_load_settings_rejects_empty_telegram_chat_ids(required_env: pytest.MonkeyPatch) -> None:
    required_env.setenv("TELEGRAM_CHAT_ID", " , ,")

    with pytest.raises(RuntimeError, match=r"TELEGRAM_CHAT_ID is empty"):
        load_settings(dotenv_path=None)


def test_load_settings_rejects_non_integer_telegram_chat_id(required_env: pytest.MonkeyPatch) -> None:
    required_env.setenv("TELEGRAM_CHAT_ID", "abc")

    with pytest.raises(RuntimeError, match=r"Invalid TELEGRAM_CHAT_ID"):
        load_settings(dotenv_path=None)


def test_load_settings_rejects_zero_chat_id(required_env: pytest.MonkeyPatch) -> None:
    required_env.setenv("TELEGRAM_CHAT_ID", "0")

    with pytest.raises(RuntimeError, match=r"not a valid chat id"):
        load_settings(dotenv_path=None)


def test_load_settings_does_not_override_existing_env_with_dotenv(required_env: pytest.MonkeyPatch, tmp_path) -> None:
    # load_dotenv(override=False) must not overwrite already-set env vars.
    dotenv = tmp_path / ".env"
    dotenv.write_text("TELEGRAM_CHAT_ID=999\n")

    settings = load_settings(dotenv_path=str(dotenv))
    assert settings.telegram_chat_ids == ("1",)


def test_load_settings_rejects_negative_zero_chat_id(required_env: pytest.MonkeyPatch) -> None:
    required_env.setenv("TELEGRAM_CHAT_ID", "5,-0")

    with pytest.raises(RuntimeError, match=r"'-0' is not a valid chat id"):
        load_settings(dotenv_path=None)
