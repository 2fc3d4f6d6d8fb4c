from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_BASE_URL = "https://ru.almaviva-visa.services"


def _chat_id(value: str) -> str:
    # Numeric ids only; groups and channels are negative.
    try:
        number = int(value)
    except ValueError as e:
        raise RuntimeError(f"Invalid TELEGRAM_CHAT_ID value: {value!r}. Expected integer chat id.") from e
    if number == 0:
        raise RuntimeError(f"Invalid TELEGRAM_CHAT_ID value: {value!r} is not a valid chat id")
    return value


def _parse_telegram_chat_ids(raw: str) -> tuple[str, ...]:
    """TELEGRAM_CHAT_ID=123456789 or TELEGRAM_CHAT_ID=123456789,-1001234567890"""
    ids = [_chat_id(part.strip()) for part in raw.split(",") if part.strip()]
    if not ids:
        raise RuntimeError("TELEGRAM_CHAT_ID is empty. Provide at least one chat id.")
    # Order-preserving dedup.
    return tuple(dict.fromkeys(ids))


@dataclass(frozen=True)
class Settings:
    email: str
    password: str

    telegram_bot_token: str
    telegram_chat_ids: tuple[str, ...]

    # Booking-site query parameters
    site_id: str = "16"
    month_offset: int = 0
    persons: str = "1"

    base_url: str = DEFAULT_BASE_URL
    http_timeout_seconds: float = 30.0

    check_interval_seconds: int = 300

    # Where the key-value state lives (sqlite file)
    state_db: str = "state.db"

    # Timezone used for the human-readable timestamps stored in the state
    timestamp_tz: str = "Europe/Moscow"

    # Manual trigger server
    trigger_host: str = "127.0.0.1"
    trigger_port: int = 8080


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _int_env(name: str, default: str) -> int:
    raw = os.getenv(name, "").strip() or default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected integer.") from e


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    check_interval_seconds = _int_env("CHECK_INTERVAL_SECONDS", "300")
    if check_interval_seconds < 1:
        raise RuntimeError("CHECK_INTERVAL_SECONDS must be >= 1")

    raw_timeout = os.getenv("HTTP_TIMEOUT_SECONDS", "30").strip()
    try:
        http_timeout_seconds = float(raw_timeout)
    except ValueError as e:
        raise RuntimeError(f"Invalid HTTP_TIMEOUT_SECONDS value: {raw_timeout!r}") from e
    if http_timeout_seconds <= 0:
        raise RuntimeError("HTTP_TIMEOUT_SECONDS must be > 0")

    # Empty optional values fall back to defaults, same as unset ones.
    site_id = os.getenv("TARGET_SITE_ID", "").strip() or "16"
    persons = os.getenv("PERSONS", "").strip() or "1"
    month_offset = _int_env("TARGET_MONTH_OFFSET", "0")

    return Settings(
        email=_require("EMAIL"),
        password=_require("PASSWORD"),
        telegram_bot_token=_require("TELEGRAM_BOT_TOKEN"),
        telegram_chat_ids=_parse_telegram_chat_ids(_require("TELEGRAM_CHAT_ID")),
        site_id=site_id,
        month_offset=month_offset,
        persons=persons,
        base_url=(os.getenv("BASE_URL", "").strip() or DEFAULT_BASE_URL).rstrip("/"),
        http_timeout_seconds=http_timeout_seconds,
        check_interval_seconds=check_interval_seconds,
        state_db=os.getenv("STATE_DB", "state.db"),
        timestamp_tz=os.getenv("TIMESTAMP_TZ", "").strip() or "Europe/Moscow",
        trigger_host=os.getenv("TRIGGER_HOST", "127.0.0.1"),
        trigger_port=_int_env("TRIGGER_PORT", "8080"),
    )
