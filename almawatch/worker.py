from __future__ import annotations

import logging
import threading
import time

from almawatch.config import Settings
from almawatch.kv_store import KeyValueStore
from almawatch.notifications import (
    maybe_notify_new_dates,
    record_failure_and_maybe_notify,
    reset_failure_count,
)
from almawatch.site_client import SiteClient
from almawatch.state import StateStore

logger = logging.getLogger(__name__)


def open_state(settings: Settings) -> StateStore:
    return StateStore(KeyValueStore(settings.state_db), tz=settings.timestamp_tz)


def _run_cycle(settings: Settings, state: StateStore, client: SiteClient) -> None:
    credential = client.ensure_auth()
    result = client.fetch_available_dates(credential)

    if result.available_dates:
        maybe_notify_new_dates(settings, state, result.available_dates, result.month_range)
        reset_failure_count(state)
    else:
        # Empty but successful check is not a failure.
        logger.info("No free dates in %02d/%d", result.month_range.display_month, result.month_range.display_year)
        reset_failure_count(state)
        state.save_last_status(200)


def run_check(settings: Settings, state: StateStore | None = None, client: SiteClient | None = None) -> bool:
    """Run one check cycle. Never raises; returns True if the cycle succeeded."""
    try:
        if state is None:
            state = open_state(settings)
        if client is None:
            with SiteClient(settings, state) as own_client:
                _run_cycle(settings, state, own_client)
        else:
            _run_cycle(settings, state, client)
        return True

    except Exception as e:
        # Стектрейс не логируем, чтобы не засорять логи
        logger.error("Check failed (%s: %s)", type(e).__name__, e)
        if state is None:
            return False
        try:
            record_failure_and_maybe_notify(settings, state, e)
        except Exception:
            logger.exception("Failed to record check failure")
        return False


def status_report(state: StateStore) -> str:
    last = state.load_last_status()
    last_auth = state.load_last_auth()
    last_dates = state.load_last_dates_hash()
    return (
        f"Last check: {last or 'n/a'}\n"
        f"Last auth: {last_auth or 'n/a'}\n"
        f"Last dates hash: {last_dates or 'n/a'}\n"
    )


def trigger_scheduled(settings: Settings, state: StateStore | None = None) -> threading.Thread:
    """Start a check cycle in the background and return without waiting for it."""
    t = threading.Thread(target=run_check, args=(settings, state), name="almawatch-check", daemon=True)
    t.start()
    return t


def _tick(settings: Settings, state: StateStore | None, previous: threading.Thread | None) -> threading.Thread:
    if previous is not None and previous.is_alive():
        logger.warning("Previous check is still running, skipping this tick")
        return previous
    return trigger_scheduled(settings, state)


def run_forever(settings: Settings, state: StateStore | None = None) -> None:
    logger.info("Worker started. Interval=%ss", settings.check_interval_seconds)
    current: threading.Thread | None = None
    while True:
        current = _tick(settings, state, current)
        time.sleep(settings.check_interval_seconds)
