from __future__ import annotations

import hashlib
import logging
from typing import Sequence

from almawatch.config import Settings
from almawatch.domain import MonthRange
from almawatch.state import StateStore
from almawatch.telegram_notifier import send_telegram_message

logger = logging.getLogger(__name__)

MAX_LISTED_DATES = 15


def _broadcast_telegram(settings: Settings, text: str) -> None:
    # Send failures are logged only and never reach the failure tracker.
    for chat_id in settings.telegram_chat_ids:
        try:
            send_telegram_message(
                bot_token=settings.telegram_bot_token,
                chat_id=chat_id,
                text=text,
            )
        except Exception as e:
            logger.error("Telegram send failed for chat_id=%s (%s: %s)", chat_id, type(e).__name__, e)


def dates_digest(dates: Sequence[str]) -> str:
    return hashlib.sha256(",".join(dates).encode("utf-8")).hexdigest()


def build_dates_message(dates: Sequence[str], month_range: MonthRange) -> str:
    header = f"✅ Free dates for {month_range.display_month:02d}/{month_range.display_year}:"
    listed = "\n".join(f"• {d}" for d in dates[:MAX_LISTED_DATES])
    extra = f"\n…(+{len(dates) - MAX_LISTED_DATES} more)" if len(dates) > MAX_LISTED_DATES else ""
    return f"{header}\n{listed}{extra}"


def maybe_notify_new_dates(
    settings: Settings, state: StateStore, dates: Sequence[str], month_range: MonthRange
) -> bool:
    """Send the date list unless the same list was already sent.

    Returns True if a message went out.
    """
    digest = dates_digest(sorted(dates))
    if digest == state.load_last_dates_hash():
        logger.info("Dates unchanged; notification suppressed.")
        return False

    # Saved before sending; a crash after the send must not resend.
    state.save_last_dates_hash(digest)

    _broadcast_telegram(settings, build_dates_message(sorted(dates), month_range))
    logger.info("Telegram notification sent (%d dates).", len(dates))
    return True


def truncate(s: str, max_len: int) -> str:
    return s[: max_len - 3] + "..." if len(s) > max_len else s


def error_message(err: BaseException) -> str:
    msg = str(err).strip()
    return msg or type(err).__name__


def should_escalate(count: int) -> bool:
    return count in (3, 5) or count % 10 == 0


def record_failure_and_maybe_notify(settings: Settings, state: StateStore, err: BaseException) -> bool:
    """Bump the consecutive failure counter and alert when appropriate.

    A new message is always reported. A repeated one only at counts 3, 5
    and every tenth failure. Returns True if a message went out.
    """
    current = state.load_fail_count() + 1
    state.save_fail_count(current)

    msg = error_message(err)

    if state.load_last_error() != msg:
        state.save_last_error(msg)
        _broadcast_telegram(settings, f"❗ Error: {truncate(msg, 300)} (fail #{current})")
        return True

    if should_escalate(current):
        _broadcast_telegram(settings, f"⚠️ Still failing ({current} times): {truncate(msg, 200)}")
        return True

    logger.info("Same error again (fail #%d), notification suppressed.", current)
    return False


def reset_failure_count(state: StateStore) -> None:
    state.save_fail_count(0)
    # A repeat of the old error counts as new after a success.
    state.clear_last_error()
