from __future__ import annotations

import calendar
import json
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable


@dataclass(frozen=True)
class Credential:
    """Login response of the booking site.

    Only ``accessToken`` is understood; every other field is kept as-is in
    ``extra`` so the payload can be written back unchanged (the site expects
    it inside the ``auth-user`` cookie).
    """

    access_token: str
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> Credential:
        if not isinstance(payload, dict):
            raise AuthenticationError(None, f"unexpected login payload type {type(payload).__name__}")
        token = payload.get("accessToken")
        if not isinstance(token, str) or not token:
            raise AuthenticationError(None, "login response has no accessToken")
        extra = {k: v for k, v in payload.items() if k != "accessToken"}
        return cls(access_token=token, extra=extra)

    def to_payload(self) -> dict[str, Any]:
        return {"accessToken": self.access_token, **self.extra}

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True)
class MonthRange:
    start_iso: str  # YYYY-MM-DD, first day
    end_iso: str  # YYYY-MM-DD, last day
    display_month: int  # 1-12
    display_year: int

    def days(self) -> list[str]:
        start = date.fromisoformat(self.start_iso)
        end = date.fromisoformat(self.end_iso)
        result: list[str] = []
        d = start
        while d <= end:
            result.append(d.isoformat())
            d += timedelta(days=1)
        return result


@dataclass(frozen=True)
class AvailabilityResult:
    available_dates: list[str]
    month_range: MonthRange


class AuthenticationError(RuntimeError):
    """Login endpoint answered with a non-success status (or an unusable body)."""

    def __init__(self, status: int | None, body: str):
        self.status = status
        self.body = body
        if status is None:
            super().__init__(f"Login failed: {body}")
        else:
            super().__init__(f"Login failed: {status} {body}")


class FetchError(RuntimeError):
    """Disabled-dates endpoint failed."""

    def __init__(self, status: int | None, message: str | None = None):
        self.status = status
        super().__init__(message or f"Dates fetch failed: {status}")


class CredentialExpiredError(FetchError):
    """Site rejected the bearer token (401/403)."""


def calculate_month_range(offset: int, today: date | None = None) -> MonthRange:
    if today is None:
        today = datetime.now(timezone.utc).date()

    month_index = today.year * 12 + (today.month - 1) + offset
    year, month0 = divmod(month_index, 12)
    month = month0 + 1
    last_day = calendar.monthrange(year, month)[1]

    return MonthRange(
        start_iso=date(year, month, 1).isoformat(),
        end_iso=date(year, month, last_day).isoformat(),
        display_month=month,
        display_year=year,
    )


def to_ddmmyyyy(iso: str) -> str:
    y, m, d = iso.split("-")
    return f"{d}/{m}/{y}"


def _disabled_iso(record: Any) -> str | None:
    if not isinstance(record, dict):
        return None
    raw = record.get("date")
    if not isinstance(raw, str) or not raw:
        return None
    # "2025-07-22" or "2025-07-22T00:00:00"
    return raw[:10]


def compute_available_days(disabled: Iterable[Any], month_range: MonthRange) -> list[str]:
    disabled_set = {iso for iso in (_disabled_iso(r) for r in disabled) if iso}
    return [d for d in month_range.days() if d not in disabled_set]
