from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from almawatch.domain import AuthenticationError, Credential
from almawatch.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "Cookie"
LAST_KEY = "Last"
LAST_AUTH_KEY = "Last_auth"
LAST_DATES_KEY = "Last_dates"
FAIL_COUNT_KEY = "fail_count"
LAST_ERROR_KEY = "last_error_msg"

# Assumed lifetime of the site's access token.
CREDENTIAL_TTL_SECONDS = 8 * 60 * 60

_HEX_DIGEST = re.compile(r"^[0-9a-f]{64}$")
_LAST_STATUS = re.compile(r"^(\d{3}):(.+)$", re.DOTALL)


def timestamp(tz: str = "Europe/Moscow", now: datetime | None = None) -> str:
    if now is None:
        now = datetime.now(ZoneInfo(tz))
    else:
        now = now.astimezone(ZoneInfo(tz))
    return now.strftime("%d.%m.%Y, %H:%M:%S")


@dataclass(frozen=True)
class LastStatus:
    http_status: int
    at: str

    def __str__(self) -> str:
        return f"{self.http_status}:{self.at}"


class StateStore:
    """Typed access to the flat keys the checker keeps in the key-value store."""

    def __init__(self, kv: KeyValueStore, *, tz: str = "Europe/Moscow"):
        self.kv = kv
        self.tz = tz

    def now(self) -> str:
        return timestamp(self.tz)

    # --- credential ---

    def load_credential(self) -> Credential | None:
        raw = self.kv.get(CREDENTIAL_KEY)
        if raw is None:
            return None
        try:
            return Credential.from_payload(json.loads(raw))
        except (json.JSONDecodeError, AuthenticationError):
            logger.warning("Cached credential is malformed, ignoring it")
            return None

    def save_credential(self, credential: Credential) -> None:
        self.kv.put(CREDENTIAL_KEY, credential.to_json(), ttl_seconds=CREDENTIAL_TTL_SECONDS)

    def clear_credential(self) -> None:
        self.kv.delete(CREDENTIAL_KEY)

    # --- status ---

    def load_last_status(self) -> LastStatus | None:
        raw = self.kv.get(LAST_KEY)
        if raw is None:
            return None
        m = _LAST_STATUS.match(raw)
        if not m:
            logger.warning("Ignoring malformed %s value: %r", LAST_KEY, raw)
            return None
        return LastStatus(http_status=int(m.group(1)), at=m.group(2))

    def save_last_status(self, http_status: int) -> None:
        self.kv.put(LAST_KEY, str(LastStatus(http_status=http_status, at=self.now())))

    def load_last_auth(self) -> str | None:
        return self.kv.get(LAST_AUTH_KEY) or None

    def save_last_auth(self) -> None:
        self.kv.put(LAST_AUTH_KEY, self.now())

    # --- notified dates ---

    def load_last_dates_hash(self) -> str | None:
        raw = self.kv.get(LAST_DATES_KEY)
        if raw is None:
            return None
        if not _HEX_DIGEST.match(raw):
            logger.warning("Ignoring malformed %s value: %r", LAST_DATES_KEY, raw)
            return None
        return raw

    def save_last_dates_hash(self, digest: str) -> None:
        if not _HEX_DIGEST.match(digest):
            raise ValueError(f"Not a sha256 hex digest: {digest!r}")
        self.kv.put(LAST_DATES_KEY, digest)

    # --- failures ---

    def load_fail_count(self) -> int:
        raw = self.kv.get(FAIL_COUNT_KEY)
        if raw is None:
            return 0
        try:
            value = int(raw)
        except ValueError:
            value = -1
        if value < 0:
            logger.warning("Ignoring malformed %s value: %r", FAIL_COUNT_KEY, raw)
            return 0
        return value

    def save_fail_count(self, count: int) -> None:
        if count < 0:
            raise ValueError("fail_count must be non-negative")
        self.kv.put(FAIL_COUNT_KEY, str(count))

    def load_last_error(self) -> str | None:
        return self.kv.get(LAST_ERROR_KEY)

    def save_last_error(self, message: str) -> None:
        self.kv.put(LAST_ERROR_KEY, message)

    def clear_last_error(self) -> None:
        self.kv.delete(LAST_ERROR_KEY)
