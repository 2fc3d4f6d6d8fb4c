from __future__ import annotations

import logging
from datetime import date
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt

from almawatch.config import Settings
from almawatch.domain import (
    AuthenticationError,
    AvailabilityResult,
    Credential,
    CredentialExpiredError,
    FetchError,
    calculate_month_range,
    compute_available_days,
    to_ddmmyyyy,
)
from almawatch.state import StateStore

logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "/api/login"
DISABLED_DATES_ENDPOINT = "/api/sites/disabled-dates/"

# encodeURIComponent leaves these unescaped; the site parses cookies that way.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def _encode_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def prepare_cookie(credential: Credential) -> str:
    template: dict[str, str] = {
        "auth-token": credential.access_token,
        "auth-user": credential.to_json(),
        "cookie-consent": "true",
    }
    return "; ".join(f"{_encode_component(k)}={_encode_component(v)}" for k, v in template.items())


class SiteClient:
    """Booking-site API: login with credential caching and the disabled-dates query."""

    def __init__(
        self,
        settings: Settings,
        state: StateStore,
        *,
        http: httpx.Client | None = None,
        today: date | None = None,
    ):
        self.settings = settings
        self.state = state
        self._http = http or httpx.Client(timeout=settings.http_timeout_seconds)
        self._owns_http = http is None
        self._today = today

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> SiteClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url}{path}"

    # --- auth ---

    def ensure_auth(self) -> Credential:
        credential = self.state.load_credential()
        if credential is None:
            credential = self.login()
        return credential

    def login(self) -> Credential:
        logger.info("Authenticating as %s", self.settings.email)
        base = self.settings.base_url
        r = self._http.post(
            self._url(LOGIN_ENDPOINT),
            headers={
                "Accept": "application/json, text/plain, */*",
                "Authorization": "Bearer",
                "Origin": base,
                "Referer": f"{base}/signin?returnUrl=%2Fappointment",
            },
            json={"email": self.settings.email, "password": self.settings.password},
        )
        if not r.is_success:
            raise AuthenticationError(r.status_code, r.text)

        credential = Credential.from_payload(r.json())
        self.state.save_credential(credential)
        self.state.save_last_auth()
        logger.info("Authenticated")
        return credential

    # --- dates ---

    def fetch_available_dates(self, credential: Credential) -> AvailabilityResult:
        month_range = calculate_month_range(self.settings.month_offset, self._today)
        current = [credential]

        def _refresh_credential(retry_state: RetryCallState) -> None:
            logger.info("Auth token expired, re-authenticating...")
            self.state.clear_credential()
            current[0] = self.login()

        # One retry at most: a second 401/403 propagates.
        fetch = retry(
            stop=stop_after_attempt(2),
            retry=retry_if_exception_type(CredentialExpiredError),
            before_sleep=_refresh_credential,
            reraise=True,
        )(lambda: self._fetch_disabled(current[0], month_range.start_iso, month_range.end_iso))

        disabled = fetch()
        available = compute_available_days(disabled, month_range)
        logger.info(
            "Dates %02d/%d: disabled=%d available=%d",
            month_range.display_month,
            month_range.display_year,
            len(disabled),
            len(available),
        )
        return AvailabilityResult(available_dates=available, month_range=month_range)

    def _fetch_disabled(self, credential: Credential, start_iso: str, end_iso: str) -> list[Any]:
        base = self.settings.base_url
        r = self._http.get(
            self._url(DISABLED_DATES_ENDPOINT),
            params={
                "start": to_ddmmyyyy(start_iso),
                "end": to_ddmmyyyy(end_iso),
                "siteId": self.settings.site_id,
                "persons": self.settings.persons,
            },
            headers={
                "Accept": "application/json, text/plain, */*",
                "Authorization": f"Bearer {credential.access_token}",
                "Origin": base,
                "Referer": f"{base}/appointment",
                "Cookie": prepare_cookie(credential),
            },
        )

        if r.status_code in (401, 403):
            raise CredentialExpiredError(r.status_code)

        if not r.is_success:
            self.state.save_last_status(r.status_code)
            raise FetchError(r.status_code)

        self.state.save_last_status(200)

        data = r.json()
        if not isinstance(data, list):
            raise FetchError(r.status_code, f"Dates fetch returned {type(data).__name__}, expected a list")
        return data
