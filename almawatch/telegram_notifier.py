from __future__ import annotations

import httpx

TELEGRAM_API = "https://api.telegram.org"


class TelegramError(RuntimeError):
    """Telegram answered, but did not accept the message."""

    def __init__(self, description: str, error_code: int | None = None):
        self.description = description
        self.error_code = error_code
        super().__init__(f"Telegram API error {error_code}: {description}" if error_code else f"Telegram API error: {description}")


def send_telegram_message(
    *,
    bot_token: str,
    chat_id: str,
    text: str,
    timeout_seconds: float = 20.0,
    client: httpx.Client | None = None,
) -> None:
    """Send a plain-text message (no parse_mode, so nothing needs escaping)."""
    if not text:
        return

    payload = {"chat_id": chat_id, "text": text, "disable_web_page_preview": True}
    url = f"{TELEGRAM_API}/bot{bot_token}/sendMessage"

    if client is None:
        with httpx.Client(timeout=timeout_seconds) as own:
            response = own.post(url, json=payload)
    else:
        response = client.post(url, json=payload)

    try:
        data = response.json()
    except ValueError:
        response.raise_for_status()
        raise TelegramError(f"non-JSON response ({response.status_code})")

    if not data.get("ok", False):
        raise TelegramError(str(data.get("description") or data), data.get("error_code"))
