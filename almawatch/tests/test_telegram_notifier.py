"""Telegram delivery tests.

Unit tests below run against httpx.MockTransport. The smoke test at the end
talks to the real Telegram API and is skipped by default.

Для запуска smoke-теста установите переменные окружения:
    TELEGRAM_BOT_TOKEN
    TELEGRAM_CHAT_ID  (если задан список через запятую, используется *первый* id)

    python -m pytest -q -m telegram
"""

from __future__ import annotations

import json
import os
from unittest.mock import patch

import httpx
import pytest

from almawatch.telegram_notifier import TelegramError, send_telegram_message


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_send_posts_plain_text_payload() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True, "result": {}})

    send_telegram_message(bot_token="123:abc", chat_id="-100", text="hello", client=_client(handler))

    assert len(seen) == 1
    assert str(seen[0].url) == "https://api.telegram.org/bot123:abc/sendMessage"
    assert json.loads(seen[0].content) == {"chat_id": "-100", "text": "hello", "disable_web_page_preview": True}


def test_own_client_is_used_when_none_given() -> None:
    real_client = httpx.Client
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    with patch("almawatch.telegram_notifier.httpx.Client", factory):
        send_telegram_message(bot_token="t", chat_id="1", text="x")

    assert len(seen) == 1


def test_empty_text_is_not_sent() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("should not be called")

    send_telegram_message(bot_token="t", chat_id="1", text="", client=_client(handler))


def test_api_error_raises_with_description() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"ok": False, "error_code": 400, "description": "Bad Request: chat not found"})

    with pytest.raises(TelegramError, match=r"Telegram API error 400: Bad Request: chat not found") as exc_info:
        send_telegram_message(bot_token="t", chat_id="1", text="x", client=_client(handler))

    assert exc_info.value.error_code == 400


def test_not_ok_without_code_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": False})

    with pytest.raises(TelegramError, match=r"Telegram API error"):
        send_telegram_message(bot_token="t", chat_id="1", text="x", client=_client(handler))


def test_non_json_http_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    with pytest.raises(httpx.HTTPStatusError):
        send_telegram_message(bot_token="t", chat_id="1", text="x", client=_client(handler))


@pytest.mark.telegram
@pytest.mark.skipif(
    not os.getenv("TELEGRAM_BOT_TOKEN") or not os.getenv("TELEGRAM_CHAT_ID"),
    reason="Set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID to run Telegram smoke test",
)
def test_telegram_message_delivery_smoke() -> None:
    send_telegram_message(
        bot_token=os.environ["TELEGRAM_BOT_TOKEN"],
        chat_id=os.environ["TELEGRAM_CHAT_ID"].split(",", 1)[0].strip(),
        text="almawatch: Telegram smoke test (pytest)",
    )
