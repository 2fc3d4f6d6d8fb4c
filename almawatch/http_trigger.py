from __future__ import annotations

import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from almawatch.config import Settings
from almawatch.state import StateStore
from almawatch.worker import run_check, status_report

logger = logging.getLogger(__name__)

UNKNOWN_STATUS = "Last check: n/a\nLast auth: n/a\nLast dates hash: n/a\n"


def make_handler(settings: Settings, state: StateStore) -> type[BaseHTTPRequestHandler]:
    class TriggerHandler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            # Ручной запуск проверки; ошибки уже обработаны внутри run_check.
            logger.info("Manual check requested: %s", self.path)
            run_check(settings, state)

            try:
                report = status_report(state)
            except Exception:
                logger.exception("Failed to read status for manual trigger")
                report = UNKNOWN_STATUS

            body = report.encode("utf-8")
            self.send_response(200)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: object) -> None:
            logger.debug("%s - %s", self.address_string(), format % args)

    return TriggerHandler


def make_server(settings: Settings, state: StateStore) -> ThreadingHTTPServer:
    return ThreadingHTTPServer((settings.trigger_host, settings.trigger_port), make_handler(settings, state))


def serve(settings: Settings, state: StateStore) -> None:
    server = make_server(settings, state)
    host, port = server.server_address[:2]
    logger.info("Manual trigger listening on http://%s:%s/", host, port)
    try:
        server.serve_forever()
    finally:
        server.server_close()
