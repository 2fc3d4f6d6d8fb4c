import argparse
import logging
import threading

from almawatch.config import load_settings
from almawatch.http_trigger import serve
from almawatch.worker import open_state, run_check, run_forever, status_report


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="almawatch: visa appointment date watcher")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run single check, print status and exit")
    mode.add_argument("--serve", action="store_true", help="Run the timer plus the manual trigger HTTP server")
    args = parser.parse_args()

    _setup_logging()
    settings = load_settings()
    state = open_state(settings)

    if args.once:
        ok = run_check(settings, state)
        print(status_report(state), end="")
        return 0 if ok else 1

    if args.serve:
        timer = threading.Thread(target=run_forever, args=(settings, state), name="almawatch-timer", daemon=True)
        timer.start()
        serve(settings, state)
        return 0

    run_forever(settings, state)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
