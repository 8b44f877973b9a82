# src/taskpulse/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the overdue / due-soon scanners in a background thread,
- the console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state, shutdown_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging
from ..tasks.task_scheduler import ScannerBackgroundRunner

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(
        log_dir=settings.data_dir,
        console_level=settings.log_level,
        app_name=settings.app_name,
    )

    logger.info("Starting %s (log file %s)...", settings.app_name, log_file)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    runner = ScannerBackgroundRunner(state.schedulers)
    state.scanner_runner = runner
    runner.start()

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError):
        # Not on the main thread, or SIGTERM unsupported on this platform.
        logger.debug("Signal handlers not installed.", exc_info=True)

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running scanners only. Press Ctrl+C to stop.")
            stop_main.wait()

    finally:
        shutdown_state(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
