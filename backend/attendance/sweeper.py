from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from django.db import close_old_connections

from .services import auto_close_open_sessions

logger = logging.getLogger(__name__)


class AttendanceSweeper:
    """
    Runs the auto-checkout sweep on a fixed interval in a background thread.

    For deployments without Celery beat. The owner starts and stops it; a
    failing pass is logged and the next one still runs.
    """

    def __init__(self, interval: float = 60, sweep: Callable[[], int] = auto_close_open_sessions):
        self.interval = interval if interval and interval > 0 else 60
        self._sweep = sweep
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int:
        try:
            return self._sweep()
        except Exception:
            logger.exception("Attendance auto checkout pass failed")
            return 0

    def _loop(self):
        while not self._stop.is_set():
            self.run_once()
            close_old_connections()
            self._stop.wait(self.interval)

    def start(self) -> "AttendanceSweeper":
        if self.running:
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="attendance-sweeper", daemon=True)
        self._thread.start()
        logger.info("Attendance sweeper started (every %ss)", self.interval)
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Attendance sweeper stopped")
