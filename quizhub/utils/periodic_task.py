"""Background thread that runs a callable on a fixed interval until cancelled."""

from __future__ import annotations

from collections.abc import Callable
import logging
from threading import Event, Thread

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Calls ``action`` every ``interval_seconds`` on a daemon thread.

    A failing tick is logged and the loop keeps going. ``stop`` sets the
    cancellation event; ticks are not ordered against other tasks.
    """

    def __init__(self, name: str, interval_seconds: float, action: Callable[[], object]) -> None:
        if interval_seconds <= 0:
            raise ValueError("Interval must be positive.")
        self._name = name
        self._interval = interval_seconds
        self._action = action
        self._stop_event = Event()
        self._thread: Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        logger.info("Started periodic task %s (every %.1fs)", self._name, self._interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> None:
        try:
            self._action()
        except Exception:
            logger.exception("Periodic task %s failed", self._name)

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            self.run_once()
