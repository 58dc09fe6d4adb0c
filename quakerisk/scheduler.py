"""Periodic ingestion scheduler.

Runs the ingestion cycle on a background thread every interval. Ticks
are single-flight: a tick that fires while the previous run is still in
progress is skipped rather than queued.
"""

import logging
import threading
from typing import Callable, TypeVar


logger = logging.getLogger(__name__)


DEFAULT_INTERVAL_SECONDS = 300

T = TypeVar("T")


class IngestionScheduler:
    """Fixed-interval runner for one cycle function."""

    def __init__(
        self,
        run_cycle: Callable[[], T],
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the scheduler.

        Args:
            run_cycle: Function performing one ingestion cycle
            interval_seconds: Delay between the start of two ticks
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        self.run_cycle = run_cycle
        self.interval_seconds = interval_seconds
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> T | None:
        """Run one cycle unless one is already in progress.

        Returns:
            The cycle's result, or None when skipped or failed
        """
        if not self._run_lock.acquire(blocking=False):
            logger.info("Previous ingestion cycle still running, skipping tick")
            return None

        try:
            return self.run_cycle()
        except Exception:
            logger.exception("Ingestion cycle failed")
            return None
        finally:
            self._run_lock.release()

    def _loop(self) -> None:
        logger.info("Ingestion scheduler started (every %ss)", self.interval_seconds)
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(self.interval_seconds)
        logger.info("Ingestion scheduler stopped")

    def start(self) -> None:
        """Start the background loop; the first tick runs immediately."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="ingestion-scheduler",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Signal the loop to exit and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
