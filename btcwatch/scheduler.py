"""
Background polling scheduler with a durable on/off flag.
"""

import logging
import threading
from typing import Optional

from btcwatch.database.repository import SchedulerSettingsRepository

logger = logging.getLogger(__name__)


class PollingScheduler:
    """Runs fetch-and-evaluate passes on a fixed interval."""

    def __init__(self, app, settings_repo: SchedulerSettingsRepository):
        """
        Initialize scheduler.

        Args:
            app: Object with a fetch_and_evaluate() method
            settings_repo: Where the interval and enabled flag are stored
        """
        self.app = app
        self.settings_repo = settings_repo
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self.passes_run = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """
        Start polling and persist the enabled flag.

        Returns:
            False if already running
        """
        self.settings_repo.set_enabled(True)
        if self.is_running:
            return False

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name="btcwatch-poller", daemon=True
        )
        self._thread.start()
        logger.info(
            f"Polling started every {self.settings_repo.get().interval_seconds}s"
        )
        return True

    def stop(self, persist: bool = True, timeout: Optional[float] = 5.0) -> None:
        """
        Stop polling.

        Args:
            persist: Also turn the durable flag off
            timeout: Seconds to wait for an in-flight pass to finish
        """
        if persist:
            self.settings_repo.set_enabled(False)
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Polling stopped")

    def resume(self) -> bool:
        """Start only if the stored flag says polling was left on."""
        if not self.settings_repo.get().enabled:
            logger.info("Polling is disabled, not resuming")
            return False
        return self.start()

    def run_once(self) -> None:
        """Run a single pass, logging rather than raising failures."""
        try:
            result = self.app.fetch_and_evaluate()
            if not result.success:
                logger.warning(f"Polling pass failed: {result.error}")
        except Exception as e:
            logger.error(f"Polling pass crashed: {e}")
        finally:
            self.passes_run += 1

    def run_forever(self, force: bool = False) -> None:
        """
        Block the calling thread while polling runs.

        Args:
            force: Start even if the stored flag is off
        """
        started = self.start() if force else self.resume()
        if not started and not self.is_running:
            return

        try:
            while self.is_running:
                self._stop_event.wait(1.0)
        except KeyboardInterrupt:
            # Leave the flag on so the next run resumes
            self.stop(persist=False)

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            # The flag may be turned off from another process
            if not self.settings_repo.get().enabled:
                logger.info("Polling disabled in settings, stopping")
                break
            self.run_once()
            self._stop_event.wait(self.settings_repo.get().interval_seconds)
