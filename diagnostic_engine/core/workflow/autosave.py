"""
Periodic auto-save.

A daemon thread that invokes a callback every ``interval`` seconds until
cancelled. The ``threading.Event`` doubles as the cancellation token and the
sleep, so ``cancel()`` wakes the thread immediately.
"""
import threading
from typing import Callable, Optional

from diagnostic_engine.utils import get_logger

logger = get_logger(__name__)


class AutoSaveTask:
    """Repeating background callback owned by a VisitSession."""

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "visit-autosave"):
        if interval <= 0:
            raise ValueError(f"Auto-save interval must be positive, got {interval}")
        self.interval = interval
        self.callback = callback
        self.name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start ticking. Calling start on a running task is a no-op."""
        if self.running:
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug(f"AutoSaveTask '{self.name}' started (every {self.interval}s)")

    def cancel(self, timeout: Optional[float] = 1.0) -> None:
        """Stop the task and wait up to ``timeout`` for an in-flight save to finish."""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.debug(f"AutoSaveTask '{self.name}' cancelled")

    def _run(self) -> None:
        stop = self._stop
        while not stop.wait(self.interval):
            try:
                self.callback()
            except Exception as e:
                logger.warning(f"AutoSaveTask '{self.name}': save failed: {e}")
