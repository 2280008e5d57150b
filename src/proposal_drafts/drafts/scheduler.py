"""Poll loop around ``DraftWorker.run_once``, either foreground or as a daemon thread."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from proposal_drafts.drafts.worker import DraftWorker, WorkerRunSummary

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 0.5


class DraftScheduler:
    """Explicit handle for one worker's poll loop.

    ``start`` is idempotent: a second call while the loop thread is alive is a
    no-op. Every iteration is followed by the poll interval sleep, which
    ``stop`` interrupts.
    """

    def __init__(
        self,
        worker: DraftWorker,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self.worker = worker
        self.poll_interval_seconds = poll_interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.summary = WorkerRunSummary()

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> bool:
        """Run the loop in a daemon thread; ``False`` when already running."""

        with self._lock:
            if self.is_running:
                return False
            self._stop.clear()
            self._thread = threading.Thread(
                target=self._loop,
                daemon=True,
                name=f"draft-scheduler-{self.worker.worker_id}",
            )
            self._thread.start()
        logger.info("Draft scheduler started for worker %s", self.worker.worker_id)
        return True

    def stop(self, *, timeout: float = 15.0) -> None:
        self._stop.set()
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is None:
            return
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("Draft scheduler thread did not stop within %ss", timeout)
            return
        logger.info("Draft scheduler stopped for worker %s", self.worker.worker_id)

    def run_forever(self, *, max_iterations: int | None = None) -> WorkerRunSummary:
        """Run the loop in the current thread until stopped or interrupted."""

        self._stop.clear()
        with self._signal_handlers():
            self._loop(max_iterations=max_iterations)
        return self.summary

    def run_iteration(self) -> WorkerRunSummary:
        """One guarded ``run_once``; errors are logged and counted as an idle poll."""

        try:
            result = self.worker.run_once()
        except Exception:  # noqa: BLE001
            logger.exception("Draft scheduler iteration failed")
            result = WorkerRunSummary(idle_polls=1)
        self.summary.merge(result)
        return result

    def _loop(self, max_iterations: int | None = None) -> None:
        iterations = 0
        while not self._stop.is_set():
            self.run_iteration()
            iterations += 1
            if max_iterations is not None and iterations >= max_iterations:
                return
            self._stop.wait(timeout=self.poll_interval_seconds)

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if threading.current_thread() is not threading.main_thread():
            # Signal handlers can only be installed in main thread.
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            logger.info("Received %s, stopping after the current draft", name)
            self._stop.set()

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)
