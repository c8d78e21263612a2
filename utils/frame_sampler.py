"""
Frame Sampler.

Fixed-period sampling of the current video frame for attribute extraction.
Each tick reads one frame and dispatches one analyze() call. At most one
extraction is in flight: a tick that fires while the previous extraction is
still running is skipped. Every start()/stop() bumps a generation counter,
and results dispatched under an older generation are discarded, so a slow
call that returns after the session ended never lands in the log.

A failed extraction is logged and dropped; there are no retries.
"""

import logging
import threading
from typing import Callable, Optional, Tuple

import numpy as np

from utils.attribute_extractor import AttributeEstimate, AttributeExtractorInterface

logger = logging.getLogger(__name__)

FrameReader = Callable[[], Tuple[bool, Optional[np.ndarray]]]
EstimateCallback = Callable[[AttributeEstimate], None]


class FrameSampler:
    """
    Cancellable periodic capture-and-classify task.

    Usage:
        sampler = FrameSampler(handler.read_frame, extractor, on_estimate, interval_ms=500)
        sampler.start()
        ...
        sampler.stop()
    """

    def __init__(
        self,
        read_frame: FrameReader,
        extractor: AttributeExtractorInterface,
        on_estimate: EstimateCallback,
        interval_ms: int = 500,
        run_async: bool = True,
    ):
        """
        Args:
            read_frame: returns (ok, frame) for the current frame
            extractor: attribute backend
            on_estimate: called with each successful estimate of the current generation
            interval_ms: tick period in milliseconds
            run_async: dispatch extractions on a worker thread (False runs them inside tick())
        """
        self.read_frame = read_frame
        self.extractor = extractor
        self.on_estimate = on_estimate
        self.interval_sec = max(0.001, interval_ms / 1000.0)
        self.run_async = run_async

        self._generation = 0
        self._in_flight = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state_lock = threading.Lock()

        self.ticks = 0
        self.skipped_ticks = 0
        self.failed_ticks = 0
        self.empty_ticks = 0
        self.estimates = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def generation(self) -> int:
        with self._state_lock:
            return self._generation

    def start(self) -> None:
        """Start ticking on a daemon thread. No-op if already running."""
        with self._state_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._generation += 1
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name="frame-sampler", daemon=True)
            self._thread.start()
        logger.info("Frame sampler started (every %.0f ms, extractor=%s)",
                    self.interval_sec * 1000, self.extractor.get_name())

    def stop(self, timeout: float = 2.0) -> bool:
        """
        Stop ticking. Safe to call repeatedly.

        Returns:
            True if a running sampler was stopped, False if it was already stopped
        """
        with self._state_lock:
            thread = self._thread
            self._thread = None
            self._generation += 1
            self._stop_event.set()
        if thread is None:
            return False
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.info(
            "Frame sampler stopped: %d ticks, %d estimates, %d skipped (in flight), %d failed, %d empty",
            self.ticks, self.estimates, self.skipped_ticks, self.failed_ticks, self.empty_ticks,
        )
        return True

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_sec):
            try:
                self.tick()
            except Exception as e:
                logger.warning("Frame sampler tick error: %s", e)

    def tick(self) -> bool:
        """
        Perform one capture-and-classify step.

        Returns:
            True if an extraction was dispatched, False if the tick was skipped
        """
        self.ticks += 1
        if not self._in_flight.acquire(blocking=False):
            self.skipped_ticks += 1
            return False

        try:
            ok, frame = self.read_frame()
        except Exception as e:
            self._in_flight.release()
            self.failed_ticks += 1
            logger.warning("Frame read failed, skipping sample: %s", e)
            return False
        if not ok or frame is None:
            self._in_flight.release()
            self.empty_ticks += 1
            return False

        generation = self.generation
        if self.run_async:
            worker = threading.Thread(
                target=self._extract, args=(frame, generation), name="frame-extract", daemon=True
            )
            worker.start()
        else:
            self._extract(frame, generation)
        return True

    def _extract(self, frame: np.ndarray, generation: int) -> None:
        try:
            try:
                estimate = self.extractor.analyze(frame)
            except Exception as e:
                self.failed_ticks += 1
                logger.warning("Attribute extraction failed, skipping sample: %s", e)
                return
            if estimate is None:
                self.empty_ticks += 1
                return
            if generation != self.generation:
                logger.debug("Discarding estimate from stale sampler generation %d", generation)
                return
            self.estimates += 1
            self.on_estimate(estimate)
        finally:
            self._in_flight.release()
