"""
Interview Session.

Lifecycle coordinator for one mock interview: idle -> capturing -> ended.

Pipeline while capturing: the frame source holds the latest frame (pushed by
the browser, or read from a server-side camera/file) -> the frame sampler
analyzes one frame per tick -> each estimate becomes an Observation in the
session's log. Finalized speech utterances are classified by keyword
sentiment and appended to the same log.

Ending the session stops the sampler and the speech listener, releases the
frame source, summarizes the log, applies the scripted decision, and saves
the result for the results page. There is no resume: a restart replaces the
session with a fresh idle one.
"""

import logging
import threading
import time
import uuid
from enum import Enum
from typing import Any, Callable, Dict, Optional

import config
from services.results_store import ResultsStore, SessionResult, get_results_store
from services.speech_sentiment import SpeechSentimentListener
from utils.aggregator import summarize
from utils.attribute_extractor import AttributeEstimate, AttributeExtractorInterface
from utils.decision_engine import decide
from utils.errors import SessionStateError, media_error_from_browser
from utils.extractor_factory import create_extractor
from utils.frame_sampler import FrameSampler
from utils.helpers import format_elapsed
from utils.observation_log import ObservationLog, frame_observation, utterance_observation
from utils.video_source_handler import VideoSourceHandler, VideoSourceType

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle states of an interview session."""
    IDLE = "idle"
    CAPTURING = "capturing"
    ENDED = "ended"


class InterviewSession:
    """
    One capture-to-decision interview.

    Usage:
        session = InterviewSession(extractor, results_store)
        session.start(VideoSourceType.BROWSER)
        ...                      # frames and utterances arrive
        result = session.end()
    """

    def __init__(
        self,
        extractor: AttributeExtractorInterface,
        results_store: ResultsStore,
        interval_ms: Optional[int] = None,
        speech_enabled: Optional[bool] = None,
        video_handler: Optional[VideoSourceHandler] = None,
        clock: Callable[[], float] = time.time,
        run_async: bool = True,
    ):
        """
        Args:
            extractor: attribute backend (a NoAnalysisExtractor disables frame analysis)
            results_store: where the finished result is saved
            interval_ms: sampling period (default config.SAMPLE_INTERVAL_MS)
            speech_enabled: accept utterances (default config.SPEECH_SENTIMENT_ENABLED)
            video_handler: frame source (default: a new VideoSourceHandler)
            clock: time source in seconds
            run_async: run sampler extractions on worker threads
        """
        self.session_id = uuid.uuid4().hex
        self.extractor = extractor
        self.results_store = results_store
        self.clock = clock
        self.video_handler = video_handler or VideoSourceHandler()
        self.log = ObservationLog()

        self.sampler = FrameSampler(
            read_frame=self.video_handler.read_frame,
            extractor=extractor,
            on_estimate=self._on_estimate,
            interval_ms=interval_ms if interval_ms is not None else config.SAMPLE_INTERVAL_MS,
            run_async=run_async,
        )
        self.listener = SpeechSentimentListener(
            on_utterance=self._on_utterance,
            enabled=config.SPEECH_SENTIMENT_ENABLED if speech_enabled is None else speech_enabled,
        )

        self.state = SessionState.IDLE
        self.started_at: Optional[float] = None
        self.ended_at: Optional[float] = None
        self.result: Optional[SessionResult] = None
        self._lock = threading.RLock()

    @property
    def analysis_available(self) -> bool:
        return self.extractor.is_available()

    def elapsed_seconds(self) -> int:
        if self.started_at is None:
            return 0
        end = self.ended_at if self.ended_at is not None else self.clock()
        return max(0, int(end - self.started_at))

    def start(
        self,
        source_type: VideoSourceType = VideoSourceType.BROWSER,
        source_path: Optional[str] = None,
        media_error: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Begin capturing.

        Args:
            source_type: where frames come from
            source_path: file path or stream URL for FILE/STREAM
            media_error: browser getUserMedia failure, e.g. {"name": "NotAllowedError", "message": "..."}

        Raises:
            SessionStateError: the session is not idle
            MediaAcquisitionError: camera/microphone could not be acquired
        """
        with self._lock:
            if self.state != SessionState.IDLE:
                raise SessionStateError(f"Cannot start a session that is {self.state.value}")

            if media_error:
                raise media_error_from_browser(media_error.get("name", ""), media_error.get("message"))
            self.video_handler.initialize_source(source_type, source_path)

            self.log.clear()
            self.started_at = self.clock()
            self.state = SessionState.CAPTURING

            if self.analysis_available:
                self.sampler.start()
            else:
                logger.warning("Session %s started without analysis (extractor: %s)",
                               self.session_id, self.extractor.get_name())
            self.listener.start()

        logger.info("Session %s capturing from %s", self.session_id, source_type.value)

    def _offset(self) -> int:
        if self.started_at is None:
            return 0
        return max(0, int(self.clock() - self.started_at))

    def _on_estimate(self, estimate: AttributeEstimate) -> None:
        if self.state != SessionState.CAPTURING:
            return
        self.log.append(frame_observation(estimate, self._offset()))

    def _on_utterance(self, text: str, sentiment: str) -> None:
        self.log.append(utterance_observation(text, sentiment, self._offset()))

    def record_utterance(self, text: str) -> Optional[str]:
        """
        Deliver one finalized utterance. Returns its sentiment, or None if ignored.
        """
        if self.state != SessionState.CAPTURING:
            return None
        return self.listener.deliver(text)

    def end(self) -> SessionResult:
        """
        Finish the session and return its result. Safe to call repeatedly:
        later calls return the same result and release nothing twice.
        """
        with self._lock:
            if self.result is not None:
                return self.result

            self.sampler.stop()
            self.listener.stop()
            self.video_handler.release()

            self.ended_at = self.clock()
            if self.started_at is None:
                self.started_at = self.ended_at
            self.state = SessionState.ENDED

            summary = summarize(self.log.snapshot(), duration_seconds=self.elapsed_seconds())
            decision = decide(summary)
            self.result = SessionResult(
                session_id=self.session_id,
                summary=summary,
                decision=decision,
                ended_at=self.ended_at,
            )
            self.results_store.save(self.result)

        logger.info("Session %s ended after %ss with %d observations: %s",
                    self.session_id, self.elapsed_seconds(), summary.observation_count, decision.outcome)
        return self.result

    def status(self) -> Dict[str, Any]:
        """Snapshot of the session for the interview page."""
        latest = self.log.latest(source="frame")
        return {
            "sessionId": self.session_id,
            "state": self.state.value,
            "elapsed": format_elapsed(self.elapsed_seconds()),
            "elapsedSeconds": self.elapsed_seconds(),
            "observationCount": len(self.log),
            "analysisAvailable": self.analysis_available,
            "extractor": self.extractor.get_name(),
            "speechListening": self.listener.is_active,
            "latest": latest.to_dict() if latest else None,
            "sampler": {
                "ticks": self.sampler.ticks,
                "skipped": self.sampler.skipped_ticks,
                "failed": self.sampler.failed_ticks,
            },
        }


class SessionManager:
    """
    Owns the current session and the process-wide attribute extractor.

    The extractor is loaded once, on first use, because local model loading
    may download files.
    """

    def __init__(
        self,
        extractor_factory: Callable[[], AttributeExtractorInterface] = create_extractor,
        results_store: Optional[ResultsStore] = None,
        **session_kwargs,
    ):
        self._extractor_factory = extractor_factory
        self._extractor: Optional[AttributeExtractorInterface] = None
        self.results_store = results_store or get_results_store()
        self._session_kwargs = session_kwargs
        self._session: Optional[InterviewSession] = None
        self._lock = threading.Lock()

    @property
    def extractor(self) -> AttributeExtractorInterface:
        with self._lock:
            if self._extractor is None:
                self._extractor = self._extractor_factory()
            return self._extractor

    def current(self) -> InterviewSession:
        """The current session, creating an idle one if there is none."""
        extractor = self.extractor
        with self._lock:
            if self._session is None:
                self._session = InterviewSession(extractor, self.results_store, **self._session_kwargs)
            return self._session

    def peek(self) -> Optional[InterviewSession]:
        """The current session without creating one."""
        with self._lock:
            return self._session

    def reset(self) -> InterviewSession:
        """Restart: end any capturing session and replace it with a fresh idle one."""
        with self._lock:
            old = self._session
            self._session = None
        if old is not None and old.state == SessionState.CAPTURING:
            old.end()
        return self.current()


# Global session manager (singleton), created lazily
_session_manager: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager()
    return _session_manager
