"""
Results store: handoff of finished interviews to the results view.

Each finished session produces one SessionResult, saved under its session id.
Records are kept in memory and, when config.RESULTS_DIR is set, also written
as <session_id>.json so another worker process can serve the results page.
The JSON record carries a schemaVersion; records with an unknown version are
rejected on load.
"""

import json
import logging
import os
import re
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional

import config
from utils.aggregator import SessionSummary
from utils.decision_engine import Decision
from utils.errors import ResultFormatError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


@dataclass(frozen=True)
class SessionResult:
    session_id: str
    summary: SessionSummary
    decision: Decision
    ended_at: float

    def to_record(self) -> Dict[str, Any]:
        return {
            "schemaVersion": SCHEMA_VERSION,
            "sessionId": self.session_id,
            "endedAt": self.ended_at,
            "summary": self.summary.to_dict(),
            "decision": self.decision.to_dict(),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "SessionResult":
        if not isinstance(record, dict):
            raise ResultFormatError("Result record must be an object")
        version = record.get("schemaVersion")
        if version != SCHEMA_VERSION:
            raise ResultFormatError(f"Unsupported result schemaVersion: {version!r}")
        try:
            return cls(
                session_id=str(record["sessionId"]),
                summary=SessionSummary.from_dict(record["summary"]),
                decision=Decision.from_dict(record["decision"]),
                ended_at=float(record["endedAt"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ResultFormatError(f"Malformed result record: {e}") from e

    def to_json(self) -> str:
        return json.dumps(self.to_record(), sort_keys=True)

    @classmethod
    def from_json(cls, text: str) -> "SessionResult":
        try:
            record = json.loads(text)
        except ValueError as e:
            raise ResultFormatError(f"Result record is not valid JSON: {e}") from e
        return cls.from_record(record)


class ResultsStore:
    """
    Thread-safe store of finished session results.

    Without a results_dir, memory is the only copy and nothing is evicted.
    With one, memory keeps the most recent memory_limit results and older
    ones are read back from their files.
    """

    def __init__(self, results_dir: Optional[str] = None, memory_limit: Optional[int] = None):
        self.results_dir = results_dir
        self.memory_limit = memory_limit if memory_limit is not None else config.RESULTS_MEMORY_LIMIT
        self._results: "OrderedDict[str, SessionResult]" = OrderedDict()
        self._latest_id: Optional[str] = None
        self._lock = threading.Lock()

    def _path(self, session_id: str) -> str:
        if not _SESSION_ID_RE.match(session_id):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return os.path.join(self.results_dir, f"{session_id}.json")

    def _remember(self, result: SessionResult) -> None:
        # caller holds self._lock
        self._results[result.session_id] = result
        self._results.move_to_end(result.session_id)
        if self.results_dir:
            while len(self._results) > self.memory_limit:
                self._results.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def save(self, result: SessionResult) -> None:
        if self.results_dir:
            os.makedirs(self.results_dir, exist_ok=True)
            path = self._path(result.session_id)
            tmp = path + ".tmp"
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(result.to_json())
            os.replace(tmp, path)
        with self._lock:
            self._remember(result)
            self._latest_id = result.session_id
        logger.info("Saved result for session %s (%s)", result.session_id, result.decision.outcome)

    def get(self, session_id: str) -> Optional[SessionResult]:
        """
        Look up a result by session id (memory first, then RESULTS_DIR).

        Raises:
            ResultFormatError: if the stored file cannot be decoded
        """
        with self._lock:
            found = self._results.get(session_id)
        if found is not None or not self.results_dir:
            return found
        try:
            path = self._path(session_id)
        except ValueError:
            return None
        if not os.path.isfile(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            result = SessionResult.from_json(f.read())
        with self._lock:
            self._remember(result)
        return result

    def latest(self) -> Optional[SessionResult]:
        with self._lock:
            latest_id = self._latest_id
        if latest_id is None:
            return None
        return self.get(latest_id)

    def clear(self) -> None:
        with self._lock:
            self._results.clear()
            self._latest_id = None


# Lazy singleton
_results_store: Optional[ResultsStore] = None


def get_results_store() -> ResultsStore:
    """Return the process-wide results store, creating it on first call."""
    global _results_store
    if _results_store is None:
        _results_store = ResultsStore(results_dir=config.RESULTS_DIR)
    return _results_store
