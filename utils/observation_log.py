"""
Observation log for one interview session.

Each sampled frame (or finalized utterance) becomes one immutable Observation.
The log only grows while the session is capturing; it is cleared at session
start and read once, as a snapshot, when the session ends.
"""

import math
import threading
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Tuple

SOURCE_FRAME = "frame"
SOURCE_UTTERANCE = "utterance"


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


@dataclass(frozen=True)
class Observation:
    """One timestamped attribute estimate (per frame or per utterance)."""
    timestamp_offset: int  # whole seconds since session start
    gender: Optional[str] = None
    age: Optional[int] = None
    expression: Optional[str] = None
    smiling: Optional[bool] = None
    sentiment: Optional[str] = None
    text: Optional[str] = None
    source: str = SOURCE_FRAME

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["timestampOffset"] = d.pop("timestamp_offset")
        return d


def frame_observation(estimate, timestamp_offset: int) -> Observation:
    """Build a frame Observation from an AttributeEstimate."""
    return Observation(
        timestamp_offset=int(timestamp_offset),
        gender=estimate.gender,
        age=None if estimate.age is None else round_half_away(estimate.age),
        expression=estimate.dominant_expression(),
        smiling=estimate.smiling,
        source=SOURCE_FRAME,
    )


def utterance_observation(text: str, sentiment: str, timestamp_offset: int) -> Observation:
    """Build an utterance Observation from a finalized transcript segment."""
    return Observation(
        timestamp_offset=int(timestamp_offset),
        sentiment=sentiment,
        text=text,
        source=SOURCE_UTTERANCE,
    )


class ObservationLog:
    """
    Append-only, arrival-ordered sequence of observations.

    Appends come from the frame sampler thread and from HTTP request threads
    (utterances), so a lock guards the list.
    """

    def __init__(self):
        self._items: List[Observation] = []
        self._lock = threading.Lock()

    def append(self, observation: Observation) -> None:
        with self._lock:
            self._items.append(observation)

    def snapshot(self) -> Tuple[Observation, ...]:
        """Return the full ordered sequence as an immutable tuple."""
        with self._lock:
            return tuple(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def latest(self, source: Optional[str] = None) -> Optional[Observation]:
        """Most recent observation (optionally of one source kind), or None."""
        with self._lock:
            for obs in reversed(self._items):
                if source is None or obs.source == source:
                    return obs
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
