"""
Session aggregation: reduce an observation snapshot into a SessionSummary.

All functions here are pure. Rounding is half away from zero everywhere
(25.5 -> 26), which matches the browser's Math.round for the non-negative
values this module sees. Python's built-in round() is not used because it
rounds half to even.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, Optional, Sequence

from utils.observation_log import Observation, SOURCE_UTTERANCE, round_half_away

DEFAULT_GENDER = "unknown"
DEFAULT_EXPRESSION = "neutral"
DEFAULT_SENTIMENT = "neutral"

# Expression labels counted as negative. Includes provider spellings
# (face-api style "angry", Azure/Face++ style "anger").
NEGATIVE_EXPRESSIONS = frozenset({
    "angry", "anger",
    "disgusted", "disgust",
    "fearful", "fear",
    "sad", "sadness",
    "contempt",
})
NEGATIVE_SENTIMENT = "negative"


@dataclass(frozen=True)
class SessionSummary:
    """Summary statistics for one finished session."""
    dominant_gender: str = DEFAULT_GENDER
    average_age: int = 0
    smile_percent: int = 0
    dominant_expression: str = DEFAULT_EXPRESSION
    dominant_sentiment: str = DEFAULT_SENTIMENT
    negative_emotion_percent: int = 0
    transcript: str = ""
    observation_count: int = 0
    duration_seconds: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionSummary":
        return cls(
            dominant_gender=str(data["dominant_gender"]),
            average_age=int(data["average_age"]),
            smile_percent=int(data["smile_percent"]),
            dominant_expression=str(data["dominant_expression"]),
            dominant_sentiment=str(data["dominant_sentiment"]),
            negative_emotion_percent=int(data["negative_emotion_percent"]),
            transcript=str(data.get("transcript", "")),
            observation_count=int(data.get("observation_count", 0)),
            duration_seconds=int(data.get("duration_seconds", 0)),
        )


def mode(values: Iterable[Optional[str]], default: str) -> str:
    """
    Most frequent value; ties go to the value seen first.

    None entries are ignored. Empty input returns default.
    """
    counts: Dict[str, int] = {}
    for v in values:
        if v is None:
            continue
        counts[v] = counts.get(v, 0) + 1
    best = None
    best_count = 0
    # dicts keep insertion order, and only a strictly larger count replaces
    for value, count in counts.items():
        if count > best_count:
            best, best_count = value, count
    return best if best is not None else default


def mean_rounded(values: Iterable[Optional[float]]) -> int:
    """Arithmetic mean rounded half away from zero; 0 when empty."""
    nums = [float(v) for v in values if v is not None]
    if not nums:
        return 0
    return round_half_away(sum(nums) / len(nums))


def percent_true(values: Iterable[Optional[bool]]) -> int:
    """round(100 * true / total); 0 when empty."""
    flags = [bool(v) for v in values if v is not None]
    if not flags:
        return 0
    return round_half_away(100.0 * sum(flags) / len(flags))


def is_negative(observation: Observation) -> bool:
    if observation.sentiment == NEGATIVE_SENTIMENT:
        return True
    expr = (observation.expression or "").lower()
    return expr in NEGATIVE_EXPRESSIONS


def negative_emotion_percent(snapshot: Sequence[Observation]) -> int:
    """
    Percentage of emotion-bearing observations classified negative.

    An observation is emotion-bearing if it has an expression or a sentiment.
    """
    bearing = [o for o in snapshot if o.expression is not None or o.sentiment is not None]
    if not bearing:
        return 0
    negatives = sum(1 for o in bearing if is_negative(o))
    return round_half_away(100.0 * negatives / len(bearing))


def build_transcript(snapshot: Sequence[Observation]) -> str:
    """Finalized utterance texts in arrival order, space-joined."""
    return " ".join(
        o.text for o in snapshot
        if o.source == SOURCE_UTTERANCE and o.text
    )


def summarize(snapshot: Sequence[Observation], duration_seconds: int = 0) -> SessionSummary:
    """Reduce an observation snapshot to a SessionSummary."""
    return SessionSummary(
        dominant_gender=mode((o.gender for o in snapshot), DEFAULT_GENDER),
        average_age=mean_rounded(o.age for o in snapshot),
        smile_percent=percent_true(o.smiling for o in snapshot),
        dominant_expression=mode((o.expression for o in snapshot), DEFAULT_EXPRESSION),
        dominant_sentiment=mode((o.sentiment for o in snapshot), DEFAULT_SENTIMENT),
        negative_emotion_percent=negative_emotion_percent(snapshot),
        transcript=build_transcript(snapshot),
        observation_count=len(snapshot),
        duration_seconds=max(0, int(duration_seconds)),
    )
