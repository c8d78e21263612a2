"""
Scripted hiring decision over a SessionSummary.

The rule set below is fixed policy data, reproduced exactly as the demo
behaves so it can be tested. Criterion 1 gates on detected gender. That is
discriminatory and unlawful in most jurisdictions; it exists here only as a
behavioral contract of the demo and must be removed before any real use.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Tuple

from utils.aggregator import SessionSummary

HIRED = "hired"
REJECTED = "rejected"

SMILE_PERCENT_MIN = 70
NEGATIVE_EMOTION_PERCENT_MAX = 30

HIRED_MESSAGE = "Congratulations! You've been selected for this position."
REJECTED_MESSAGE = "We regret to inform you that you have not been selected for this position."


@dataclass(frozen=True)
class Criterion:
    label: str  # shown to the candidate when the criterion fails
    passes: Callable[[SessionSummary], bool]


# Declaration order is the order of reasons in a rejection.
CRITERIA: Tuple[Criterion, ...] = (
    Criterion("gender identification", lambda s: s.dominant_gender == "male"),
    Criterion("insufficient smiling", lambda s: s.smile_percent >= SMILE_PERCENT_MIN),
    Criterion("negative emotions detected",
              lambda s: s.negative_emotion_percent <= NEGATIVE_EMOTION_PERCENT_MAX),
)


@dataclass(frozen=True)
class Decision:
    outcome: str
    reasons: Tuple[str, ...] = ()

    @property
    def hired(self) -> bool:
        return self.outcome == HIRED

    def message(self) -> str:
        """Candidate-facing text for the results view."""
        if self.hired:
            return HIRED_MESSAGE
        if not self.reasons:
            return REJECTED_MESSAGE
        return f"{REJECTED_MESSAGE} Potential reasons: {', '.join(self.reasons)}."

    def to_dict(self) -> Dict[str, Any]:
        return {"outcome": self.outcome, "reasons": list(self.reasons)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Decision":
        outcome = data["outcome"]
        if outcome not in (HIRED, REJECTED):
            raise ValueError(f"Unknown decision outcome: {outcome!r}")
        return cls(outcome=outcome, reasons=tuple(data.get("reasons") or ()))


def decide(summary: SessionSummary) -> Decision:
    """Hired iff every criterion holds; otherwise rejected with failed labels in order."""
    failed: List[str] = [c.label for c in CRITERIA if not c.passes(summary)]
    if failed:
        return Decision(outcome=REJECTED, reasons=tuple(failed))
    return Decision(outcome=HIRED)
