"""
Display model for the results page.
"""

from typing import Any, Dict


def _capitalize(value: str) -> str:
    return value[:1].upper() + value[1:] if value else value


def build_results_view(result) -> Dict[str, Any]:
    """
    Format a SessionResult for display: capitalized labels, percent strings,
    and the decision message.
    """
    s = result.summary
    d = result.decision
    return {
        "sessionId": result.session_id,
        "gender": _capitalize(s.dominant_gender),
        "age": s.average_age,
        "smile": f"{s.smile_percent}%",
        "emotion": _capitalize(s.dominant_expression),
        "sentiment": _capitalize(s.dominant_sentiment),
        "negative": f"{s.negative_emotion_percent}%",
        "transcript": s.transcript,
        "decision": d.outcome,
        "message": d.message(),
        "reasons": list(d.reasons),
    }
