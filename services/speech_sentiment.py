"""
Speech Sentiment Service

Classifies each finalized utterance from the browser's speech recognizer by
keyword counts: positive if positive keywords outnumber negative ones,
negative for the reverse, neutral otherwise. Keyword lists are fixed and
matched case-insensitively on whole words.
"""

import logging
import re
import threading
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)

POSITIVE = "positive"
NEGATIVE = "negative"
NEUTRAL = "neutral"

POSITIVE_KEYWORDS = (
    "good", "great", "excellent", "happy", "love", "like", "enjoy", "excited",
    "passionate", "confident", "success", "successful", "wonderful", "amazing",
    "glad", "proud", "achieved", "opportunity",
)
NEGATIVE_KEYWORDS = (
    "bad", "terrible", "hate", "dislike", "difficult", "problem", "fail",
    "failed", "failure", "angry", "sad", "worried", "stressed", "awful",
    "poor", "nervous", "unfortunately", "quit",
)


def _compile(words) -> "re.Pattern":
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b", re.IGNORECASE)


_POSITIVE_RE = _compile(POSITIVE_KEYWORDS)
_NEGATIVE_RE = _compile(NEGATIVE_KEYWORDS)


def count_keywords(text: str) -> Tuple[int, int]:
    """Return (positive_count, negative_count) for text."""
    if not text:
        return 0, 0
    return len(_POSITIVE_RE.findall(text)), len(_NEGATIVE_RE.findall(text))


def classify_sentiment(text: str) -> str:
    """Keyword sentiment of one utterance."""
    positive, negative = count_keywords(text)
    if positive > negative:
        return POSITIVE
    if negative > positive:
        return NEGATIVE
    return NEUTRAL


class SpeechSentimentListener:
    """
    Long-lived listener for one session's finalized utterances.

    The browser runs speech recognition and posts each final result; the
    listener classifies it and hands (text, sentiment) to on_utterance.
    Errors are logged and never raised, so a speech problem cannot end the
    session.
    """

    def __init__(self, on_utterance: Callable[[str, str], None], enabled: bool = True):
        self.on_utterance = on_utterance
        self.enabled = enabled
        self._active = False
        self._lock = threading.Lock()
        self.errors = 0

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._active

    def start(self) -> None:
        with self._lock:
            self._active = self.enabled

    def stop(self) -> bool:
        """Stop listening. Returns False if it was already stopped."""
        with self._lock:
            was_active = self._active
            self._active = False
        return was_active

    def deliver(self, text: str) -> Optional[str]:
        """
        Handle one finalized utterance.

        Returns:
            The sentiment recorded, or None if ignored (inactive, empty, or failed)
        """
        if not self.is_active:
            return None
        try:
            text = ("" if text is None else str(text)).strip()
            if not text:
                return None
            sentiment = classify_sentiment(text)
            self.on_utterance(text, sentiment)
            return sentiment
        except Exception as e:
            self.errors += 1
            logger.warning("Speech listener error, utterance dropped: %s", e)
            return None
