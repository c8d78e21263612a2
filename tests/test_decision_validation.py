"""
Decision Validation Tests

Validates the aggregation and decision contract end to end on small
hand-built observation logs: stable mode tie-breaking, rounding, empty-log
defaults, inclusive decision thresholds, reason ordering, lossless result
handoff, and fallback-chain degradation.

Test strategy:
  - Aggregation: literal logs with known mode/mean/percent
  - Decision: boundary summaries on each threshold (70 / 30)
  - Handoff: summary + decision through the versioned JSON record
  - Fallback: local extractor loaded through failing and succeeding sources
"""

import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from unittest.mock import MagicMock

import numpy as np


def _obs(**kwargs):
    from utils.observation_log import Observation
    kwargs.setdefault("timestamp_offset", 0)
    return Observation(**kwargs)


class TestModeIsStable(unittest.TestCase):
    """Mode over categorical fields with first-seen tie-break."""

    def test_majority_wins(self):
        from utils.aggregator import summarize
        s = summarize([_obs(gender="a"), _obs(gender="b"), _obs(gender="a")])
        self.assertEqual(s.dominant_gender, "a")

    def test_tie_goes_to_first_encountered(self):
        from utils.aggregator import mode
        self.assertEqual(mode(["a", "b"], "x"), "a")
        self.assertEqual(mode(["b", "a"], "x"), "b")
        self.assertEqual(mode(["sad", "happy", "happy", "sad"], "neutral"), "sad")

    def test_empty_defaults(self):
        from utils.aggregator import summarize
        s = summarize([])
        self.assertEqual(s.dominant_gender, "unknown")
        self.assertEqual(s.dominant_expression, "neutral")
        self.assertEqual(s.dominant_sentiment, "neutral")


class TestNumericAggregates(unittest.TestCase):
    """Mean age and smile percentage."""

    def test_mean_age(self):
        from utils.aggregator import summarize
        s = summarize([_obs(age=20), _obs(age=30), _obs(age=25)])
        self.assertEqual(s.average_age, 25)
        self.assertEqual(summarize([]).average_age, 0)

    def test_mean_age_rounds_half_away_from_zero(self):
        from utils.aggregator import mean_rounded
        self.assertEqual(mean_rounded([20, 31]), 26)
        self.assertEqual(mean_rounded([20, 29]), 25)

    def test_frame_ages_are_rounded_before_averaging(self):
        from utils.aggregator import summarize
        from utils.attribute_extractor import AttributeEstimate
        from utils.observation_log import frame_observation
        log = [frame_observation(AttributeEstimate(age=a), i) for i, a in enumerate([20.6, 20.6, 20.2])]
        self.assertEqual([o.age for o in log], [21, 21, 20])
        self.assertEqual(summarize(log).average_age, 21)
        self.assertIsNone(frame_observation(AttributeEstimate(), 0).age)

    def test_smile_percent(self):
        from utils.aggregator import summarize
        s = summarize([_obs(smiling=True), _obs(smiling=True), _obs(smiling=False), _obs(smiling=True)])
        self.assertEqual(s.smile_percent, 75)
        self.assertEqual(summarize([]).smile_percent, 0)

    def test_smile_percent_ignores_utterances(self):
        from utils.aggregator import summarize
        s = summarize([_obs(smiling=True), _obs(sentiment="positive", source="utterance")])
        self.assertEqual(s.smile_percent, 100)


class TestDecisionConjunction(unittest.TestCase):
    """The three-criterion conjunction and its boundaries."""

    def _decide(self, gender, smile, negative):
        from utils.aggregator import SessionSummary
        from utils.decision_engine import decide
        return decide(SessionSummary(dominant_gender=gender, smile_percent=smile,
                                     negative_emotion_percent=negative))

    def test_boundaries_are_inclusive(self):
        d = self._decide("male", 70, 30)
        self.assertEqual(d.outcome, "hired")
        self.assertEqual(d.reasons, ())

    def test_gender_only_failure(self):
        d = self._decide("female", 90, 0)
        self.assertEqual(d.outcome, "rejected")
        self.assertEqual(d.reasons, ("gender identification",))

    def test_just_outside_each_threshold(self):
        self.assertEqual(self._decide("male", 69, 30).reasons, ("insufficient smiling",))
        self.assertEqual(self._decide("male", 70, 31).reasons, ("negative emotions detected",))

    def test_no_partial_credit(self):
        d = self._decide("male", 100, 100)
        self.assertEqual(d.outcome, "rejected")


class TestResultHandoff(unittest.TestCase):
    """Summary + decision survive the results record unchanged."""

    def test_round_trip(self):
        from services.results_store import SessionResult
        from utils.aggregator import summarize
        from utils.decision_engine import decide
        summary = summarize([
            _obs(gender="male", age=41, expression="sad", smiling=False),
            _obs(sentiment="negative", text="that was a difficult problem", source="utterance"),
        ], duration_seconds=2)
        original = SessionResult("round-trip", summary, decide(summary), 1712345678.5)
        reloaded = SessionResult.from_json(original.to_json())
        self.assertEqual(reloaded.summary, summary)
        self.assertEqual(reloaded.decision, original.decision)
        self.assertEqual(reloaded.summary.negative_emotion_percent, 100)


class TestFallbackChainDegradation(unittest.TestCase):
    """Third source succeeding yields observations; all failing yields defaults."""

    def _nets(self):
        age = MagicMock()
        age.forward.return_value = np.asarray([[0, 0, 0, 0, 1, 0, 0, 0]], dtype=np.float32)
        gender = MagicMock()
        gender.forward.return_value = np.asarray([[0.9, 0.1]], dtype=np.float32)
        return age, gender

    def _run_session(self, extractor):
        from interview_session import InterviewSession
        from services.results_store import ResultsStore
        from tests.fixtures.fakes import FakeVideoHandler
        session = InterviewSession(extractor, ResultsStore(), interval_ms=60000, speech_enabled=False,
                                   video_handler=FakeVideoHandler(np.full((60, 60, 3), 90, dtype=np.uint8)),
                                   run_async=False)
        session.start()
        for _ in range(3):
            session.sampler.tick()
        return session.end()

    def test_third_source_succeeds(self):
        from utils.local_attribute_model import LocalAttributeExtractor
        locator = MagicMock()
        locator.locate.return_value = (10, 10, 30, 30)
        nets = self._nets()

        def loader(source):
            if source in ("first", "second"):
                raise IOError(f"{source} unreachable")
            return nets

        extractor = LocalAttributeExtractor.load(
            sources=["first", "second", "third"],
            emotion_sources=[],
            age_gender_loader=loader,
            face_locator_factory=lambda: locator,
        )
        self.assertTrue(extractor.is_available())
        result = self._run_session(extractor)
        self.assertEqual(result.summary.observation_count, 3)
        self.assertEqual(result.summary.dominant_gender, "male")
        self.assertEqual(result.summary.average_age, 29)

    def test_all_sources_fail(self):
        from unittest.mock import patch
        from utils.errors import ExtractorLoadFailure
        from utils.extractor_factory import create_extractor
        with patch("utils.local_attribute_model.LocalAttributeExtractor.load",
                   side_effect=ExtractorLoadFailure("every source failed")):
            extractor = create_extractor("local")
        result = self._run_session(extractor)
        self.assertEqual(result.summary.observation_count, 0)
        self.assertEqual(result.summary.dominant_gender, "unknown")
        self.assertEqual(result.summary.average_age, 0)
        self.assertEqual(result.summary.smile_percent, 0)


if __name__ == "__main__":
    unittest.main()
