"""
Utilities package for the Mock Interview Analyzer.

This package contains the observation log, aggregation and decision logic,
attribute extractor backends, frame sampling and video source handling.
"""

from .observation_log import Observation, ObservationLog
from .aggregator import SessionSummary, summarize
from .decision_engine import Decision, decide
from .attribute_extractor import AttributeEstimate, AttributeExtractorInterface

__all__ = [
    'Observation',
    'ObservationLog',
    'SessionSummary',
    'summarize',
    'Decision',
    'decide',
    'AttributeEstimate',
    'AttributeExtractorInterface',
]
