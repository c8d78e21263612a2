"""
Attribute Extractor Interface Module

This module defines an abstract interface for facial attribute extractors,
allowing the interview session to work with different backends (Face++,
Azure Face API, the bundled local models) interchangeably.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional
import numpy as np


@dataclass
class AttributeEstimate:
    """
    Standardized attribute estimate for the most prominent face in a frame.

    This structure provides a common format regardless of the backend.
    """
    gender: Optional[str] = None  # "male" | "female", lower-case
    age: Optional[float] = None  # estimated age in years
    expressions: Dict[str, float] = field(default_factory=dict)  # expression -> confidence (0-1)
    smiling: Optional[bool] = None
    smile_confidence: Optional[float] = None  # provider score, scale varies by backend

    def dominant_expression(self) -> Optional[str]:
        """
        Highest-confidence expression, or None when no expressions were returned.
        Ties keep the first key.
        """
        if not self.expressions:
            return None
        best_name, best_score = None, None
        for name, score in self.expressions.items():
            if best_score is None or score > best_score:
                best_name, best_score = name, score
        return best_name

    def to_dict(self) -> dict:
        return {
            "gender": self.gender,
            "age": int(round(self.age)) if self.age is not None else None,
            "expression": self.dominant_expression(),
            "expressions": dict(self.expressions),
            "isSmiling": self.smiling,
        }


class AttributeExtractorInterface(ABC):
    """
    Abstract interface for attribute extractors.

    All backends must implement this interface to work with the frame sampler.
    """

    @abstractmethod
    def analyze(self, image: np.ndarray) -> Optional[AttributeEstimate]:
        """
        Estimate attributes for the first detected face.

        Args:
            image: BGR image array (OpenCV format)

        Returns:
            AttributeEstimate, or None when no face was found

        Raises:
            ExtractionError: if the backend call failed
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if this extractor is loaded and configured.

        Returns:
            True if analyze() can be called, False otherwise
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """
        Get the name of this extractor (e.g. "facepp", "local").
        """
        pass

    def close(self) -> None:
        """
        Clean up resources. Override if needed.
        """
        pass


class NoAnalysisExtractor(AttributeExtractorInterface):
    """Placeholder used when no backend could be loaded; never produces estimates."""

    def __init__(self, reason: str = ""):
        self.reason = reason

    def analyze(self, image: np.ndarray) -> Optional[AttributeEstimate]:
        return None

    def is_available(self) -> bool:
        return False

    def get_name(self) -> str:
        return "none"
