"""
Face++ Attribute Extractor

This module provides a Face++-based implementation of the
AttributeExtractorInterface.
"""

import logging
from typing import Optional

import numpy as np
import requests

from utils.attribute_extractor import AttributeExtractorInterface, AttributeEstimate
from utils.errors import ExtractionError
from services.faceplusplus_api import get_facepp_service, parse_face

logger = logging.getLogger(__name__)


class FacePlusPlusExtractor(AttributeExtractorInterface):
    """Face++ detect API extractor. Uses the first face Face++ returns."""

    def __init__(self):
        self.service = get_facepp_service()
        self._available = self.service is not None
        if not self._available:
            logger.warning("Face++ extractor initialized but service is not available")

    def analyze(self, image: np.ndarray) -> Optional[AttributeEstimate]:
        if not self.service:
            return None
        try:
            faces = self.service.detect_faces(image)
        except (requests.RequestException, ValueError) as e:
            raise ExtractionError(f"Face++ analysis failed: {e}") from e
        if not faces:
            return None
        return parse_face(faces[0])

    def analyze_jpeg(self, image_data: bytes) -> Optional[AttributeEstimate]:
        """Analyze already-encoded JPEG bytes (used by the /api/analyze passthrough)."""
        if not self.service:
            return None
        try:
            faces = self.service.detect_faces_from_bytes(image_data)
        except requests.RequestException as e:
            raise ExtractionError(f"Face++ analysis failed: {e}") from e
        if not faces:
            return None
        return parse_face(faces[0])

    def is_available(self) -> bool:
        return self._available

    def get_name(self) -> str:
        return "facepp"
