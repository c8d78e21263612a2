"""
Azure Face API Attribute Extractor

This module provides an Azure Face API-based implementation of the
AttributeExtractorInterface.
"""

import logging
from typing import Optional

import numpy as np
import requests

from utils.attribute_extractor import AttributeExtractorInterface, AttributeEstimate
from utils.errors import ExtractionError
from services.azure_face_api import get_azure_face_api_service, parse_face

logger = logging.getLogger(__name__)


class AzureFaceAPIExtractor(AttributeExtractorInterface):
    """
    Azure Face API-based attribute extractor.

    Uses the first face Azure returns.
    """

    def __init__(self):
        """Initialize Azure Face API extractor."""
        self.service = get_azure_face_api_service()
        self._available = self.service is not None
        if not self._available:
            logger.warning("Azure Face API extractor initialized but service is not available")

    def analyze(self, image: np.ndarray) -> Optional[AttributeEstimate]:
        """
        Analyze a frame using Azure Face API.

        Raises:
            ExtractionError: if the API call fails
        """
        if not self.service:
            return None
        try:
            faces = self.service.detect_faces(image)
        except (requests.RequestException, ValueError) as e:
            raise ExtractionError(f"Azure Face API analysis failed: {e}") from e
        if not faces:
            return None
        return parse_face(faces[0])

    def is_available(self) -> bool:
        """Check if Azure Face API is available and configured."""
        return self._available

    def get_name(self) -> str:
        """Get extractor name."""
        return "azure_face_api"
