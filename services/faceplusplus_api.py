"""
Face++ API service module.

Server-side passthrough to the Face++ detect endpoint for gender, age, smile
and emotion attributes. The API key and secret are read from the environment
(config.FACEPP_API_KEY / FACEPP_API_SECRET) and are only ever sent from this
server to Face++, never to the browser.
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np
import requests

import config
from utils.attribute_extractor import AttributeEstimate
from utils.helpers import encode_jpeg

logger = logging.getLogger(__name__)

# Face++ accepts images up to 2 MB for image_file uploads
MAX_IMAGE_BYTES = 2 * 1024 * 1024
RETURN_ATTRIBUTES = "gender,age,smiling,emotion"


class FacePlusPlusService:
    """
    Service class for the Face++ detect API.
    """

    def __init__(self):
        """Initialize the Face++ client from config."""
        if not config.is_facepp_enabled():
            raise ValueError(
                "Face++ is not configured. "
                "Please set FACEPP_API_KEY and FACEPP_API_SECRET environment variables."
            )
        self.api_key = config.FACEPP_API_KEY
        self.api_secret = config.FACEPP_API_SECRET
        self.api_url = config.FACEPP_API_URL
        if not self.api_url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid Face++ API URL: {self.api_url}. Must start with http:// or https://")
        self.timeout = config.EXTRACTOR_TIMEOUT_SEC

    def detect_faces(self, image: np.ndarray) -> List[Dict[str, Any]]:
        """
        Detect faces and return the raw Face++ face list.

        Args:
            image: BGR image array (OpenCV format)

        Raises:
            ValueError: if the image is invalid
            requests.RequestException: if the API call fails or Face++ reports an error
        """
        if image is None or image.size == 0:
            raise ValueError("Invalid image: image is None or empty")

        image_data = encode_jpeg(image, quality=90)
        if len(image_data) > MAX_IMAGE_BYTES:
            image_data = encode_jpeg(image, quality=70)
            if len(image_data) > MAX_IMAGE_BYTES:
                raise ValueError(f"Image file size too large: {len(image_data)} bytes. Maximum is 2MB")
        return self.detect_faces_from_bytes(image_data)

    def detect_faces_from_bytes(self, image_data: bytes) -> List[Dict[str, Any]]:
        """Same as detect_faces, for already-encoded JPEG bytes."""
        form = {
            "api_key": self.api_key,
            "api_secret": self.api_secret,
            "return_attributes": RETURN_ATTRIBUTES,
        }
        files = {"image_file": ("frame.jpg", image_data, "image/jpeg")}

        try:
            response = requests.post(self.api_url, data=form, files=files, timeout=self.timeout)
        except requests.Timeout:
            raise requests.RequestException(
                f"Face++ request timed out after {self.timeout} seconds"
            )
        except requests.ConnectionError as e:
            raise requests.RequestException(f"Face++ connection error: {e}")

        try:
            body = response.json()
        except ValueError:
            raise requests.RequestException(
                f"Face++ returned status {response.status_code}: {response.text[:200]}"
            )

        if response.status_code != 200 or "error_message" in body:
            raise requests.RequestException(
                f"Face++ returned status {response.status_code}: {body.get('error_message', 'Unknown error')}"
            )

        faces = body.get("faces") or []
        if not isinstance(faces, list):
            raise requests.RequestException(f"Unexpected Face++ response format: faces is {type(faces)}")
        return faces


def parse_face(face_data: Dict[str, Any]) -> Optional[AttributeEstimate]:
    """
    Convert one Face++ face record into an AttributeEstimate.

    Smiling is smile.value > smile.threshold. Emotion scores (0-100) are
    scaled to 0-1. Returns None if the record has no attributes.
    """
    attributes = face_data.get("attributes") if isinstance(face_data, dict) else None
    if not isinstance(attributes, dict):
        return None

    gender = None
    gender_attr = attributes.get("gender") or {}
    if gender_attr.get("value"):
        gender = str(gender_attr["value"]).strip().lower()

    age = None
    age_attr = attributes.get("age") or {}
    if age_attr.get("value") is not None:
        age = float(age_attr["value"])

    smiling = None
    smile_value = None
    smile_attr = attributes.get("smile") or {}
    if smile_attr.get("value") is not None and smile_attr.get("threshold") is not None:
        smile_value = float(smile_attr["value"])
        smiling = smile_value > float(smile_attr["threshold"])

    expressions = {}
    for name, score in (attributes.get("emotion") or {}).items():
        try:
            expressions[name] = float(score) / 100.0
        except (TypeError, ValueError):
            continue

    return AttributeEstimate(
        gender=gender,
        age=age,
        expressions=expressions,
        smiling=smiling,
        smile_confidence=smile_value,
    )


# Lazy singleton: initialized on first use to avoid loading at import time
_facepp_service: Optional[FacePlusPlusService] = None


def get_facepp_service() -> Optional[FacePlusPlusService]:
    """Return the Face++ service instance, or None if not configured."""
    global _facepp_service
    if _facepp_service is None:
        try:
            _facepp_service = FacePlusPlusService()
        except ValueError as e:
            logger.warning("Face++ service unavailable: %s", e)
            return None
    return _facepp_service
