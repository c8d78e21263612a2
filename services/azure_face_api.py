"""
Azure Face API service module.

Remote attribute backend: posts each sampled interview frame to the Azure
Face detect endpoint and asks for age, gender, smile and emotion. The
subscription key is read from config and only sent from this server.
"""

import logging
from typing import Any, Dict, List, Optional

import cv2
import numpy as np
import requests

import config
from utils.attribute_extractor import AttributeEstimate
from utils.helpers import encode_jpeg

logger = logging.getLogger(__name__)

# Azure smile score is 0-1; above this the face counts as smiling
AZURE_SMILE_THRESHOLD = 0.5
RETURN_FACE_ATTRIBUTES = "age,gender,smile,emotion"
API_VERSION = "v1.0"

# Detect endpoint limits
MIN_SIDE_PX = 36
MAX_SIDE_PX = 4096
MAX_UPLOAD_BYTES = 6 * 1024 * 1024


def build_detect_url(endpoint: str) -> str:
    """{endpoint}/face/v1.0/detect, tolerating endpoints that already end in /face..."""
    base = endpoint.strip().rstrip("/")
    cut = base.lower().find("/face")
    if cut >= 0:
        base = base[:cut].rstrip("/")
    return f"{base}/face/{API_VERSION}/detect"


def encode_for_upload(image: np.ndarray) -> bytes:
    """
    JPEG-encode a BGR frame within the detect endpoint's size limits.

    Raises:
        ValueError: the frame is malformed, too small, or too large to encode under the limit
    """
    if image is None or image.size == 0:
        raise ValueError("Invalid image: image is None or empty")
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Invalid image format: expected BGR image with shape (H, W, 3), got {image.shape}")

    h, w = image.shape[:2]
    if min(h, w) < MIN_SIDE_PX:
        raise ValueError(f"Image too small: {w}x{h}. Minimum size is {MIN_SIDE_PX}x{MIN_SIDE_PX} pixels")
    if max(h, w) > MAX_SIDE_PX:
        scale = MAX_SIDE_PX / max(h, w)
        image = cv2.resize(image, (int(w * scale), int(h * scale)))

    for quality in (90, 70):
        data = encode_jpeg(image, quality=quality)
        if len(data) <= MAX_UPLOAD_BYTES:
            return data
    raise ValueError(f"Image file size too large: {len(data)} bytes. Maximum is 6MB")


def _error_message(response) -> str:
    msg = f"Azure Face API returned status {response.status_code}"
    try:
        error = (response.json() or {}).get("error") or {}
    except ValueError:
        return f"{msg}: {response.text[:200]}"
    if error.get("code"):
        return f"{msg}: {error.get('message', 'Unknown error')} (code: {error['code']})"
    return f"{msg}: {error.get('message', 'Unknown error')}"


class AzureFaceAPIService:
    """
    Client for the Azure Face detect endpoint.
    """

    def __init__(self):
        if not config.is_azure_face_api_enabled():
            raise ValueError(
                "Azure Face API is not configured. "
                "Please set AZURE_FACE_API_KEY and AZURE_FACE_API_ENDPOINT environment variables."
            )

        self.endpoint = config.AZURE_FACE_API_ENDPOINT.strip().rstrip("/")
        if not self.endpoint.startswith(("http://", "https://")):
            raise ValueError(f"Invalid Azure Face API endpoint format: {self.endpoint}. Must start with http:// or https://")
        self.timeout = config.EXTRACTOR_TIMEOUT_SEC
        self.detect_url = build_detect_url(self.endpoint)
        self.headers = {
            "Ocp-Apim-Subscription-Key": config.AZURE_FACE_API_KEY.strip(),
            "Content-Type": "application/octet-stream",
        }

    def detect_faces(self, image: np.ndarray) -> List[Dict[str, Any]]:
        """
        Detect faces in a frame.

        Returns:
            Face records with faceRectangle and faceAttributes, largest first as Azure orders them

        Raises:
            ValueError: if the image is invalid
            requests.RequestException: If the API call fails
        """
        image_data = encode_for_upload(image)
        params = {
            "returnFaceId": "false",
            "returnFaceLandmarks": "false",
            "returnFaceAttributes": RETURN_FACE_ATTRIBUTES,
        }

        try:
            response = requests.post(
                self.detect_url,
                headers=self.headers,
                params=params,
                data=image_data,
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise requests.RequestException(
                f"Azure Face API request timed out after {self.timeout} seconds ({self.detect_url})"
            )
        except requests.ConnectionError as e:
            raise requests.RequestException(f"Azure Face API connection error: {e}")

        if response.status_code != 200:
            raise requests.RequestException(_error_message(response))

        faces = response.json()
        if not isinstance(faces, list):
            raise requests.RequestException(f"Unexpected response format: expected list, got {type(faces)}")
        return faces


def parse_face(face_data: Dict[str, Any]) -> Optional[AttributeEstimate]:
    """
    Convert one Azure Face API face record into an AttributeEstimate.

    Azure emotion keys (anger, contempt, disgust, fear, happiness, neutral,
    sadness, surprise) are kept as returned; scores are already 0-1.
    """
    if not isinstance(face_data, dict) or "faceAttributes" not in face_data:
        return None
    attrs = face_data["faceAttributes"] or {}

    gender = attrs.get("gender")
    smile = attrs.get("smile")
    emotions = attrs.get("emotion") or {}

    return AttributeEstimate(
        gender=str(gender).lower() if gender else None,
        age=float(attrs["age"]) if attrs.get("age") is not None else None,
        expressions={k: float(v) for k, v in emotions.items() if isinstance(v, (int, float))},
        smiling=(float(smile) > AZURE_SMILE_THRESHOLD) if smile is not None else None,
        smile_confidence=float(smile) if smile is not None else None,
    )


# Global service instance
azure_face_api_service: Optional[AzureFaceAPIService] = None


def get_azure_face_api_service() -> Optional[AzureFaceAPIService]:
    """
    Get or create the global Azure Face API service instance.

    Returns:
        AzureFaceAPIService instance if configured, None otherwise
    """
    global azure_face_api_service

    if azure_face_api_service is None:
        if not config.is_azure_face_api_enabled():
            logger.warning("Azure Face API is not enabled in configuration")
            return None
        try:
            azure_face_api_service = AzureFaceAPIService()
            logger.info("Azure Face API service initialized. Endpoint: %s", azure_face_api_service.endpoint)
        except ValueError as e:
            logger.error("Azure Face API configuration issue: %s", e)
            return None

    return azure_face_api_service
