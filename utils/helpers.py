"""
Helper utility functions.

This module contains reusable utility functions used throughout the application:
image decoding/encoding for frames, elapsed-time formatting, and the public
config response.
"""

import base64
import binascii
from typing import Any, Dict, Optional

import cv2
import numpy as np

import config


def decode_image_bytes(image_bytes: bytes, max_width: Optional[int] = None) -> Optional[np.ndarray]:
    """
    Decode image bytes (e.g. JPEG) to a BGR array.
    Frames wider than max_width are resized to reduce memory and analysis time.
    Returns None if the bytes are not a decodable image.
    """
    if not image_bytes:
        return None
    arr = np.frombuffer(image_bytes, dtype=np.uint8)
    frame = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if frame is None:
        return None
    h, w = frame.shape[:2]
    if max_width and w > max_width:
        scale = max_width / w
        new_h = int(round(h * scale))
        frame = cv2.resize(frame, (max_width, new_h), interpolation=cv2.INTER_AREA)
    return frame


def decode_data_url(data_url: str) -> bytes:
    """
    Decode a base64 image payload. Accepts a full data URL
    ("data:image/jpeg;base64,....") or bare base64.

    Raises:
        ValueError: if the payload is empty or not valid base64
    """
    if not data_url or not isinstance(data_url, str):
        raise ValueError("Image payload is empty")
    payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Image payload is not valid base64: {e}")


def encode_jpeg(image: np.ndarray, quality: int = 90) -> bytes:
    """
    Encode a BGR image as JPEG bytes.

    Raises:
        ValueError: if encoding fails
    """
    success, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not success or buffer is None:
        raise ValueError("Failed to encode image to JPEG")
    return buffer.tobytes()


def format_elapsed(seconds: float) -> str:
    """Elapsed time as m:ss (e.g. 75 -> '1:15')."""
    total = max(0, int(seconds))
    return f"{total // 60}:{total % 60:02d}"


def build_config_response() -> Dict[str, Any]:
    """
    Build the configuration response for GET /config/all.

    Contains no credentials: keys and secrets stay on the server.
    """
    return {
        "extractor": config.get_extractor_config(),
        "speech": {
            "enabled": config.is_speech_enabled(),
            "region": config.SPEECH_REGION,
            "sttLocales": config.STT_LOCALES,
            "sentimentEnabled": config.SPEECH_SENTIMENT_ENABLED,
        },
        "results": {
            "persisted": bool(config.RESULTS_DIR),
        },
    }
