"""
Video Source Handler Module

This module provides a unified interface for the interview's frame source:
- Browser (default): the page captures the webcam with getUserMedia and
  POSTs sampled JPEG frames; the latest one is kept here
- Webcam attached to the server
- Local video files
- Video streams (RTSP, HTTP streams, etc.)

Acquisition failures raise PermissionDenied or DeviceUnavailable, which are
fatal to session start.
"""

import os
import sys
import threading
from enum import Enum
from typing import Optional, Tuple

import cv2
import numpy as np

import config
from utils.errors import DeviceUnavailable, PermissionDenied
from utils.helpers import decode_image_bytes

# Shared state for the browser source: latest frame pushed by the page
_browser_frame: Optional[np.ndarray] = None
_browser_frame_lock = threading.Lock()


def set_browser_frame(frame_bgr: Optional[np.ndarray]) -> None:
    """Set the latest frame received from the browser."""
    global _browser_frame
    with _browser_frame_lock:
        _browser_frame = frame_bgr.copy() if frame_bgr is not None else None


def get_browser_frame() -> Optional[np.ndarray]:
    """Get a copy of the latest browser frame (does not clear). Returns None if none available."""
    with _browser_frame_lock:
        out = _browser_frame
        return out.copy() if out is not None else None


def set_browser_frame_from_bytes(image_bytes: bytes) -> bool:
    """
    Decode image bytes (e.g. JPEG) and set as latest browser frame.
    Returns True if decoding and set succeeded, False otherwise.
    """
    frame = decode_image_bytes(image_bytes, max_width=config.BROWSER_FRAME_MAX_WIDTH)
    if frame is None:
        return False
    set_browser_frame(frame)
    return True


class VideoSourceType(Enum):
    """Enumeration of supported video source types."""
    BROWSER = "browser"
    WEBCAM = "webcam"
    FILE = "file"
    STREAM = "stream"

    @classmethod
    def parse(cls, value: Optional[str]) -> "VideoSourceType":
        """Parse a request value; raises ValueError for unknown types."""
        key = (value or cls.BROWSER.value).strip().lower()
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(
            f"Invalid sourceType: {value}. Must be one of {', '.join(m.value for m in cls)}"
        )


def _open_webcam() -> Optional[cv2.VideoCapture]:
    apis = [cv2.CAP_DSHOW, cv2.CAP_MSMF, cv2.CAP_ANY] if sys.platform == "win32" else [cv2.CAP_ANY]
    for api in apis:
        for index in (0, 1, 2):
            cap = cv2.VideoCapture(index, api)
            if cap.isOpened() and cap.read()[0]:
                return cap
            cap.release()
    return None


class VideoSourceHandler:
    """
    Handler for the frame source of one interview session.

    Usage:
        handler = VideoSourceHandler()
        handler.initialize_source(VideoSourceType.WEBCAM)
        ret, frame = handler.read_frame()
        handler.release()
    """

    def __init__(self):
        """Initialize the video source handler."""
        self.cap: Optional[cv2.VideoCapture] = None
        self.source_type: Optional[VideoSourceType] = None
        self.source_path: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.source_type is not None

    def initialize_source(
        self,
        source_type: VideoSourceType,
        source_path: Optional[str] = None,
    ) -> None:
        """
        Acquire a video source.

        Args:
            source_type: Type of video source
            source_path: Path to video file or stream URL (required for FILE/STREAM)

        Raises:
            PermissionDenied: the file exists but cannot be read
            DeviceUnavailable: no device, missing file, or the source did not open
        """
        self.release()

        if source_type == VideoSourceType.BROWSER:
            # frames arrive through set_browser_frame_from_bytes()
            set_browser_frame(None)
            self.source_type = source_type
            return

        if source_type == VideoSourceType.WEBCAM:
            cap = _open_webcam()
            if cap is None:
                raise DeviceUnavailable("No webcam could be opened")
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, 1280)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, 720)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        elif source_type == VideoSourceType.FILE:
            if not source_path:
                raise DeviceUnavailable("source_path is required for FILE source type")
            if not os.path.exists(source_path):
                raise DeviceUnavailable(f"Video file not found: {source_path}")
            if not os.access(source_path, os.R_OK):
                raise PermissionDenied(f"Video file is not readable: {source_path}")
            cap = cv2.VideoCapture(source_path)

        elif source_type == VideoSourceType.STREAM:
            if not source_path:
                raise DeviceUnavailable("source_path is required for STREAM source type")
            cap = cv2.VideoCapture(source_path)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        else:
            raise ValueError(f"Unsupported source type: {source_type}")

        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailable(f"Could not open {source_type.value} source {source_path or ''}".strip())

        self.cap = cap
        self.source_type = source_type
        self.source_path = source_path

    def read_frame(self) -> Tuple[bool, Optional[np.ndarray]]:
        """
        Read the current frame.

        Returns:
            Tuple of (success, frame)
        """
        if self.source_type == VideoSourceType.BROWSER:
            frame = get_browser_frame()
            return (True, frame) if frame is not None else (False, None)

        if not self.cap or not self.cap.isOpened():
            return False, None

        ret, frame = self.cap.read()
        if not ret or frame is None:
            return False, None
        return True, frame

    def release(self) -> bool:
        """
        Release the current source. Safe to call repeatedly.

        Returns:
            True if something was released, False if already released
        """
        if self.source_type is None and self.cap is None:
            return False
        if self.cap:
            self.cap.release()
            self.cap = None
        if self.source_type == VideoSourceType.BROWSER:
            set_browser_frame(None)
        self.source_type = None
        self.source_path = None
        return True
