"""
Local Attribute Model

Runs the bundled age/gender/emotion networks on the server with OpenCV DNN:
1. MediaPipe face detection finds the most prominent face.
2. Caffe age and gender nets (Levi & Hassner) classify the face crop.
3. The FER+ ONNX net (optional) scores eight expressions; "happy" above
   config.SMILE_PROBABILITY_THRESHOLD counts as smiling. Without the emotion
   net, OpenCV's bundled smile cascade decides smiling and no expression is
   reported.

Model files are loaded through a fallback chain of sources (base URLs or
local directories), tried in order until one provides every file.
"""

import hashlib
import logging
import os
from typing import Callable, Dict, Optional, Sequence, Tuple

import cv2
import numpy as np
import requests

import config
from utils.attribute_extractor import AttributeExtractorInterface, AttributeEstimate
from utils.errors import ExtractionError, ExtractorLoadFailure
from utils.fallback_chain import first_success

logger = logging.getLogger(__name__)

AGE_GENDER_FILES = (
    "age_deploy.prototxt",
    "age_net.caffemodel",
    "gender_deploy.prototxt",
    "gender_net.caffemodel",
)
EMOTION_FILES = ("emotion-ferplus-8.onnx",)

# Caffe nets were trained on mean-subtracted 227x227 BGR crops
MODEL_MEAN_VALUES = (78.4263377603, 87.7689143744, 114.895847746)
AGE_BUCKET_MIDPOINTS = (1.0, 5.0, 10.0, 17.5, 28.5, 40.5, 50.5, 80.0)
GENDER_LABELS = ("male", "female")
# FER+ output order, renamed to the face-api expression vocabulary
EMOTION_LABELS = ("neutral", "happy", "surprised", "sad", "angry", "disgusted", "fearful", "contempt")

FACE_PADDING = 0.2


def _download(url: str, dest: str, timeout: float) -> None:
    response = requests.get(url, timeout=timeout, stream=True)
    response.raise_for_status()
    tmp = dest + ".part"
    with open(tmp, "wb") as f:
        for chunk in response.iter_content(chunk_size=1 << 16):
            if chunk:
                f.write(chunk)
    os.replace(tmp, dest)


def resolve_source(source: str, filenames: Sequence[str], cache_dir: Optional[str] = None) -> str:
    """
    Return a local directory that holds every file in filenames.

    URL sources are downloaded into a per-source cache directory (files
    already cached are reused). Directory sources are checked in place.

    Raises:
        FileNotFoundError: a local source is missing a file
        requests.RequestException: a download failed
    """
    if source.startswith(("http://", "https://")):
        cache_dir = cache_dir or config.MODEL_CACHE_DIR
        digest = hashlib.sha1(source.encode("utf-8")).hexdigest()[:12]
        target = os.path.join(cache_dir, digest)
        os.makedirs(target, exist_ok=True)
        for name in filenames:
            dest = os.path.join(target, name)
            if not os.path.isfile(dest):
                _download(f"{source.rstrip('/')}/{name}", dest, config.MODEL_DOWNLOAD_TIMEOUT_SEC)
        return target

    missing = [name for name in filenames if not os.path.isfile(os.path.join(source, name))]
    if missing:
        raise FileNotFoundError(f"{source} is missing {', '.join(missing)}")
    return source


def load_age_gender_nets(source: str):
    """Load (age_net, gender_net) from one source."""
    path = resolve_source(source, AGE_GENDER_FILES)
    age_net = cv2.dnn.readNetFromCaffe(
        os.path.join(path, "age_deploy.prototxt"), os.path.join(path, "age_net.caffemodel")
    )
    gender_net = cv2.dnn.readNetFromCaffe(
        os.path.join(path, "gender_deploy.prototxt"), os.path.join(path, "gender_net.caffemodel")
    )
    return age_net, gender_net


def load_emotion_net(source: str):
    """Load the FER+ emotion net from one source."""
    path = resolve_source(source, EMOTION_FILES)
    return cv2.dnn.readNetFromONNX(os.path.join(path, EMOTION_FILES[0]))


def _softmax(scores: np.ndarray) -> np.ndarray:
    shifted = scores - np.max(scores)
    exp = np.exp(shifted)
    return exp / np.sum(exp)


class MediaPipeFaceLocator:
    """Finds the most prominent face box with MediaPipe face detection."""

    def __init__(self, min_detection_confidence: float = 0.5):
        import mediapipe as mp
        self._detector = mp.solutions.face_detection.FaceDetection(
            model_selection=0,
            min_detection_confidence=min_detection_confidence,
        )

    def locate(self, image: np.ndarray) -> Optional[Tuple[int, int, int, int]]:
        """Return (left, top, width, height) in pixels, or None."""
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        results = self._detector.process(rgb)
        if not results.detections:
            return None
        h, w = image.shape[:2]
        box = results.detections[0].location_data.relative_bounding_box
        left = max(0, int(box.xmin * w))
        top = max(0, int(box.ymin * h))
        width = min(w - left, int(box.width * w))
        height = min(h - top, int(box.height * h))
        if width <= 0 or height <= 0:
            return None
        return left, top, width, height

    def close(self) -> None:
        self._detector.close()


class LocalAttributeExtractor(AttributeExtractorInterface):
    """
    Attribute extractor over locally loaded networks.

    Build with LocalAttributeExtractor.load(); the constructor takes already
    loaded nets so tests can inject fakes.
    """

    def __init__(
        self,
        age_net,
        gender_net,
        emotion_net=None,
        face_locator=None,
        smile_threshold: Optional[float] = None,
        source: Optional[str] = None,
    ):
        self.age_net = age_net
        self.gender_net = gender_net
        self.emotion_net = emotion_net
        self.face_locator = face_locator
        self.smile_threshold = config.SMILE_PROBABILITY_THRESHOLD if smile_threshold is None else smile_threshold
        self.source = source
        self._smile_cascade = None

    @classmethod
    def load(
        cls,
        sources: Optional[Sequence[str]] = None,
        emotion_sources: Optional[Sequence[str]] = None,
        age_gender_loader: Callable[[str], tuple] = load_age_gender_nets,
        emotion_loader: Callable[[str], object] = load_emotion_net,
        face_locator_factory: Callable[[], object] = MediaPipeFaceLocator,
    ) -> "LocalAttributeExtractor":
        """
        Load the networks through their fallback chains.

        Raises:
            ExtractorLoadFailure: when no source provides the age/gender nets
        """
        sources = list(config.LOCAL_MODEL_SOURCES if sources is None else sources)
        emotion_sources = list(config.EMOTION_MODEL_SOURCES if emotion_sources is None else emotion_sources)

        source, (age_net, gender_net) = first_success(sources, age_gender_loader, what="age/gender models")

        emotion_net = None
        try:
            _, emotion_net = first_success(emotion_sources, emotion_loader, what="emotion model")
        except ExtractorLoadFailure as e:
            logger.warning("Emotion model unavailable, using smile cascade only: %s", e)

        try:
            face_locator = face_locator_factory()
        except Exception as e:
            raise ExtractorLoadFailure(f"Face locator could not be created: {e}", [("mediapipe", e)])

        return cls(age_net, gender_net, emotion_net=emotion_net, face_locator=face_locator, source=source)

    def _crop(self, image: np.ndarray, box: Tuple[int, int, int, int]) -> np.ndarray:
        left, top, width, height = box
        pad_w, pad_h = int(width * FACE_PADDING), int(height * FACE_PADDING)
        h, w = image.shape[:2]
        x0, y0 = max(0, left - pad_w), max(0, top - pad_h)
        x1, y1 = min(w, left + width + pad_w), min(h, top + height + pad_h)
        return image[y0:y1, x0:x1]

    def _estimate_age_gender(self, face: np.ndarray) -> Tuple[float, str]:
        blob = cv2.dnn.blobFromImage(face, 1.0, (227, 227), MODEL_MEAN_VALUES, swapRB=False)
        self.gender_net.setInput(blob)
        gender_probs = np.asarray(self.gender_net.forward()).reshape(-1)
        self.age_net.setInput(blob)
        age_probs = np.asarray(self.age_net.forward()).reshape(-1)
        # expected age over bucket midpoints
        age = float(np.dot(age_probs[: len(AGE_BUCKET_MIDPOINTS)], AGE_BUCKET_MIDPOINTS))
        gender = GENDER_LABELS[int(np.argmax(gender_probs[: len(GENDER_LABELS)]))]
        return age, gender

    def _estimate_expressions(self, face: np.ndarray) -> Dict[str, float]:
        gray = cv2.cvtColor(face, cv2.COLOR_BGR2GRAY)
        resized = cv2.resize(gray, (64, 64)).astype(np.float32)
        blob = resized.reshape(1, 1, 64, 64)
        self.emotion_net.setInput(blob)
        scores = _softmax(np.asarray(self.emotion_net.forward(), dtype=np.float64).reshape(-1))
        return {label: float(p) for label, p in zip(EMOTION_LABELS, scores)}

    def _detect_smile(self, face: np.ndarray) -> bool:
        if self._smile_cascade is None:
            self._smile_cascade = cv2.CascadeClassifier(
                os.path.join(cv2.data.haarcascades, "haarcascade_smile.xml")
            )
        gray = cv2.cvtColor(face, cv2.COLOR_BGR2GRAY)
        lower = gray[gray.shape[0] // 2:, :]
        smiles = self._smile_cascade.detectMultiScale(lower, scaleFactor=1.7, minNeighbors=22)
        return len(smiles) > 0

    def analyze(self, image: np.ndarray) -> Optional[AttributeEstimate]:
        if image is None or image.size == 0:
            return None
        try:
            box = self.face_locator.locate(image) if self.face_locator else None
            if box is None:
                return None
            face = self._crop(image, box)
            if face.size == 0:
                return None
            age, gender = self._estimate_age_gender(face)
            if self.emotion_net is not None:
                expressions = self._estimate_expressions(face)
                smiling = expressions.get("happy", 0.0) > self.smile_threshold
                smile_confidence = expressions.get("happy")
            else:
                expressions = {}
                smiling = self._detect_smile(face)
                smile_confidence = None
        except cv2.error as e:
            raise ExtractionError(f"Local model inference failed: {e}") from e

        return AttributeEstimate(
            gender=gender,
            age=age,
            expressions=expressions,
            smiling=smiling,
            smile_confidence=smile_confidence,
        )

    def is_available(self) -> bool:
        return self.age_net is not None and self.gender_net is not None

    def get_name(self) -> str:
        return "local"

    def close(self) -> None:
        if self.face_locator is not None and hasattr(self.face_locator, "close"):
            self.face_locator.close()
