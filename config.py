"""
=============================================================================
CONFIGURATION FOR MOCK INTERVIEW ANALYZER (config.py)
=============================================================================

WHAT THIS FILE DOES (in plain language):
----------------------------------------
This file holds ALL configurable settings for the project in one place. Other
files read from it. Nothing secret is stored in the code; we read from the
environment (your .env file or system variables).

MAIN GROUPS OF SETTINGS:
------------------------
  1. Attribute extractor: Which backend estimates gender/age/expression/smile
                           for each sampled frame: Face++ (cloud), Azure Face
                           (cloud), local bundled models, or none.
  2. Face++ / Azure Face: Credentials for the cloud backends. These stay on
                           the server; the browser never sees them.
  3. Local models       : Where to fetch the bundled model files from (tried
                           in order until one source works).
  4. Sampling           : How often a frame is analyzed during the interview.
  5. Speech             : Azure Speech token settings and keyword sentiment.
  6. Results            : Where finished interview results are kept.
  7. Server / logging   : Host, port, debug mode, log level.

HOW VALUES ARE CHOSEN:
---------------------
  - Environment variables override everything.
  - If an env var is not set, we use a default where it's safe.
  - We never put real API keys or secrets as defaults in code.
=============================================================================
"""

import os
from typing import List, Optional


def _strip_quotes(s: str) -> str:
    if not s:
        return s
    s = s.strip()
    if (s.startswith('"') and s.endswith('"')) or (s.startswith("'") and s.endswith("'")):
        return s[1:-1].strip()
    return s


def _split_list(raw: str) -> List[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


# ============================================================================
# ATTRIBUTE EXTRACTOR (how each sampled frame is analyzed)
# ============================================================================
#   "facepp"        : Face++ detect API (cloud). Needs FACEPP_API_KEY/SECRET.
#   "azure_face_api": Azure Face detect API (cloud). Needs AZURE_FACE_API_*.
#   "local"         : Bundled OpenCV DNN models on a MediaPipe face crop.
#   "none"          : No analysis; sessions still run and report defaults.
# ----------------------------------------------------------------------------
ATTRIBUTE_EXTRACTOR: str = (os.getenv("ATTRIBUTE_EXTRACTOR") or "local").strip().lower()
VALID_ATTRIBUTE_EXTRACTORS = ("facepp", "azure_face_api", "local", "none")

# Timeout for one remote analyze call (seconds). A slow call only delays the
# next sample; it never blocks the session.
EXTRACTOR_TIMEOUT_SEC: float = float(os.getenv("EXTRACTOR_TIMEOUT_SEC", "10"))

# Happy-expression probability above which a face counts as smiling (local backend).
SMILE_PROBABILITY_THRESHOLD: float = float(os.getenv("SMILE_PROBABILITY_THRESHOLD", "0.7"))

# ============================================================================
# FACE++ (cloud face attributes)
# ============================================================================
# Server-held secret. Set in .env; never embed in client code.
# ----------------------------------------------------------------------------
FACEPP_API_KEY: str = _strip_quotes(os.getenv("FACEPP_API_KEY") or "")
FACEPP_API_SECRET: str = _strip_quotes(os.getenv("FACEPP_API_SECRET") or "")
FACEPP_API_URL: str = (
    os.getenv("FACEPP_API_URL") or "https://api-us.faceplusplus.com/facepp/v3/detect"
).strip()

# ============================================================================
# AZURE FACE API (cloud face attributes)
# ============================================================================
AZURE_FACE_API_KEY: str = (os.getenv("AZURE_FACE_API_KEY") or "").strip()
AZURE_FACE_API_ENDPOINT: str = (os.getenv("AZURE_FACE_API_ENDPOINT") or "").strip().rstrip("/")

# ============================================================================
# LOCAL MODELS (age, gender and emotion networks for OpenCV DNN)
# ============================================================================
# Comma-separated list of sources, tried in order. Each source is either a
# base URL (files are downloaded into MODEL_CACHE_DIR) or a local directory.
# ----------------------------------------------------------------------------
_DEFAULT_MODEL_SOURCES = ",".join([
    "https://raw.githubusercontent.com/spmallick/learnopencv/master/AgeGender",
    "https://cdn.jsdelivr.net/gh/spmallick/learnopencv@master/AgeGender",
    "models",
])
LOCAL_MODEL_SOURCES: List[str] = _split_list(os.getenv("LOCAL_MODEL_SOURCES") or _DEFAULT_MODEL_SOURCES)

# Emotion (FER+) model sources. Optional: without it, smiling comes from
# OpenCV's bundled smile cascade and expressions are not reported.
_DEFAULT_EMOTION_MODEL_SOURCES = ",".join([
    "https://github.com/onnx/models/raw/main/validated/vision/body_analysis/emotion_ferplus/model",
    "https://media.githubusercontent.com/media/onnx/models/main/validated/vision/body_analysis/emotion_ferplus/model",
    "models",
])
EMOTION_MODEL_SOURCES: List[str] = _split_list(
    os.getenv("EMOTION_MODEL_SOURCES") or _DEFAULT_EMOTION_MODEL_SOURCES
)
MODEL_CACHE_DIR: str = os.getenv("MODEL_CACHE_DIR", os.path.join(".cache", "models"))
MODEL_DOWNLOAD_TIMEOUT_SEC: float = float(os.getenv("MODEL_DOWNLOAD_TIMEOUT_SEC", "30"))

# ============================================================================
# SAMPLING
# ============================================================================
# One frame is analyzed every SAMPLE_INTERVAL_MS. Clamped to 500-1000 ms.
# ----------------------------------------------------------------------------
SAMPLE_INTERVAL_MIN_MS = 500
SAMPLE_INTERVAL_MAX_MS = 1000
SAMPLE_INTERVAL_MS: int = max(
    SAMPLE_INTERVAL_MIN_MS,
    min(SAMPLE_INTERVAL_MAX_MS, int(os.getenv("SAMPLE_INTERVAL_MS", "500"))),
)

# Browser-pushed frames wider than this are downscaled before analysis.
BROWSER_FRAME_MAX_WIDTH: int = int(os.getenv("BROWSER_FRAME_MAX_WIDTH", "1280"))

# ============================================================================
# SPEECH (browser STT via Azure token + keyword sentiment)
# ============================================================================
SPEECH_KEY: str = _strip_quotes(os.getenv("SPEECH_KEY") or "")
SPEECH_REGION: str = (os.getenv("SPEECH_REGION") or "centralindia").strip().lower()
SPEECH_SENTIMENT_ENABLED: bool = os.getenv("SPEECH_SENTIMENT_ENABLED", "true").lower() == "true"
STT_LOCALES: str = os.getenv("STT_LOCALES", "en-US")

# ============================================================================
# RESULTS HANDOFF
# ============================================================================
# If set, finished results are also written as <session_id>.json here, so a
# results page served by another worker process can read them.
# ----------------------------------------------------------------------------
RESULTS_DIR: Optional[str] = os.getenv("RESULTS_DIR") or None
# With RESULTS_DIR set, only this many recent results stay in memory; older
# ones are read back from disk on demand.
RESULTS_MEMORY_LIMIT: int = max(1, int(os.getenv("RESULTS_MEMORY_LIMIT", "50")))

# ============================================================================
# Application Configuration
# ============================================================================
FLASK_PORT: int = int(os.getenv("FLASK_PORT", "5000"))
FLASK_DEBUG: bool = os.getenv("FLASK_DEBUG", "true").lower() == "true"
FLASK_HOST: str = os.getenv("FLASK_HOST", "0.0.0.0")
LOG_LEVEL: str = (os.getenv("LOG_LEVEL") or "INFO").upper()

# ============================================================================
# Helper Functions
# ============================================================================

def warn_missing_config() -> None:
    """
    Print warnings when configuration for the selected backend is missing.
    Call from app startup. Does not raise.
    """
    import sys
    missing = []
    if ATTRIBUTE_EXTRACTOR not in VALID_ATTRIBUTE_EXTRACTORS:
        print(
            f"Config warning: ATTRIBUTE_EXTRACTOR={ATTRIBUTE_EXTRACTOR!r} is not one of "
            f"{', '.join(VALID_ATTRIBUTE_EXTRACTORS)}; analysis will be disabled.",
            file=sys.stderr,
        )
    if ATTRIBUTE_EXTRACTOR == "facepp" and not is_facepp_enabled():
        missing.append("FACEPP_API_KEY / FACEPP_API_SECRET")
    if ATTRIBUTE_EXTRACTOR == "azure_face_api" and not is_azure_face_api_enabled():
        missing.append("AZURE_FACE_API_KEY / AZURE_FACE_API_ENDPOINT")
    if not SPEECH_KEY:
        missing.append("SPEECH_KEY")
    if missing:
        print("Config warning: the following env vars are not set. Some features may be disabled:", ", ".join(missing), file=sys.stderr)


def is_facepp_enabled() -> bool:
    """True if Face++ credentials are configured."""
    return bool(FACEPP_API_KEY and FACEPP_API_SECRET and FACEPP_API_URL)


def is_azure_face_api_enabled() -> bool:
    """True if Azure Face API key and endpoint are configured."""
    return bool(AZURE_FACE_API_KEY and AZURE_FACE_API_ENDPOINT)


def is_speech_enabled() -> bool:
    return bool(SPEECH_KEY and SPEECH_KEY.strip())


def get_extractor_config() -> dict:
    """
    Public view of the extractor configuration. Never includes credentials.
    """
    return {
        "method": ATTRIBUTE_EXTRACTOR,
        "faceppAvailable": is_facepp_enabled(),
        "azureFaceApiAvailable": is_azure_face_api_enabled(),
        "localModelSources": list(LOCAL_MODEL_SOURCES),
        "emotionModelSources": list(EMOTION_MODEL_SOURCES),
        "sampleIntervalMs": SAMPLE_INTERVAL_MS,
    }
