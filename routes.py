"""
Flask routes for the Mock Interview Analyzer.

Handles static pages, config, speech tokens, the interview session lifecycle
(start/frame/transcript/end/restart/state), results lookup, and the one-shot
image analysis endpoint.
"""

import logging

from flask import Blueprint, request, jsonify, send_from_directory
from werkzeug.exceptions import NotFound

import config
from interview_session import get_session_manager
from services.azure_speech import get_speech_service
from services.results_store import get_results_store
from services.speech_sentiment import NEUTRAL
from utils.errors import (
    InterviewError,
    MediaAcquisitionError,
    ResultFormatError,
    SessionStateError,
)
from utils.helpers import build_config_response, decode_data_url, decode_image_bytes
from utils.observation_log import round_half_away
from utils.results_view import build_results_view
from utils.video_source_handler import VideoSourceType, set_browser_frame_from_bytes

logger = logging.getLogger(__name__)

# Create a blueprint for better organization
api = Blueprint('api', __name__)


def _error(message: str, status: int, details: str = None):
    body = {"error": message}
    if details is not None:
        body["details"] = details
    return jsonify(body), status


def _result_response(result):
    return jsonify({
        "result": result.to_record(),
        "view": build_results_view(result),
    })


# ============================================================================
# Static File Routes
# ============================================================================

def _serve_page(filename: str):
    try:
        return send_from_directory("static", filename)
    except (FileNotFoundError, NotFound):
        return jsonify({"error": f"{filename} not found"}), 404


@api.route("/")
def index():
    """
    Serve the landing page.

    Returns:
        Response: HTML file or error response
    """
    return _serve_page("index.html")


@api.route("/interview")
def interview_page():
    """Serve the interview page (camera preview, timer, End button)."""
    return _serve_page("interview.html")


@api.route("/results")
def results_page():
    """Serve the results page (summary table, decision, restart)."""
    return _serve_page("results.html")


@api.route("/favicon.ico")
def favicon():
    """
    Handle favicon requests.

    Returns:
        Response: Empty 204 response
    """
    return "", 204


# ============================================================================
# Configuration / Speech Routes
# ============================================================================

@api.route("/config/all", methods=["GET"])
def get_all_config():
    """
    Get the public configuration used by the frontend to initialize.

    Returns:
        JSON: extractor, speech and results settings (never credentials)
    """
    return jsonify(build_config_response())


@api.route("/speech/token", methods=["GET"])
def get_speech_token():
    """
    Get an Azure Speech access token for browser-side recognition.

    Returns:
        JSON: {
            "token": "Access token string",
            "region": "Azure region"
        }
    """
    try:
        token_data = get_speech_service().get_speech_token()
        return jsonify(token_data)
    except Exception as e:
        error_details = str(e)
        status_code = 504 if "timeout" in error_details.lower() else 502
        return _error("Failed to get speech token", status_code, error_details)


# ============================================================================
# Interview Session Routes
# ============================================================================

@api.route("/session/state", methods=["GET"])
def session_state():
    """
    Current session status for the interview page.

    Returns:
        JSON: {state, sessionId, elapsed, observationCount, analysisAvailable, latest, ...}
    """
    try:
        return jsonify(get_session_manager().current().status())
    except Exception as e:
        return _error("Failed to get session state", 500, str(e))


@api.route("/session/start", methods=["POST"])
def start_session():
    """
    Start capturing.

    Request Body:
        {
            "sourceType": "browser" | "webcam" | "file" | "stream",
            "sourcePath": "path or URL for file/stream sources",
            "mediaError": {"name": "NotAllowedError", "message": "..."}   (optional)
        }
    The page sends mediaError when getUserMedia failed, so the failure is
    reported and logged the same way as a server-side device failure.

    Returns:
        JSON: {"success": true, "sessionId", "analysisAvailable", "extractor"}
    """
    if not request.is_json:
        return _error("Request must be JSON", 400)

    data = request.get_json(silent=True) or {}
    try:
        source_type = VideoSourceType.parse(data.get("sourceType"))
    except ValueError as e:
        return _error(str(e), 400)
    source_path = None if source_type == VideoSourceType.BROWSER else data.get("sourcePath")
    media_error = data.get("mediaError")
    if media_error is not None and not isinstance(media_error, dict):
        media_error = {"name": str(media_error)}

    try:
        session = get_session_manager().current()
        session.start(source_type, source_path, media_error=media_error)
        return jsonify({
            "success": True,
            "message": f"Interview started from {source_type.value}",
            "sessionId": session.session_id,
            "analysisAvailable": session.analysis_available,
            "extractor": session.extractor.get_name(),
        })
    except MediaAcquisitionError as e:
        logger.warning("Session start failed: %s", e)
        return _error("Could not acquire camera/microphone", e.http_status, str(e))
    except SessionStateError as e:
        return _error("Session already started", e.http_status, str(e))
    except Exception as e:
        logger.exception("Session start failed")
        return _error("Failed to start interview session", 500, str(e))


@api.route("/session/frame", methods=["POST"])
def session_frame():
    """
    Receive the latest camera frame from the browser.
    Accepts a raw JPEG body, multipart/form-data with an image file, or JSON
    {"image": "data:image/jpeg;base64,..."}.
    """
    try:
        if request.is_json:
            payload = (request.get_json(silent=True) or {}).get("image")
            try:
                data = decode_data_url(payload)
            except ValueError as e:
                return _error("Invalid image payload", 400, str(e))
        else:
            data = request.get_data()
            if not data and request.files:
                f = request.files.get("frame") or request.files.get("image") or next(iter(request.files.values()), None)
                if f:
                    data = f.read()
        if not data:
            return _error("No image data", 400)
        if not set_browser_frame_from_bytes(data):
            return _error("Invalid or unsupported image", 400)
        return "", 204
    except Exception as e:
        return _error("Failed to process frame", 500, str(e))


@api.route("/session/transcript", methods=["POST"])
def session_transcript():
    """
    Receive one finalized speech utterance.
    Body: JSON { "text": "..." } or plain text.

    Returns:
        JSON: {"recorded": bool, "sentiment": "positive" | "negative" | "neutral" | null}
    """
    try:
        if request.is_json:
            data = request.get_json(silent=True) or {}
            text = data.get("text", "") or ""
        else:
            text = (request.get_data(as_text=True) or "").strip()
        sentiment = get_session_manager().current().record_utterance(text)
        return jsonify({"recorded": sentiment is not None, "sentiment": sentiment})
    except Exception as e:
        return _error("Failed to process transcript", 500, str(e))


@api.route("/session/end", methods=["POST"])
def end_session():
    """
    End the interview and compute the result. Repeated calls return the
    same result.

    Returns:
        JSON: {"result": <record>, "view": <display model>}
    """
    try:
        result = get_session_manager().current().end()
        return _result_response(result)
    except Exception as e:
        logger.exception("Session end failed")
        return _error("Failed to end interview session", 500, str(e))


@api.route("/session/restart", methods=["POST"])
def restart_session():
    """
    Discard the current session and return to idle.

    Returns:
        JSON: {"success": true, "state": "idle", "sessionId": new id}
    """
    try:
        session = get_session_manager().reset()
        return jsonify({"success": True, "state": session.state.value, "sessionId": session.session_id})
    except Exception as e:
        return _error("Failed to restart interview session", 500, str(e))


# ============================================================================
# Results Routes
# ============================================================================

@api.route("/results/latest", methods=["GET"])
def latest_result():
    """Most recent finished interview, or 404."""
    try:
        result = get_results_store().latest()
    except ResultFormatError as e:
        return _error("Stored result could not be read", 500, str(e))
    if result is None:
        return _error("No finished interview yet", 404)
    return _result_response(result)


@api.route("/results/<session_id>", methods=["GET"])
def get_result(session_id):
    """Finished interview by session id, or 404."""
    try:
        result = get_results_store().get(session_id)
    except ResultFormatError as e:
        return _error("Stored result could not be read", 500, str(e))
    if result is None:
        return _error(f"No result for session {session_id}", 404)
    return _result_response(result)


# ============================================================================
# One-shot Analysis
# ============================================================================

@api.route("/api/analyze", methods=["POST"])
def analyze_image():
    """
    Analyze a single image with the configured extractor.

    Request Body:
        {"image": "data:image/jpeg;base64,..."}

    Returns:
        JSON: {gender, age, isSmiling, expression, sentiment} or {"error": ...}
    """
    if not request.is_json:
        return _error("Request must be JSON", 400)
    data = request.get_json(silent=True) or {}
    try:
        image_bytes = decode_data_url(data.get("image"))
    except ValueError as e:
        return _error("Invalid image payload", 400, str(e))

    frame = decode_image_bytes(image_bytes, max_width=config.BROWSER_FRAME_MAX_WIDTH)
    if frame is None:
        return _error("Invalid or unsupported image", 400)

    extractor = get_session_manager().extractor
    if not extractor.is_available():
        return _error("Attribute analysis is unavailable", 503)
    try:
        # Face++ takes the uploaded JPEG as-is
        if hasattr(extractor, "analyze_jpeg"):
            estimate = extractor.analyze_jpeg(image_bytes)
        else:
            estimate = extractor.analyze(frame)
    except InterviewError as e:
        return _error("Analysis failed", 502, str(e))
    except Exception as e:
        return _error("Analysis failed", 500, str(e))
    if estimate is None:
        return _error("No face detected", 422)

    return jsonify({
        "gender": estimate.gender,
        "age": None if estimate.age is None else round_half_away(estimate.age),
        "isSmiling": estimate.smiling,
        "expression": estimate.dominant_expression(),
        "sentiment": NEUTRAL,
    })


def register_routes(app):
    """
    Register all routes with the Flask application.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(api)
