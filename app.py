"""
=============================================================================
MOCK INTERVIEW ANALYZER: APPLICATION ENTRY POINT (app.py)
=============================================================================

This is the "front door" of the server. When you run "python app.py", the
server starts and:

  1. Serves the landing, interview and results pages from static/.
  2. Receives sampled camera frames and finalized speech utterances from the
     interview page while a session is capturing.
  3. Ends the session, computes the summary and the hire/reject decision, and
     serves the stored result to the results page.

The actual handlers are defined in routes.py; the session lifecycle lives in
interview_session.py.

HOW TO RUN:
-----------
  - From project root:  python app.py
  - By default the app is at:  http://localhost:5000

CONFIGURATION:
--------------
  - Settings (API keys, ports, extractor backend) come from .env and config.py.
  - Never put real API keys in the code; use environment variables. Keys stay
    on the server and are never sent to the browser.
=============================================================================
"""

# ---------------------------------------------------------------------------
# Step 1: Load environment variables from .env (before anything else)
# ---------------------------------------------------------------------------
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env")

# ---------------------------------------------------------------------------
# Step 2: Import the web framework and our own modules
# ---------------------------------------------------------------------------
import logging

from flask import Flask
from flask_cors import CORS
from flask_compress import Compress

from routes import register_routes
import config

# ---------------------------------------------------------------------------
# Step 3: Logging and missing-settings warnings
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
config.warn_missing_config()


def create_app() -> Flask:
    """
    Create and configure the Flask application.

    What it does:
      - Creates the Flask app.
      - Enables CORS so the pages can call the API from another origin
        (e.g. when served from a different port during development).
      - Enables gzip compression for larger JSON responses.
      - Registers all URL routes (pages, config, session, results).

    Returns:
        The configured Flask application.
    """
    app = Flask(__name__)

    # In production you would restrict this to specific domains.
    CORS(app, resources={r"/*": {"origins": "*"}})

    Compress(app)

    register_routes(app)

    return app


# ---------------------------------------------------------------------------
# Create the one global Flask application
# ---------------------------------------------------------------------------
app = create_app()


if __name__ == "__main__":
    # FLASK_DEBUG: Flask's development server with reloader.
    # Otherwise: Waitress with a few threads, since frame pushes and state
    # polling arrive concurrently.
    if config.FLASK_DEBUG:
        app.run(
            host=config.FLASK_HOST,
            port=config.FLASK_PORT,
            debug=True
        )
    else:
        import waitress
        waitress.serve(app, host=config.FLASK_HOST, port=config.FLASK_PORT, threads=6)
