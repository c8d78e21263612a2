"""
API endpoint tests.

Uses Flask test client. Does not require a running server.
The session manager and results store are replaced with fresh instances
backed by a fake extractor; external services (Face++, Azure) are mocked.
"""

import base64
import sys
import os

# Ensure project root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import unittest
from unittest.mock import patch, MagicMock

from tests.fixtures.fakes import FakeExtractor, blank_frame, make_estimate


def get_app_client():
    """Create Flask app and test client. Lazy to avoid import-time side effects."""
    from app import app
    app.config["TESTING"] = True
    return app.test_client()


def jpeg_data_url():
    from utils.helpers import encode_jpeg
    data = encode_jpeg(blank_frame(32, 24))
    return "data:image/jpeg;base64," + base64.b64encode(data).decode("ascii")


class SessionApiTestCase(unittest.TestCase):
    """Base: isolated session manager and results store per test."""

    extractor_available = True

    def setUp(self):
        from interview_session import SessionManager
        from services.results_store import ResultsStore
        self.client = get_app_client()
        self.store = ResultsStore()
        self.extractor = FakeExtractor([make_estimate()], available=self.extractor_available)
        self.manager = SessionManager(
            extractor_factory=lambda: self.extractor,
            results_store=self.store,
            interval_ms=60000,
            run_async=False,
        )
        patchers = [
            patch("routes.get_session_manager", return_value=self.manager),
            patch("routes.get_results_store", return_value=self.store),
        ]
        for p in patchers:
            p.start()
            self.addCleanup(p.stop)
        self.addCleanup(self._end_session)

    def _end_session(self):
        session = self.manager.peek()
        if session is not None:
            session.end()


class TestStaticRoutes(unittest.TestCase):
    """Test static file and page routes."""

    def setUp(self):
        self.client = get_app_client()

    def test_pages_return_200_or_404(self):
        """Pages return HTML when present, JSON 404 otherwise."""
        for path in ("/", "/interview", "/results"):
            r = self.client.get(path)
            self.assertIn(r.status_code, (200, 404), msg=path)
            if r.status_code == 200:
                self.assertIn("text/html", r.content_type)
            else:
                self.assertIn("error", r.get_json())

    def test_favicon_returns_204(self):
        """GET /favicon.ico should return 204."""
        r = self.client.get("/favicon.ico")
        self.assertEqual(r.status_code, 204)


class TestConfigEndpoints(unittest.TestCase):
    """Test config-related endpoints."""

    def setUp(self):
        self.client = get_app_client()

    def test_config_all_returns_json(self):
        """GET /config/all should return JSON."""
        r = self.client.get("/config/all")
        self.assertEqual(r.status_code, 200)
        self.assertIn("application/json", r.content_type)
        data = r.get_json()
        self.assertIn("extractor", data)
        self.assertIn("speech", data)

    def test_config_all_never_exposes_credentials(self):
        import config
        with patch.object(config, "FACEPP_API_KEY", "fpp-key-secret"), \
                patch.object(config, "FACEPP_API_SECRET", "fpp-secret-secret"), \
                patch.object(config, "SPEECH_KEY", "speech-secret"):
            r = self.client.get("/config/all")
        body = r.get_data(as_text=True)
        for secret in ("fpp-key-secret", "fpp-secret-secret", "speech-secret"):
            self.assertNotIn(secret, body)


class TestSpeechToken(unittest.TestCase):
    """Test speech token endpoint error mapping."""

    def setUp(self):
        self.client = get_app_client()

    @patch("routes.get_speech_service")
    def test_token_returned(self, mock_get):
        mock_get.return_value.get_speech_token.return_value = {"token": "t", "region": "eastus"}
        r = self.client.get("/speech/token")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.get_json()["token"], "t")

    @patch("routes.get_speech_service")
    def test_token_failure_is_502(self, mock_get):
        mock_get.return_value.get_speech_token.side_effect = ValueError("Speech service is not configured")
        r = self.client.get("/speech/token")
        self.assertEqual(r.status_code, 502)
        self.assertIn("details", r.get_json())


class TestSessionEndpoints(SessionApiTestCase):
    """Test the session lifecycle over HTTP."""

    def test_state_starts_idle(self):
        r = self.client.get("/session/state")
        self.assertEqual(r.status_code, 200)
        data = r.get_json()
        self.assertEqual(data["state"], "idle")
        self.assertEqual(data["elapsed"], "0:00")

    def test_start_requires_json(self):
        r = self.client.post("/session/start", data="x", content_type="text/plain")
        self.assertEqual(r.status_code, 400)

    def test_start_rejects_unknown_source(self):
        r = self.client.post("/session/start", json={"sourceType": "partner"})
        self.assertEqual(r.status_code, 400)

    def test_browser_permission_denied_is_403(self):
        r = self.client.post("/session/start", json={
            "sourceType": "browser",
            "mediaError": {"name": "NotAllowedError", "message": "Permission denied"},
        })
        self.assertEqual(r.status_code, 403)
        self.assertEqual(self.client.get("/session/state").get_json()["state"], "idle")

    def test_browser_missing_device_is_503(self):
        r = self.client.post("/session/start", json={"mediaError": {"name": "NotFoundError"}})
        self.assertEqual(r.status_code, 503)

    def test_start_twice_is_409(self):
        r = self.client.post("/session/start", json={"sourceType": "browser"})
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.get_json()["analysisAvailable"])
        r = self.client.post("/session/start", json={"sourceType": "browser"})
        self.assertEqual(r.status_code, 409)

    def test_frame_upload(self):
        r = self.client.post("/session/frame", json={"image": jpeg_data_url()})
        self.assertEqual(r.status_code, 204)
        r = self.client.post("/session/frame", data=b"", content_type="image/jpeg")
        self.assertEqual(r.status_code, 400)
        r = self.client.post("/session/frame", data=b"not a jpeg", content_type="image/jpeg")
        self.assertEqual(r.status_code, 400)
        r = self.client.post("/session/frame", json={"image": "data:image/jpeg;base64,@@"})
        self.assertEqual(r.status_code, 400)

    def test_full_interview_flow(self):
        self.client.post("/session/start", json={"sourceType": "browser"})
        self.client.post("/session/frame", json={"image": jpeg_data_url()})
        session = self.manager.current()
        for _ in range(3):
            session.sampler.tick()

        r = self.client.post("/session/transcript", json={"text": "I am excited and confident"})
        self.assertEqual(r.get_json(), {"recorded": True, "sentiment": "positive"})
        r = self.client.post("/session/transcript", data="plain text works too", content_type="text/plain")
        self.assertEqual(r.get_json()["sentiment"], "neutral")

        state = self.client.get("/session/state").get_json()
        self.assertEqual(state["state"], "capturing")
        self.assertEqual(state["observationCount"], 5)

        r = self.client.post("/session/end")
        self.assertEqual(r.status_code, 200)
        data = r.get_json()
        self.assertEqual(data["result"]["schemaVersion"], 1)
        self.assertEqual(data["view"]["gender"], "Male")
        self.assertEqual(data["view"]["smile"], "100%")
        self.assertEqual(data["view"]["decision"], "hired")
        self.assertEqual(data["view"]["transcript"], "I am excited and confident plain text works too")

        again = self.client.post("/session/end").get_json()
        self.assertEqual(again["result"]["sessionId"], data["result"]["sessionId"])

        latest = self.client.get("/results/latest").get_json()
        self.assertEqual(latest["result"], data["result"])
        by_id = self.client.get(f"/results/{data['result']['sessionId']}")
        self.assertEqual(by_id.status_code, 200)

    def test_transcript_ignored_when_idle(self):
        r = self.client.post("/session/transcript", json={"text": "great"})
        self.assertEqual(r.get_json(), {"recorded": False, "sentiment": None})

    def test_restart_returns_to_idle(self):
        first = self.client.post("/session/start", json={}).get_json()["sessionId"]
        r = self.client.post("/session/restart")
        self.assertEqual(r.status_code, 200)
        data = r.get_json()
        self.assertEqual(data["state"], "idle")
        self.assertNotEqual(data["sessionId"], first)
        self.assertIsNotNone(self.store.get(first))

    def test_results_missing(self):
        self.assertEqual(self.client.get("/results/latest").status_code, 404)
        self.assertEqual(self.client.get("/results/nope").status_code, 404)


class TestNoAnalysisSession(SessionApiTestCase):
    """Sessions still run when no extractor could be loaded."""

    extractor_available = False

    def test_session_reports_defaults(self):
        r = self.client.post("/session/start", json={"sourceType": "browser"})
        self.assertEqual(r.status_code, 200)
        self.assertFalse(r.get_json()["analysisAvailable"])
        view = self.client.post("/session/end").get_json()["view"]
        self.assertEqual(view["gender"], "Unknown")
        self.assertEqual(view["age"], 0)
        self.assertEqual(view["smile"], "0%")
        self.assertEqual(view["decision"], "rejected")

    def test_analyze_unavailable_is_503(self):
        r = self.client.post("/api/analyze", json={"image": jpeg_data_url()})
        self.assertEqual(r.status_code, 503)


class TestAnalyzeEndpoint(SessionApiTestCase):
    """Test the one-shot analysis passthrough."""

    def test_analyze_returns_attributes(self):
        r = self.client.post("/api/analyze", json={"image": jpeg_data_url(), "gender": "female"})
        self.assertEqual(r.status_code, 200)
        data = r.get_json()
        self.assertEqual(data["gender"], "male")
        self.assertEqual(data["age"], 30)
        self.assertIsInstance(data["age"], int)
        self.assertTrue(data["isSmiling"])
        self.assertEqual(data["expression"], "happy")
        self.assertEqual(data["sentiment"], "neutral")

    def test_analyze_requires_image(self):
        self.assertEqual(self.client.post("/api/analyze", json={}).status_code, 400)
        self.assertEqual(self.client.post("/api/analyze", data="x").status_code, 400)

    def test_analyze_no_face_is_422(self):
        self.extractor.script = [None]
        r = self.client.post("/api/analyze", json={"image": jpeg_data_url()})
        self.assertEqual(r.status_code, 422)

    def test_analyze_backend_failure_is_502(self):
        from utils.errors import ExtractionError
        self.extractor.script = [ExtractionError("Face++ returned status 403")]
        r = self.client.post("/api/analyze", json={"image": jpeg_data_url()})
        self.assertEqual(r.status_code, 502)


if __name__ == "__main__":
    unittest.main()
