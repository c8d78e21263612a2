"""
Azure Speech Service module.

Issues short-lived Azure Speech tokens so the interview page can run speech
recognition in the browser without ever holding SPEECH_KEY. Finalized
utterances come back to the server for keyword sentiment scoring.

Azure tokens are valid for 10 minutes; one is cached and reused for
TOKEN_REUSE_SEC so every page load doesn't hit the token endpoint.
"""

import threading
import time
from typing import Dict, Optional

import requests

import config

TOKEN_REUSE_SEC = 9 * 60


class AzureSpeechService:
    """
    Token issuer for Azure Speech recognition (STT).
    """

    def __init__(self, speech_key: Optional[str] = None, speech_region: Optional[str] = None):
        self.speech_key = (speech_key if speech_key is not None else config.SPEECH_KEY) or ""
        self.speech_region = (speech_region if speech_region is not None else config.SPEECH_REGION) or ""
        self._token: Optional[str] = None
        self._token_time: float = 0.0
        self._lock = threading.Lock()

    @property
    def token_url(self) -> str:
        return f"https://{self.speech_region}.api.cognitive.microsoft.com/sts/v1.0/issueToken"

    def _fetch_token(self) -> str:
        if not self.speech_key.strip():
            raise ValueError(
                "Speech service is not configured. Set SPEECH_KEY in your environment (e.g. in .env)."
            )
        if not self.speech_region.strip():
            raise ValueError(
                "Speech region is not set. Set SPEECH_REGION in your environment (e.g. centralindia)."
            )
        try:
            resp = requests.post(
                self.token_url,
                headers={"Ocp-Apim-Subscription-Key": self.speech_key},
                timeout=5,
            )
        except requests.Timeout:
            raise requests.Timeout("Request to Azure Speech Service timed out")

        if resp.status_code == 401:
            raise ValueError(
                "Azure returned 401 Permission Denied. Check that SPEECH_KEY is a key from an "
                "Azure Speech resource and SPEECH_REGION matches that resource's region."
            )
        try:
            resp.raise_for_status()
        except requests.RequestException as e:
            raise requests.RequestException(f"Failed to get speech token: {e}")

        token = resp.text.strip()
        if not token:
            raise ValueError("Empty token received from Azure Speech Service")
        return token

    def get_speech_token(self) -> Dict[str, str]:
        """
        Return {'token', 'region'} for the browser's speech recognizer.

        Raises:
            ValueError: If SPEECH_KEY or SPEECH_REGION is not configured, or the key is rejected
            requests.RequestException: If the token request fails
        """
        with self._lock:
            now = time.time()
            if self._token is None or now - self._token_time > TOKEN_REUSE_SEC:
                self._token = self._fetch_token()
                self._token_time = now
            return {"token": self._token, "region": self.speech_region}


# Lazy singleton: initialized on first use to avoid loading at import time
_speech_service: Optional[AzureSpeechService] = None


def get_speech_service() -> AzureSpeechService:
    """Return the Speech service instance, creating it on first call (lazy init)."""
    global _speech_service
    if _speech_service is None:
        _speech_service = AzureSpeechService()
    return _speech_service
