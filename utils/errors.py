"""
Exception types for the interview analyzer.

Media acquisition errors are fatal to session start. Extractor load failures
degrade the session to "no analysis" mode. Per-tick extraction errors are
logged by the sampler and the tick is skipped.
"""

from typing import List, Optional, Tuple


class InterviewError(Exception):
    """Base class for all interview analyzer errors."""


class MediaAcquisitionError(InterviewError):
    """Camera/microphone could not be acquired (ResourceUnavailable)."""

    http_status = 503


class PermissionDenied(MediaAcquisitionError):
    """The user (or OS) refused access to the capture device."""

    http_status = 403


class DeviceUnavailable(MediaAcquisitionError):
    """No usable capture device, or it could not be opened."""

    http_status = 503


# Browser getUserMedia error names -> our taxonomy
_BROWSER_MEDIA_ERRORS = {
    "notallowederror": PermissionDenied,
    "permissiondeniederror": PermissionDenied,
    "securityerror": PermissionDenied,
    "notfounderror": DeviceUnavailable,
    "devicesnotfounderror": DeviceUnavailable,
    "notreadableerror": DeviceUnavailable,
    "trackstarterror": DeviceUnavailable,
    "overconstrainederror": DeviceUnavailable,
    "aborterror": DeviceUnavailable,
}


def media_error_from_browser(name: str, message: Optional[str] = None) -> MediaAcquisitionError:
    """Map a browser media error name (e.g. 'NotAllowedError') to an exception instance."""
    key = (name or "").strip().lower()
    cls = _BROWSER_MEDIA_ERRORS.get(key, DeviceUnavailable)
    detail = f"{name}: {message}" if message else (name or "unknown media error")
    return cls(f"Could not access camera/microphone ({detail})")


class ExtractorLoadFailure(InterviewError):
    """Every source in an extractor's fallback chain failed to load."""

    def __init__(self, message: str, failures: Optional[List[Tuple[str, Exception]]] = None):
        super().__init__(message)
        self.failures: List[Tuple[str, Exception]] = list(failures or [])


class ExtractionError(InterviewError):
    """A single analyze() call failed; the tick's observation is dropped."""


class SessionStateError(InterviewError):
    """Operation not allowed in the session's current state."""

    http_status = 409


class ResultFormatError(InterviewError):
    """A persisted session result could not be decoded."""
