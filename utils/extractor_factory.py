"""
Attribute extractor selection.

Resolves config.ATTRIBUTE_EXTRACTOR to a backend. A backend that cannot be
loaded degrades to NoAnalysisExtractor: sessions still run, produce no frame
observations, and report the summary defaults.
"""

import logging
from typing import Optional

import config
from utils.attribute_extractor import AttributeExtractorInterface, NoAnalysisExtractor
from utils.errors import ExtractorLoadFailure

logger = logging.getLogger(__name__)


def create_extractor(method: Optional[str] = None) -> AttributeExtractorInterface:
    """
    Build the extractor for method (default: config.ATTRIBUTE_EXTRACTOR).

    Never raises for load problems; returns a NoAnalysisExtractor carrying
    the reason instead.
    """
    method = (method or config.ATTRIBUTE_EXTRACTOR or "none").strip().lower()

    try:
        if method == "facepp":
            # Imports deferred so unused backends don't load their dependencies
            from utils.facepp_extractor import FacePlusPlusExtractor
            extractor = FacePlusPlusExtractor()
        elif method == "azure_face_api":
            from utils.azure_face_extractor import AzureFaceAPIExtractor
            extractor = AzureFaceAPIExtractor()
        elif method == "local":
            from utils.local_attribute_model import LocalAttributeExtractor
            extractor = LocalAttributeExtractor.load()
        elif method == "none":
            return NoAnalysisExtractor("analysis disabled by configuration")
        else:
            logger.warning("Unknown attribute extractor %r, analysis disabled", method)
            return NoAnalysisExtractor(f"unknown extractor {method!r}")
    except ExtractorLoadFailure as e:
        logger.error("Attribute extractor %s failed to load, proceeding without analysis: %s", method, e)
        return NoAnalysisExtractor(str(e))

    if not extractor.is_available():
        logger.warning("Attribute extractor %s is not available, proceeding without analysis", method)
        return NoAnalysisExtractor(f"{method} is not configured")

    logger.info("Attribute extractor ready: %s", extractor.get_name())
    return extractor
