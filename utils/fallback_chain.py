"""
Try-in-order loading with aggregated failures.

Used wherever a resource (model weights, a library, a remote backend) has a
list of candidate sources: each loader is tried in order, the first one that
returns wins, and if all fail an ExtractorLoadFailure lists every failure.
"""

import logging
from typing import Callable, Iterable, List, Tuple, TypeVar

from utils.errors import ExtractorLoadFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


def first_success(
    sources: Iterable[str],
    load: Callable[[str], T],
    what: str = "resource",
) -> Tuple[str, T]:
    """
    Call load(source) for each source until one returns.

    Returns:
        (source, value) for the first source that loaded.

    Raises:
        ExtractorLoadFailure: when every source raised (or there were none).
    """
    failures: List[Tuple[str, Exception]] = []
    for source in sources:
        try:
            value = load(source)
        except Exception as e:
            logger.warning("Failed to load %s from %s: %s", what, source, e)
            failures.append((source, e))
            continue
        logger.info("Loaded %s from %s", what, source)
        return source, value

    if not failures:
        raise ExtractorLoadFailure(f"No sources configured for {what}")
    tried = "; ".join(f"{src}: {err}" for src, err in failures)
    raise ExtractorLoadFailure(f"Could not load {what} from any source ({tried})", failures)
