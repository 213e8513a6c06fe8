"""
Maps employee names from punch exports to existing users with
thefuzz.token_sort_ratio.
"""

import logging
import re
import uuid
from collections.abc import Sequence

from thefuzz import fuzz

from daysheet.core.config import settings

logger = logging.getLogger(__name__)

_ws_re = re.compile(r"\s+")


def clean_name(raw: str) -> str:
    return _ws_re.sub(" ", raw.strip())


def match_employee(
    raw_name: str,
    candidates: Sequence[tuple[uuid.UUID, str | None]],
    threshold: int | None = None,
) -> uuid.UUID | None:
    """
    Return the id of the best-matching candidate, or None when no score
    reaches the threshold (defaults to EMPLOYEE_MATCH_THRESHOLD).
    """
    threshold = settings.EMPLOYEE_MATCH_THRESHOLD if threshold is None else threshold
    cleaned = clean_name(raw_name)

    best_score = 0
    best_id: uuid.UUID | None = None
    for emp_id, emp_name in candidates:
        if not emp_name:
            continue
        score = fuzz.token_sort_ratio(cleaned, emp_name)
        if score > best_score:
            best_score, best_id = score, emp_id

    if best_id is not None and best_score >= threshold:
        logger.debug("Matched '%s' -> id=%s (score=%d)", cleaned, best_id, best_score)
        return best_id

    logger.info(
        "No employee for '%s': best score=%d < threshold=%d",
        cleaned, best_score, threshold,
    )
    return None
