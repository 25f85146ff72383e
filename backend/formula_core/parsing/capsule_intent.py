"""
Recovers a capsule-count preference the user stated conversationally.
Scans the user's message only, never the AI reply.
"""
import re
import logging
from typing import Optional

from formula_core.evaluation.budget import is_valid_capsule_count

logger = logging.getLogger(__name__)

# Checked in order; a match with an unsupported count falls through to the next pattern
CAPSULE_PHRASE_PATTERNS = [
    re.compile(r"I['’]ll take (\d+) capsules", re.IGNORECASE),
    re.compile(r"I['’]ve selected (\d+)", re.IGNORECASE),
    re.compile(r"(\d+) capsules per day", re.IGNORECASE),
    re.compile(r"(\d+) capsules/day", re.IGNORECASE),
    re.compile(r"(\d+) capsules please", re.IGNORECASE),
    re.compile(r"selected (\d+) capsules", re.IGNORECASE),
    re.compile(r"choose (\d+) capsules", re.IGNORECASE),
    re.compile(r"want (\d+) capsules", re.IGNORECASE),
    re.compile(r"(\d+) caps per day", re.IGNORECASE),
    re.compile(r"go with (\d+)", re.IGNORECASE),
]


def extract_capsule_count_from_message(message: str) -> Optional[int]:
    """First supported capsule count stated in the message, else None."""
    if not message:
        return None
    for pattern in CAPSULE_PHRASE_PATTERNS:
        match = pattern.search(message)
        if not match:
            continue
        count = int(match.group(1))
        if is_valid_capsule_count(count):
            logger.info("CAPSULE_INTENT count=%d pattern=%s", count, pattern.pattern)
            return count
    return None
