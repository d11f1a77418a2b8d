# runner/classification.py
import re
from typing import Optional

from parser.statuses import AbortReason, ErrorClassification

# Only high-confidence environmental causes are auto-classified. Anything
# else is left as UNKNOWN for a human to route.
INFRASTRUCTURE_ERROR_PATTERNS = [
    # timeouts
    re.compile(r"timeout", re.IGNORECASE),
    re.compile(r"timed out", re.IGNORECASE),
    re.compile(r"waiting for", re.IGNORECASE),
    re.compile(r"exceeded", re.IGNORECASE),
    # network
    re.compile(r"network", re.IGNORECASE),
    re.compile(r"net::", re.IGNORECASE),
    re.compile(r"fetch failed", re.IGNORECASE),
    re.compile(r"econnrefused", re.IGNORECASE),
    re.compile(r"enotfound", re.IGNORECASE),
    re.compile(r"connection refused", re.IGNORECASE),
    re.compile(r"connection reset", re.IGNORECASE),
    re.compile(r"dns", re.IGNORECASE),
    # auth / session
    re.compile(r"auth.*expir", re.IGNORECASE),
    re.compile(r"session.*expir", re.IGNORECASE),
    re.compile(r"unauthorized", re.IGNORECASE),
    re.compile(r"401"),
    re.compile(r"403.*forbidden", re.IGNORECASE),
    # browser
    re.compile(r"browser.*closed", re.IGNORECASE),
    re.compile(r"target.*closed", re.IGNORECASE),
    re.compile(r"page.*crashed", re.IGNORECASE),
    re.compile(r"context.*destroyed", re.IGNORECASE),
]


def classify(
    error_message: Optional[str] = None,
    abort_reason: Optional[AbortReason] = None,
) -> ErrorClassification:
    if abort_reason == AbortReason.AUTH_EXPIRED:
        return ErrorClassification.INFRASTRUCTURE

    if not error_message:
        return ErrorClassification.UNKNOWN

    for pattern in INFRASTRUCTURE_ERROR_PATTERNS:
        if pattern.search(error_message):
            return ErrorClassification.INFRASTRUCTURE

    return ErrorClassification.UNKNOWN
