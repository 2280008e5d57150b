"""Deterministic failure labelling for the draft error log.

Categories only label diagnostics. Every failure is retried the same way
regardless of its category.
"""

from __future__ import annotations

import httpx

from proposal_drafts.drafts.errors import (
    ParentJobNotFoundError,
    TemplateNotFoundError,
    UserNotFoundError,
)
from proposal_drafts.errorlog import ErrorCategory

_NETWORK_PATTERNS: tuple[str, ...] = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "network error",
    "could not resolve host",
)


def classify_draft_failure(error: BaseException) -> ErrorCategory:
    """Map one execution failure to an error log category."""

    if isinstance(error, ParentJobNotFoundError):
        return ErrorCategory.DRAFT_JOB
    if isinstance(error, UserNotFoundError):
        return ErrorCategory.DRAFT_USER
    if isinstance(error, TemplateNotFoundError):
        return ErrorCategory.DRAFT_TEMPLATE
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK
    message = str(error).lower()
    if any(pattern in message for pattern in _NETWORK_PATTERNS):
        return ErrorCategory.NETWORK
    return ErrorCategory.DRAFT_GENERATION
