"""
Refresh error classification.

Every failure seen during a batch (provider or store) is mapped to one
RefreshErrorKind by classify(). The mapping is table-driven so the
signatures live in one place, checked in this order:

  1. Typed provider errors (ProviderRateLimitError, ProviderNotFoundError,
     ProviderConfigError), which already encode the upstream verdict.
     Store (SQLAlchemy) errors are then classified by type alone, never by
     their text, which embeds the SQL parameters of the failed write.
  2. Rate-limit signatures: status 429 or rate-limit vocabulary. These win
     over every generic rule below; a rate-limited batch reports 429, not 500.
  3. Exception types (timeouts, transport errors).
  4. HTTP status codes.
  5. Message vocabulary.

Anything unrecognised is TRANSIENT: the account is skipped or synthesized and
the batch carries on.
"""
import asyncio
import re
from enum import Enum
from typing import Optional, Tuple

import httpx
from sqlalchemy.exc import ArgumentError, NoSuchModuleError, SQLAlchemyError

from tiktrack.provider.client import (
    ProviderConfigError,
    ProviderNotFoundError,
    ProviderRateLimitError,
)


class RefreshErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    FATAL = "fatal"


class FatalRefreshError(RuntimeError):
    """Raised when a failure makes the whole batch meaningless; the batch aborts."""

    kind = RefreshErrorKind.FATAL


# ── Signature tables ──────────────────────────────────────────────────────────

RATE_LIMIT_STATUS_CODES = frozenset({429})
RATE_LIMIT_PATTERN = re.compile(
    r"\b429\b|rate[ _-]?limit|too many requests|quota exceeded", re.IGNORECASE
)

PROVIDER_SIGNATURES: Tuple[Tuple[tuple, RefreshErrorKind], ...] = (
    ((ProviderRateLimitError,), RefreshErrorKind.RATE_LIMITED),
    ((ProviderNotFoundError,), RefreshErrorKind.NOT_FOUND),
    ((ProviderConfigError,), RefreshErrorKind.FATAL),
)

STORE_SIGNATURES: Tuple[Tuple[tuple, RefreshErrorKind], ...] = (
    ((ArgumentError, NoSuchModuleError), RefreshErrorKind.FATAL),
)

TYPE_SIGNATURES: Tuple[Tuple[tuple, RefreshErrorKind], ...] = (
    (
        (
            asyncio.TimeoutError,
            TimeoutError,
            httpx.TimeoutException,
            httpx.TransportError,
            ConnectionError,
        ),
        RefreshErrorKind.TRANSIENT,
    ),
)

STATUS_SIGNATURES = {
    404: RefreshErrorKind.NOT_FOUND,
    401: RefreshErrorKind.FATAL,
    403: RefreshErrorKind.FATAL,
    408: RefreshErrorKind.TRANSIENT,
}

MESSAGE_SIGNATURES: Tuple[Tuple[str, RefreshErrorKind], ...] = (
    ("not found", RefreshErrorKind.NOT_FOUND),
    ("does not exist", RefreshErrorKind.NOT_FOUND),
    ("api key", RefreshErrorKind.FATAL),
    ("not configured", RefreshErrorKind.FATAL),
    ("credentials", RefreshErrorKind.FATAL),
)


def _status_code(error: BaseException) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    code = getattr(error, "status_code", None)
    return code if isinstance(code, int) else None


def classify(error: BaseException) -> RefreshErrorKind:
    """
    Map a provider or store failure to a RefreshErrorKind.

    Args:
        error: The exception raised by the provider call or store write.

    Returns:
        RATE_LIMITED, NOT_FOUND, TRANSIENT or FATAL.
    """
    if isinstance(error, FatalRefreshError):
        return RefreshErrorKind.FATAL

    # Provider errors already carry their verdict
    for types, kind in PROVIDER_SIGNATURES:
        if isinstance(error, types):
            return kind

    if isinstance(error, SQLAlchemyError):
        for types, kind in STORE_SIGNATURES:
            if isinstance(error, types):
                return kind
        return RefreshErrorKind.TRANSIENT

    status = _status_code(error)
    if status in RATE_LIMIT_STATUS_CODES or RATE_LIMIT_PATTERN.search(str(error)):
        return RefreshErrorKind.RATE_LIMITED

    for types, kind in TYPE_SIGNATURES:
        if isinstance(error, types):
            return kind

    if status is not None:
        if status in STATUS_SIGNATURES:
            return STATUS_SIGNATURES[status]
        if status >= 500:
            return RefreshErrorKind.TRANSIENT

    message = str(error).lower()
    for phrase, kind in MESSAGE_SIGNATURES:
        if phrase in message:
            return kind

    return RefreshErrorKind.TRANSIENT
