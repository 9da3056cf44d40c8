"""Classification of transport failures into retryable and fatal outcomes."""

import json
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Any

import requests
from google.auth import exceptions as auth_exceptions
from googleapiclient.errors import HttpError

from ..exceptions import TransportError, IntegrityError, CredentialsError, ValidationError
from .models import ChunkOutcome, OutcomeKind

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

# Drive reports per-user rate limiting as 403 with one of these reasons
RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})

TRANSIENT_SNIPPETS = (
    "timed out",
    "timeout",
    "temporarily unavailable",
    "connection reset",
    "connection aborted",
    "reset by peer",
    "server busy",
    "rate limit",
    "too many requests",
)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header (delta seconds or HTTP date) into seconds."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring unparseable Retry-After header: {value!r}")
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def parse_error_body(body: Any) -> tuple:
    """
    Extract (message, reason) from a Google API error payload.

    Accepts the decoded JSON dict, raw text, or bytes.
    """
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except ValueError:
            return body.strip()[:300], None
    if not isinstance(body, dict):
        return "", None
    error = body.get("error")
    if not isinstance(error, dict):
        return str(error or ""), None
    reason = None
    for detail in error.get("errors") or []:
        if isinstance(detail, dict) and detail.get("reason"):
            reason = detail["reason"]
            break
    return error.get("message", ""), reason


def is_retryable_status(status: int, reason: Optional[str] = None) -> bool:
    if status in RETRYABLE_STATUS_CODES:
        return True
    return status == 403 and reason in RATE_LIMIT_REASONS


def classify_status(
    status: int,
    message: str = "",
    reason: Optional[str] = None,
    retry_after: Optional[float] = None,
) -> ChunkOutcome:
    """Map an unsuccessful HTTP status to a chunk outcome."""
    detail = f"HTTP {status}"
    if reason:
        detail += f" ({reason})"
    if message:
        detail += f": {message}"
    if is_retryable_status(status, reason):
        return ChunkOutcome.retryable(detail, retry_after=retry_after)
    if status in (404, 410):
        return ChunkOutcome.fatal(f"upload session expired or not found: {detail}")
    return ChunkOutcome.fatal(detail)


def classify_response(response: requests.Response) -> ChunkOutcome:
    """Classify a requests response whose status is not a success."""
    message, reason = parse_error_body(response.content)
    retry_after = parse_retry_after(response.headers.get("Retry-After"))
    return classify_status(response.status_code, message, reason, retry_after)


def transport_error_for(response: requests.Response, action: str) -> TransportError:
    """Build the TransportError raised when a session open or query is rejected."""
    outcome = classify_response(response)
    return TransportError(
        f"{action} failed: {outcome.reason}",
        status_code=response.status_code,
        retryable=outcome.kind is OutcomeKind.RETRYABLE,
    )


def classify_exception(err: BaseException) -> ChunkOutcome:
    """Map an exception raised while sending or reading a chunk to an outcome."""
    if isinstance(err, TransportError):
        if err.retryable:
            return ChunkOutcome.retryable(str(err))
        return ChunkOutcome.fatal(str(err))
    if isinstance(err, (IntegrityError, CredentialsError, ValidationError)):
        return ChunkOutcome.fatal(f"{type(err).__name__}: {err}")
    if isinstance(err, auth_exceptions.RefreshError):
        return ChunkOutcome.fatal(f"credentials refresh rejected: {err}")
    if isinstance(err, auth_exceptions.TransportError):
        return ChunkOutcome.retryable(f"credentials refresh failed: {err}")
    if isinstance(err, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return ChunkOutcome.retryable(f"{type(err).__name__}: {err}")
    if isinstance(err, HttpError):
        try:
            status = int(err.resp.status)
        except (AttributeError, TypeError, ValueError):
            status = 0
        _, reason = parse_error_body(getattr(err, "content", b""))
        resp = getattr(err, "resp", None)
        retry_after = parse_retry_after(resp.get("retry-after") if resp is not None else None)
        return classify_status(status, str(err), reason, retry_after)
    if isinstance(err, requests.exceptions.RequestException):
        return ChunkOutcome.fatal(f"{type(err).__name__}: {err}")
    # builtin ConnectionError covers resets, aborts and refused connections
    if isinstance(err, (ConnectionError, TimeoutError)):
        return ChunkOutcome.retryable(f"{type(err).__name__}: {err}")

    msg = str(err).lower()
    if any(s in msg for s in TRANSIENT_SNIPPETS):
        return ChunkOutcome.retryable(f"{type(err).__name__}: {err}")
    return ChunkOutcome.fatal(f"{type(err).__name__}: {err}")
