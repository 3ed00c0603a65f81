from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx


def is_retryable_http_exception(exc: BaseException) -> tuple[bool, str | None]:
    """
    Backend retry policy:
    - timeouts and connection errors
    - HTTP 429
    - HTTP 500+
    """
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        reason = f"http_{code}"
        return (code == 429 or code >= 500), reason

    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True, "network_error"

    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True, "network_error"

    return False, None


def retry_after_seconds(exc: BaseException) -> float | None:
    """Seconds requested by a Retry-After header (delta or HTTP date), if any."""
    if not isinstance(exc, httpx.HTTPStatusError):
        return None

    raw = (exc.response.headers.get("Retry-After") or "").strip()
    if not raw:
        return None

    if raw.isdigit():
        return float(raw)

    try:
        when = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())
