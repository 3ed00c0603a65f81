from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping
from urllib.parse import quote

import httpx

from .api_retry import is_retryable_http_exception, retry_after_seconds
from .config import resolve_api_settings
from .config_schema import AppConfig
from .errors import ApiError
from .post import ImageFile
from .retry import OnRetryFn, RetryConfig, RetryEvent, SleepFn, call_with_retries
from .run_log import RunLogger

UploadKind = Literal["image", "video"]

_BODY_PREVIEW_CHARS = 300


@dataclass(frozen=True)
class UploadedFile:
    url: str
    public_id: str | None = None
    version: str | None = None
    resource_type: str | None = None


def _body_preview(response: httpx.Response) -> str:
    try:
        text = response.text
    except Exception:
        return "<failed-to-read-body>"
    text = (text or "").strip()
    if len(text) > _BODY_PREVIEW_CHARS:
        return text[:_BODY_PREVIEW_CHARS] + "…"
    return text


def _retry_logger(logger: RunLogger) -> OnRetryFn:
    def _on_retry(event: RetryEvent) -> None:
        logger.warning(
            "api_retry",
            operation=event.operation,
            failure_attempt=event.failure_attempt,
            max_attempts=event.max_attempts,
            delay_seconds=round(event.delay_seconds, 3),
            server_hinted=event.server_hinted,
            reason=event.reason,
            error_type=event.error_type,
        )

    return _on_retry


class BlogApiClient:
    """
    Thin client for the blog backend: list posts, fetch one post, upload media.

    Returns raw JSON payloads; shape handling belongs to the normalizer.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        client: httpx.Client | None = None,
        timeout_seconds: float = 15.0,
        retry: RetryConfig | None = None,
        on_retry: OnRetryFn | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        base = (base_url or "").strip().rstrip("/")
        if not base:
            raise ApiError("base_url must be a non-empty string")

        self._base_url = base
        self._token = (token or "").strip() or None
        self._retry = retry or RetryConfig()
        self._on_retry = on_retry
        self._sleep_fn = sleep_fn
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_seconds, follow_redirects=True)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        environ: Mapping[str, str] | None = None,
        client: httpx.Client | None = None,
        logger: RunLogger | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> "BlogApiClient":
        settings = resolve_api_settings(config, environ=environ)
        return cls(
            settings.base_url,
            token=settings.token,
            client=client,
            timeout_seconds=config.api.timeout_seconds,
            retry=RetryConfig(max_attempts=config.api.max_attempts),
            on_retry=_retry_logger(logger) if logger is not None else None,
            sleep_fn=sleep_fn,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "BlogApiClient":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def _auth_headers(self) -> dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> httpx.Response | None:
        url = f"{self._base_url}{path}"

        def _do_request() -> httpx.Response:
            response = self._client.request(method, url, **kwargs)
            if allow_not_found and response.status_code == 404:
                return response
            response.raise_for_status()
            return response

        try:
            response = call_with_retries(
                _do_request,
                cfg=self._retry,
                is_retryable=is_retryable_http_exception,
                operation=operation,
                on_retry=self._on_retry,
                sleep_fn=self._sleep_fn,
                retry_after=retry_after_seconds,
            )
        except httpx.HTTPStatusError as e:
            raise ApiError(
                f"{operation} failed with HTTP {e.response.status_code}: {_body_preview(e.response)}"
            ) from e
        except httpx.HTTPError as e:
            raise ApiError(f"{operation} failed: {e}") from e

        if allow_not_found and response.status_code == 404:
            return None
        return response

    @staticmethod
    def _json(response: httpx.Response, *, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"{operation} returned invalid JSON: {_body_preview(response)}"
            ) from e

    def fetch_posts_payload(self) -> Any:
        op = "blogs.list"
        response = self._request("GET", "/api/blogs", operation=op)
        if response is None:
            raise ApiError(f"{op} returned no response")
        return self._json(response, operation=op)

    def fetch_post_payload(self, identifier: str) -> Any | None:
        """Fetch one post by id or slug. Returns None when the backend answers 404."""
        ident = (identifier or "").strip()
        if not ident:
            raise ApiError("post identifier must be a non-empty string")

        op = "blogs.get"
        response = self._request(
            "GET",
            f"/api/blogs/{quote(ident, safe='')}",
            operation=op,
            allow_not_found=True,
        )
        if response is None:
            return None
        return self._json(response, operation=op)

    def upload_file(self, file: ImageFile, kind: UploadKind = "image") -> UploadedFile:
        if kind not in ("image", "video"):
            raise ApiError(f"Unsupported upload type: {kind}")

        op = f"uploads.file:{kind}"
        response = self._request(
            "POST",
            "/api/uploads/file",
            operation=op,
            params={"type": kind},
            headers=self._auth_headers(),
            files={"file": (file.name, file.data, file.content_type)},
        )
        if response is None:
            raise ApiError(f"{op} returned no response")
        body = self._json(response, operation=op)

        url = body.get("url") if isinstance(body, Mapping) else None
        if not isinstance(url, str) or not url.strip():
            raise ApiError(f"{op} response is missing a url: {body!r}")

        version = body.get("version")
        return UploadedFile(
            url=url.strip(),
            public_id=body.get("public_id"),
            version=str(version) if version is not None else None,
            resource_type=body.get("resource_type") or kind,
        )
