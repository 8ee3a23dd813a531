"""HTTP client for file downloads with retries and timeouts."""

from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from urllib.parse import urlparse

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from au_boundaries.common.constants import USER_AGENT
from au_boundaries.common.errors import DataUnavailableError, StageError

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}
MISSING_STATUS_CODES = {404, 410}


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 20.0
    read: float = 300.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 4
    multiplier: float = 1.0
    max_wait: float = 30.0


@dataclass(frozen=True)
class Download:
    url: str
    content: bytes
    content_type: str | None

    @property
    def filename(self) -> str:
        return urlparse(self.url).path.rstrip("/").split("/")[-1]


class HttpRequestError(StageError):
    error_code = "HTTP_ERROR"


class RetryableHttpError(HttpRequestError):
    pass


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.session = requests.Session()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": "*/*"}
        if headers:
            out.update(headers)
        return out

    def _raise_for_status_or_retry(self, response: requests.Response, url: str) -> None:
        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(f"Retryable HTTP status {status} from {url}")
        if status in MISSING_STATUS_CODES:
            raise DataUnavailableError(f"Resource not found (HTTP {status}): {url}")
        if status >= 400:
            raise HttpRequestError(f"HTTP status {status} from {url}")

    def _download(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> Download:
        req_timeout = timeout or self.timeout
        try:
            response = self.session.request(
                method="GET",
                url=url,
                headers=self._headers(headers),
                timeout=(req_timeout.connect, req_timeout.read),
                allow_redirects=True,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise RetryableHttpError(f"Connection failed for {url}: {exc}") from exc

        self._raise_for_status_or_retry(response, url)

        content = response.content
        if not content:
            raise DataUnavailableError(f"Empty response body from {url}")
        return Download(url=url, content=content, content_type=response.headers.get("Content-Type"))

    def download(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> Download:
        @retry(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry.multiplier,
                max=self.retry.max_wait,
                jitter=1.0,
            ),
            retry=retry_if_exception_type(RetryableHttpError),
            reraise=True,
        )
        def _wrapped() -> Download:
            return self._download(url, headers=headers, timeout=timeout)

        return _wrapped()
