from __future__ import annotations

import pytest
import requests

from au_boundaries.common.errors import DataUnavailableError
from au_boundaries.common.http import Download, HttpClient, HttpRequestError, RetryConfig, RetryableHttpError


class FakeResponse:
    def __init__(self, status_code: int, content: bytes = b"", headers: dict | None = None):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}


def test_http_download_success(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(
        client.session,
        "request",
        lambda **_kwargs: FakeResponse(200, b"a,b\n1,2\n", {"Content-Type": "text/csv"}),
    )

    download = client.download("https://example.com/files/CG_SA1_2016_SA1_2021.csv")

    assert download.content == b"a,b\n1,2\n"
    assert download.content_type == "text/csv"
    assert download.filename == "CG_SA1_2016_SA1_2021.csv"


def test_http_retryable_status_raises_retryable_error(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(503, b"busy"))

    with pytest.raises(RetryableHttpError):
        client.download("https://example.com/x.csv")


def test_http_retries_until_success(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=3, multiplier=0.0, max_wait=0.0))
    responses = iter([FakeResponse(502), FakeResponse(200, b"ok")])
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: next(responses))

    assert client.download("https://example.com/x.csv").content == b"ok"


def test_http_connection_error_is_retryable(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))

    def boom(**_kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(client.session, "request", boom)

    with pytest.raises(RetryableHttpError):
        client.download("https://example.com/x.csv")


def test_http_not_found_names_resource(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(404))

    with pytest.raises(DataUnavailableError, match="https://example.com/missing.xlsx"):
        client.download("https://example.com/missing.xlsx")


def test_http_client_error_raises(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(403, b"denied"))

    with pytest.raises(HttpRequestError):
        client.download("https://example.com/x.csv")


def test_http_empty_body_is_unavailable(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(200, b""))

    with pytest.raises(DataUnavailableError):
        client.download("https://example.com/x.csv")


def test_download_filename_ignores_query_string():
    download = Download(url="https://example.com/ausstats/log?openagent&x.zip", content=b"PK", content_type=None)
    assert download.filename == "log"
