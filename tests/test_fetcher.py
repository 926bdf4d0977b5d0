"""Tests for app.services.fetcher URL validation and failure-kind declaration."""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from app.services.errors import ErrorKind, FetchError
from app.services.fetcher import fetch_url, kind_for_status, validate_url

_URL = "https://example.com/page"


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", _URL)
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


@pytest.fixture
def public_host():
    with patch("app.services.fetcher._is_private_address", return_value=False):
        yield


class TestValidateUrl:
    def test_rejects_non_http_scheme(self):
        with pytest.raises(ValueError, match="Scheme"):
            validate_url("ftp://example.com/file")

    def test_rejects_missing_hostname(self):
        with pytest.raises(ValueError, match="hostname"):
            validate_url("http:///path")

    def test_rejects_loopback(self):
        with pytest.raises(ValueError, match="private"):
            validate_url("http://127.0.0.1/admin")

    def test_accepts_public_host(self, public_host):
        validate_url(_URL)


class TestKindForStatus:
    @pytest.mark.parametrize(
        "status, kind",
        [
            (429, ErrorKind.RATE_LIMITED),
            (502, ErrorKind.SERVICE_UNAVAILABLE),
            (503, ErrorKind.SERVICE_UNAVAILABLE),
            (504, ErrorKind.SERVICE_UNAVAILABLE),
            (404, ErrorKind.UNKNOWN),
            (500, ErrorKind.UNKNOWN),
        ],
    )
    def test_mapping(self, status, kind):
        assert kind_for_status(status) is kind


class TestFetchUrlErrors:
    def _fetch_failing_with(self, exc):
        with patch("app.services.fetcher._fetch", new=AsyncMock(side_effect=exc)):
            with pytest.raises(FetchError) as exc_info:
                asyncio.run(fetch_url(_URL))
        return exc_info.value

    def test_connect_error_is_connection_refused(self, public_host):
        error = self._fetch_failing_with(httpx.ConnectError("refused"))
        assert error.kind is ErrorKind.CONNECTION_REFUSED

    def test_timeout_is_service_unavailable(self, public_host):
        error = self._fetch_failing_with(httpx.ReadTimeout("slow"))
        assert error.kind is ErrorKind.SERVICE_UNAVAILABLE

    def test_rate_limited_status(self, public_host):
        error = self._fetch_failing_with(_status_error(429))
        assert error.kind is ErrorKind.RATE_LIMITED
        assert error.details["status_code"] == 429

    def test_not_found_is_unknown(self, public_host):
        error = self._fetch_failing_with(_status_error(404))
        assert error.kind is ErrorKind.UNKNOWN

    def test_invalid_url_is_not_wrapped(self):
        with pytest.raises(ValueError):
            asyncio.run(fetch_url("file:///etc/passwd"))

    def test_body_is_returned(self, public_host):
        with patch("app.services.fetcher._fetch", new=AsyncMock(return_value="<p>ok</p>")):
            assert asyncio.run(fetch_url(_URL)) == "<p>ok</p>"
