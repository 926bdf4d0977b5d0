import ipaddress
import socket
from urllib.parse import urljoin, urlparse

import httpx

from app.services.errors import ErrorKind, FetchError

MAX_CONTENT_SIZE = 10 * 1024 * 1024  # 10 MB
TIMEOUT = 10  # seconds
MAX_REDIRECTS = 10
ALLOWED_SCHEMES = {"http", "https"}
USER_AGENT = "Mozilla/5.0 (compatible; Vaultclip/1.0; +https://example.invalid/bot)"

_UNAVAILABLE_STATUSES = {502, 503, 504}


def _is_private_address(hostname: str) -> bool:
    """Return True if *hostname* resolves to a private, loopback, or link-local address."""
    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror:
        return False

    for info in infos:
        # Strip IPv6 zone IDs (e.g. "::1%eth0" → "::1")
        raw_ip = info[4][0].split("%")[0]
        try:
            addr = ipaddress.ip_address(raw_ip)
        except ValueError:
            continue
        if addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved:
            return True
    return False


def validate_url(url: str) -> None:
    """Raise ValueError if *url* fails SSRF / scheme validation."""
    parsed = urlparse(url)

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Scheme '{parsed.scheme}' is not allowed. Use http or https.")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("URL must have a valid hostname.")

    if _is_private_address(hostname):
        raise ValueError("Requests to private/internal addresses are not allowed.")


def kind_for_status(status_code: int) -> ErrorKind:
    """Map an upstream HTTP status to the recovery kind it calls for."""
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code in _UNAVAILABLE_STATUSES:
        return ErrorKind.SERVICE_UNAVAILABLE
    return ErrorKind.UNKNOWN


async def _fetch(url: str) -> str:
    current_url = url
    headers = {"User-Agent": USER_AGENT}
    async with httpx.AsyncClient(follow_redirects=False, timeout=TIMEOUT, headers=headers) as client:
        for _ in range(MAX_REDIRECTS + 1):
            async with client.stream("GET", current_url) as response:
                if response.is_redirect:
                    location = response.headers.get("location", "")
                    next_url = urljoin(current_url, location)
                    validate_url(next_url)
                    current_url = next_url
                    continue

                response.raise_for_status()

                content_length = response.headers.get("content-length")
                if content_length and int(content_length) > MAX_CONTENT_SIZE:
                    raise FetchError("Response body exceeds the maximum allowed size.")

                chunks = []
                total = 0
                async for chunk in response.aiter_bytes():
                    total += len(chunk)
                    if total > MAX_CONTENT_SIZE:
                        raise FetchError("Response body exceeds the maximum allowed size.")
                    chunks.append(chunk)

                return b"".join(chunks).decode(errors="replace")

    raise FetchError("Too many redirects.")


async def fetch_url(url: str) -> str:
    """Fetch *url* and return the response body as a string.

    Redirects are followed manually so that every redirect destination is
    validated against the SSRF rules before the next request is made.  The
    client and each streamed response are closed on every exit path.

    Raises:
        ValueError: if the URL fails SSRF / scheme validation.
        FetchError: on network or HTTP errors, with the failure kind declared
            (connection refused, rate limited, service unavailable, unknown).
    """
    validate_url(url)
    try:
        return await _fetch(url)
    except httpx.ConnectError as exc:
        raise FetchError(
            f"Connection refused by {urlparse(url).netloc}: {exc}",
            details={"url": url},
            kind=ErrorKind.CONNECTION_REFUSED,
        ) from exc
    except httpx.TimeoutException as exc:
        raise FetchError(
            f"Timed out fetching {url}",
            details={"url": url},
            kind=ErrorKind.SERVICE_UNAVAILABLE,
        ) from exc
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        raise FetchError(
            f"Target URL returned HTTP {status}.",
            details={"url": url, "status_code": status},
            kind=kind_for_status(status),
        ) from exc
    except httpx.RequestError as exc:
        raise FetchError(f"Error fetching {url}: {exc}", details={"url": url}) from exc
