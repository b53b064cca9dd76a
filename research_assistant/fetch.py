"""Async page fetching with SSRF-safe redirect handling, retries and size limits."""

import asyncio
import ipaddress
import logging
import random
import socket
from urllib.parse import urlparse

import httpx

from .errors import FetchError
from .extract import extract_text
from .normalize import clean_text

logger = logging.getLogger(__name__)

# Pool of common browser User-Agents to rotate through
USER_AGENTS = [
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) "
        "Gecko/20100101 Firefox/121.0"
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/605.1.15 (KHTML, like Gecko) "
        "Version/17.2 Safari/605.1.15"
    ),
]

# Default per-attempt timeout and retry count for page loads
DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_FETCH_RETRIES = 2

# Status codes that will not improve on retry
SKIP_STATUS_CODES = {403, 404, 410, 451}

PROCESSABLE_CONTENT_TYPES = {"text/html", "application/xhtml+xml", "text/plain"}

ALLOWED_SCHEMES = {"http", "https"}

BLOCKED_HOSTS = {"localhost", "127.0.0.1", "0.0.0.0", "::1"}

MAX_REDIRECTS = 10

# Maximum response body size (10 MB), enforced while streaming
MAX_RESPONSE_SIZE = 10 * 1024 * 1024


def _request_headers() -> dict[str, str]:
    return {
        "User-Agent": random.choice(USER_AGENTS),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }


def _is_private_ip(ip_str: str) -> bool:
    """Check if an IP address is private, loopback, or otherwise unsafe."""
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        return True
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


async def _is_safe_url(url: str) -> bool:
    """
    Validate a URL before requesting it.

    Rejects non-HTTP(S) schemes, missing or blocked hosts, and hosts that
    resolve to any private, loopback or reserved address.
    """
    try:
        parsed = urlparse(url)
        if parsed.scheme.lower() not in ALLOWED_SCHEMES:
            return False
        host = (parsed.hostname or "").lower()
        if not host or host in BLOCKED_HOSTS:
            return False
        port = parsed.port or (443 if parsed.scheme == "https" else 80)
    except ValueError:
        return False

    return await _resolve_and_validate_host(host, port)


async def _resolve_and_validate_host(hostname: str, port: int = 443) -> bool:
    """Resolve hostname and check that every resolved address is public."""
    try:
        loop = asyncio.get_running_loop()
        addrinfo = await loop.getaddrinfo(hostname, port, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, socket.herror, OSError):
        return False
    if not addrinfo:
        return False
    for _, _, _, _, sockaddr in addrinfo:
        if _is_private_ip(sockaddr[0]):
            logger.warning("Blocked private IP %s for hostname %s", sockaddr[0], hostname)
            return False
    return True


async def _download(client: httpx.AsyncClient, url: str) -> str:
    """Download one page body, validating every redirect hop.

    Raises:
        FetchError: On unsafe targets, skip statuses, unsupported content,
            oversized bodies, or too many redirects.
        httpx.HTTPError: On transport failures (callers may retry).
    """
    current_url = url
    for _ in range(MAX_REDIRECTS + 1):
        if not await _is_safe_url(current_url):
            raise FetchError(f"Blocked unsafe URL: {current_url}")

        async with client.stream("GET", current_url) as response:
            if response.is_redirect:
                location = response.headers.get("location", "")
                if not location:
                    raise FetchError(f"Redirect without location from {current_url}")
                current_url = str(response.url.join(location))
                continue

            if response.status_code in SKIP_STATUS_CODES:
                raise FetchError(f"HTTP {response.status_code} from {current_url}")
            response.raise_for_status()

            media_type = response.headers.get("content-type", "").lower().split(";")[0].strip()
            if media_type and media_type not in PROCESSABLE_CONTENT_TYPES:
                raise FetchError(f"Unsupported content type '{media_type}' from {current_url}")

            content_length = response.headers.get("content-length")
            if content_length and content_length.isdigit() and int(content_length) > MAX_RESPONSE_SIZE:
                raise FetchError(f"Response too large ({content_length} bytes) from {current_url}")

            chunks: list[bytes] = []
            total_size = 0
            async for chunk in response.aiter_bytes():
                total_size += len(chunk)
                if total_size > MAX_RESPONSE_SIZE:
                    raise FetchError(f"Response exceeded {MAX_RESPONSE_SIZE} bytes from {current_url}")
                chunks.append(chunk)

            return b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")

    raise FetchError(f"Too many redirects for {url}")


async def fetch_content(
    url: str,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    retries: int = DEFAULT_FETCH_RETRIES,
    client: httpx.AsyncClient | None = None,
) -> str:
    """
    Load a page and return its readable text.

    Transport errors and 429/5xx responses are retried up to ``retries``
    extra times with a short backoff. Main text comes from extract_text();
    when no extractor succeeds the whole body is run through clean_text().

    Args:
        url: Page to load.
        timeout: Per-attempt timeout in seconds.
        retries: Extra attempts after the first.
        client: Optional shared client (must not follow redirects).

    Returns:
        Extracted text, possibly short or empty.

    Raises:
        FetchError: If the page cannot be loaded.
    """
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=False,
            headers=_request_headers(),
        )

    last_error: Exception | None = None
    try:
        for attempt in range(retries + 1):
            try:
                html = await _download(client, url)
                return extract_text(html, url) or clean_text(html)
            except httpx.HTTPStatusError as e:
                last_error = e
                status = e.response.status_code
                if status != 429 and status < 500:
                    break
            except httpx.HTTPError as e:
                last_error = e
            if attempt < retries:
                wait_time = 0.5 * 2 ** attempt
                logger.debug("Fetch of %s failed (%s), retrying in %.1fs", url, last_error, wait_time)
                await asyncio.sleep(wait_time)
    finally:
        if owns_client:
            await client.aclose()

    raise FetchError(f"Failed to load {url}: {last_error}")
