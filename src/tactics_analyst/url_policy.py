"""Preset video fetching with SSRF protection.

Preset URLs come from the browser, so the fetch enforces HTTPS, refuses
private/loopback/link-local/multicast/reserved targets (before connecting
and again against the connected peer), re-validates every redirect hop, and
caps the body size while streaming.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from dataclasses import dataclass
from ipaddress import ip_address
from urllib.parse import urlparse

import httpx

from .errors import InvalidRequest, PayloadTooLarge, UpstreamFetchFailure

logger = logging.getLogger(__name__)

_BLOCKED_RANGES_MSG = (
    "private, loopback, link-local, multicast, and reserved addresses are not allowed"
)
_REDIRECT_CODES = frozenset({301, 302, 303, 307, 308})
MAX_REDIRECTS = 5
DEFAULT_CONTENT_TYPE = "video/mp4"


class UrlPolicyError(InvalidRequest):
    """Raised when a URL violates the fetch policy."""


@dataclass
class FetchedVideo:
    data: bytes
    content_type: str
    final_url: str


def _is_blocked_ip(ip_str: str) -> bool:
    ip = ip_address(ip_str)
    return (
        ip.is_loopback or ip.is_private or ip.is_link_local
        or ip.is_multicast or ip.is_reserved
    )


async def _resolve_dns(hostname: str) -> list:
    """Resolve hostname through the event loop's resolver (non-blocking)."""
    loop = asyncio.get_running_loop()
    return await loop.getaddrinfo(
        hostname, None, family=socket.AF_UNSPEC, type=socket.SOCK_STREAM,
    )


async def validate_url(url: str) -> None:
    """Validate a URL against the fetch policy.

    Raises:
        UrlPolicyError: On a non-HTTPS scheme, embedded credentials, a missing
            or unresolvable hostname, or a hostname resolving to a blocked range.
    """
    parsed = urlparse(url)

    if parsed.scheme != "https":
        raise UrlPolicyError(f"Only HTTPS URLs are allowed, got '{parsed.scheme}://'")

    if parsed.username or parsed.password:
        raise UrlPolicyError("URLs with embedded credentials are not allowed")

    hostname = parsed.hostname
    if not hostname:
        raise UrlPolicyError("URL has no hostname")

    try:
        addr_infos = await _resolve_dns(hostname)
    except socket.gaierror as exc:
        raise UrlPolicyError(f"DNS resolution failed for '{hostname}': {exc}") from exc

    for _family, _type, _proto, _canonname, sockaddr in addr_infos:
        ip_str = sockaddr[0]
        if _is_blocked_ip(ip_str):
            raise UrlPolicyError(
                f"URL resolves to blocked IP range ({ip_str}): {_BLOCKED_RANGES_MSG}"
            )


def _verify_peer_ip(response: httpx.Response) -> None:
    """Reject the response if the connected peer sits in a blocked range (DNS rebinding)."""
    stream = response.extensions.get("network_stream")
    if stream is None:
        return

    peername = stream.get_extra_info("peername")
    if peername is None:
        return

    ip_str = peername[0]
    if _is_blocked_ip(ip_str):
        raise UrlPolicyError(
            f"DNS rebinding detected: peer IP {ip_str} is in a blocked range: "
            f"{_BLOCKED_RANGES_MSG}"
        )


def _content_type(response: httpx.Response) -> str:
    raw = response.headers.get("content-type") or ""
    return raw.split(";", 1)[0].strip() or DEFAULT_CONTENT_TYPE


def _declared_length(response: httpx.Response) -> int | None:
    """Content-Length as an int, or None when absent or unparseable.

    The streamed size check still applies when this returns None.
    """
    raw = response.headers.get("content-length")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.debug("Ignoring malformed Content-Length %r from %s", raw, response.url)
        return None


async def fetch_video(url: str, *, max_bytes: int, timeout: float = 60.0) -> FetchedVideo:
    """GET a preset video into memory.

    Raises:
        UrlPolicyError: If the URL or any redirect hop fails validation.
        PayloadTooLarge: If the body exceeds ``max_bytes``.
        UpstreamFetchFailure: On a non-success status or a transport error.
    """
    await validate_url(url)

    current_url = url
    redirects_followed = 0

    try:
        async with httpx.AsyncClient(follow_redirects=False, timeout=timeout) as client:
            while True:
                async with client.stream("GET", current_url) as resp:
                    _verify_peer_ip(resp)

                    if resp.status_code in _REDIRECT_CODES:
                        location = resp.headers.get("location")
                        if not location:
                            raise UpstreamFetchFailure(
                                f"Redirect response missing Location header (status {resp.status_code})",
                                status_code=resp.status_code,
                            )
                        if redirects_followed >= MAX_REDIRECTS:
                            raise UrlPolicyError(
                                f"Too many redirects (>{MAX_REDIRECTS}) while fetching preset video"
                            )
                        next_url = str(resp.url.join(location))
                        await validate_url(next_url)
                        current_url = next_url
                        redirects_followed += 1
                        continue

                    if not resp.is_success:
                        raise UpstreamFetchFailure(
                            f"Failed to fetch preset video from {url}: {resp.reason_phrase}",
                            status_code=resp.status_code,
                        )

                    declared = _declared_length(resp)
                    if declared is not None and declared > max_bytes:
                        raise PayloadTooLarge(
                            f"Preset video is {declared} bytes, limit is {max_bytes}",
                        )

                    chunks: list[bytes] = []
                    accumulated = 0
                    async for chunk in resp.aiter_bytes():
                        accumulated += len(chunk)
                        if accumulated > max_bytes:
                            raise PayloadTooLarge(
                                f"Preset video exceeds size limit ({max_bytes} bytes)",
                            )
                        chunks.append(chunk)
                    content_type = _content_type(resp)
                    break
    except httpx.HTTPError as exc:
        raise UpstreamFetchFailure(f"Failed to fetch preset video from {url}: {exc}") from exc

    logger.info("Fetched preset %s (%d bytes, %s)", current_url, accumulated, content_type)
    return FetchedVideo(data=b"".join(chunks), content_type=content_type, final_url=current_url)
