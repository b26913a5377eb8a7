"""Download documentation source content with retry and conditional requests.

Retries up to ``retries`` times with exponential backoff on transient
failures (connection errors, timeouts, 5xx responses). A cached ETag /
Last-Modified pair is sent back as ``If-None-Match`` / ``If-Modified-Since``;
a 304 response means the cached entry is still current.

Bodies are streamed and rejected as soon as they exceed the size ceiling,
before any parsing happens.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
from loguru import logger

from lua_lint_mcp.config import DocumentationSource, Settings
from lua_lint_mcp.security import is_valid_source_url
from lua_lint_mcp.sources.models import CacheEntry


class FetchError(Exception):
    """A documentation source could not be fetched."""


class InvalidSourceError(FetchError):
    """The source URL or path is not usable."""


class PayloadTooLargeError(FetchError):
    """The source content exceeds the configured size ceiling."""


@dataclass(slots=True)
class FetchResult:
    status: int
    content: str | None = None
    etag: str | None = None
    last_modified: str | None = None

    @property
    def not_modified(self) -> bool:
        return self.status == 304


def _is_local(url: str) -> bool:
    scheme = urlparse(url).scheme
    # Single-letter schemes are Windows drive letters
    return scheme in ("", "file") or len(scheme) == 1


def _local_path(url: str) -> Path:
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(url2pathname(parsed.path)).expanduser()
    return Path(url).expanduser()


def conditional_headers(settings: Settings, cached: CacheEntry | None) -> dict[str, str]:
    headers = {"User-Agent": settings.user_agent}
    if cached is not None:
        if cached.etag:
            headers["If-None-Match"] = cached.etag
        if cached.last_modified:
            headers["If-Modified-Since"] = cached.last_modified
    return headers


async def _read_limited(response: httpx.Response, max_size: int, label: str) -> str:
    declared = response.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_size:
        raise PayloadTooLargeError(f"{label}: file too large (max {max_size} bytes)")

    chunks: list[bytes] = []
    total = 0
    async for chunk in response.aiter_bytes():
        total += len(chunk)
        if total > max_size:
            raise PayloadTooLargeError(f"{label}: file too large (max {max_size} bytes)")
        chunks.append(chunk)

    encoding = response.encoding or "utf-8"
    return b"".join(chunks).decode(encoding, errors="replace")


async def _get_once(
    client: httpx.AsyncClient,
    url: str,
    headers: dict[str, str],
    settings: Settings,
    label: str,
) -> FetchResult:
    async with client.stream(
        "GET",
        url,
        headers=headers,
        timeout=settings.docs_fetch_timeout,
        follow_redirects=True,
    ) as response:
        if response.status_code == 304 or response.status_code >= 500:
            return FetchResult(status=response.status_code)
        if response.status_code >= 400:
            raise FetchError(
                f"{label}: HTTP {response.status_code}: {response.reason_phrase}"
            )
        content = await _read_limited(response, settings.docs_max_size, label)
        return FetchResult(
            status=response.status_code,
            content=content,
            etag=response.headers.get("etag"),
            last_modified=response.headers.get("last-modified"),
        )


async def fetch_with_retries(
    client: httpx.AsyncClient,
    url: str,
    headers: dict[str, str],
    settings: Settings,
    label: str,
) -> FetchResult:
    """GET ``url`` retrying network errors and 5xx with exponential backoff."""
    retries = max(settings.docs_fetch_retries, 0)
    last_error: Exception | None = None

    for attempt in range(retries + 1):
        delay = settings.docs_retry_base_delay * (2**attempt)
        try:
            async with asyncio.timeout(settings.docs_fetch_timeout):
                result = await _get_once(client, url, headers, settings, label)
        except (httpx.TransportError, TimeoutError) as e:
            # Connection failures, httpx phase timeouts and the total deadline
            last_error = e
            if isinstance(e, TimeoutError):
                last_error = TimeoutError(
                    f"timed out after {settings.docs_fetch_timeout}s"
                )
            if attempt >= retries:
                break
            logger.warning(
                f"Network error for {label} ({last_error}). Retrying in {delay}s..."
            )
            await asyncio.sleep(delay)
            continue

        if result.status >= 500:
            if attempt < retries:
                logger.warning(
                    f"Server error for {label} (status {result.status}). "
                    f"Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
                continue
            raise FetchError(f"{label}: HTTP {result.status}")
        return result

    raise FetchError(f"{label}: {last_error or 'request failed'}")


async def fetch_source(
    client: httpx.AsyncClient,
    source: DocumentationSource,
    cached: CacheEntry | None,
    settings: Settings,
) -> FetchResult:
    """Fetch one source's content, remote or local.

    Raises:
        InvalidSourceError: URL scheme/host not allowed or local file missing.
        PayloadTooLargeError: content above ``settings.docs_max_size``.
        FetchError: any other failure after retries.
    """
    if _is_local(source.url):
        path = _local_path(source.url)
        if not path.is_file():
            raise InvalidSourceError(f"{source.name}: file not found: {path}")
        if path.stat().st_size > settings.docs_max_size:
            raise PayloadTooLargeError(
                f"{source.name}: file too large (max {settings.docs_max_size} bytes)"
            )
        text = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        return FetchResult(status=200, content=text)

    if not is_valid_source_url(source.url):
        raise InvalidSourceError(f"{source.name}: invalid URL format")

    headers = conditional_headers(settings, cached)
    logger.info(f"Downloading {source.name} from {source.url}...")
    return await fetch_with_retries(client, source.url, headers, settings, source.name)
