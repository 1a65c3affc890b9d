"""Fetch a web page and reduce it to its paragraph text."""

from __future__ import annotations

from typing import Optional

import httpx
from bs4 import BeautifulSoup

from ...logging_config import logger

DEFAULT_MAX_CHARS = 20000
DEFAULT_TIMEOUT_SECONDS = 20.0

_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
}


class PageFetchError(RuntimeError):
    """Raised when a page cannot be retrieved."""


def extract_paragraph_text(html: str) -> str:
    """Return the visible text of every ``<p>`` element, one per line."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style", "noscript"]):
        element.decompose()
    paragraphs = [p.get_text(" ", strip=True) for p in soup.find_all("p")]
    return "\n".join(text for text in paragraphs if text)


async def fetch_page_content(
    url: str,
    *,
    max_chars: int = DEFAULT_MAX_CHARS,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    logger.info("fetching page content", extra={"url": url})
    async with httpx.AsyncClient(
        headers=_HEADERS,
        follow_redirects=True,
        timeout=timeout,
        transport=transport,
    ) as client:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise PageFetchError(f"Fetching {url} failed ({exc.response.status_code})") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise PageFetchError(f"Fetching {url} failed: {exc}") from exc

    text = extract_paragraph_text(response.text)
    if max_chars > 0 and len(text) > max_chars:
        text = text[:max_chars]
    return text


__all__ = ["PageFetchError", "extract_paragraph_text", "fetch_page_content"]
