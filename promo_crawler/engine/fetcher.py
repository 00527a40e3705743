"""Page fetchers turning a URL into readable, markdown-like text."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import httpx
import structlog
from selectolax.parser import HTMLParser, Node

from ..config import FetcherConfig
from ..errors import FetchError


@dataclass(slots=True)
class PageContent:
    """Readable text of one page."""

    url: str
    text: str


class PageFetcher(ABC):
    """Best-effort URL -> text collaborator. Raises ``FetchError`` on failure."""

    @abstractmethod
    def fetch(self, url: str) -> PageContent:
        """Return page text or raise ``FetchError``."""

    def close(self) -> None:
        return

    @staticmethod
    def _is_failure(response: httpx.Response) -> bool:
        # 401/403/429 are how the blog and the scrape API signal a block
        return response.status_code >= 400


class FirecrawlFetcher(PageFetcher):
    """Delegate rendering to a Firecrawl-compatible scrape endpoint returning markdown."""

    def __init__(
        self,
        config: FetcherConfig,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("promo_crawler.fetcher")
        api_key = config.resolved_api_key()
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.Client(timeout=config.timeout)
        self._headers = headers

    def close(self) -> None:
        self._client.close()

    def fetch(self, url: str) -> PageContent:
        if "Authorization" not in self._headers:
            raise FetchError(url, "firecrawl api key not configured")
        payload = {"url": url, "formats": ["markdown"], "onlyMainContent": True}
        try:
            response = self._client.post(
                self.config.api_url,
                json=payload,
                headers=self._headers,
                timeout=self.config.timeout,
            )
        except httpx.HTTPError as exc:
            self.logger.warning("fetch_transport_error", url=url, error=str(exc))
            raise FetchError(url, f"transport error: {exc}") from exc
        if self._is_failure(response):
            self.logger.warning("fetch_blocked", url=url, status=response.status_code)
            raise FetchError(url, f"scrape endpoint returned HTTP {response.status_code}")
        try:
            body: Any = response.json()
        except ValueError as exc:
            raise FetchError(url, "scrape endpoint returned invalid JSON") from exc
        if not isinstance(body, dict) or body.get("success") is False:
            error = body.get("error") if isinstance(body, dict) else None
            raise FetchError(url, str(error or "scrape endpoint reported failure"))
        data = body.get("data") or {}
        text = data.get("markdown") or data.get("content") or ""
        if not text.strip():
            raise FetchError(url, "empty page content")
        self.logger.debug("fetch_ok", url=url, chars=len(text))
        return PageContent(url=url, text=text)


class HttpFetcher(PageFetcher):
    """Fetch raw HTML directly and render headings, links and paragraphs as markdown."""

    def __init__(
        self,
        config: FetcherConfig,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("promo_crawler.fetcher")
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=config.timeout,
            headers={"User-Agent": config.user_agent},
        )

    def close(self) -> None:
        self._client.close()

    def fetch(self, url: str) -> PageContent:
        try:
            response = self._client.get(url, timeout=self.config.timeout)
        except httpx.HTTPError as exc:
            self.logger.warning("fetch_transport_error", url=url, error=str(exc))
            raise FetchError(url, f"transport error: {exc}") from exc
        if self._is_failure(response):
            self.logger.warning("fetch_blocked", url=url, status=response.status_code)
            raise FetchError(url, f"HTTP {response.status_code}")
        text = html_to_markdown(response.text, str(response.url))
        if not text.strip():
            raise FetchError(url, "empty page content")
        return PageContent(url=str(response.url), text=text)


_BLOCK_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "img"}


def html_to_markdown(html: str, base_url: str) -> str:
    """Render the readable parts of an HTML page as markdown-ish lines."""

    tree = HTMLParser(html)
    for node in tree.css("script, style, noscript, nav, footer, form"):
        node.decompose()
    root = tree.body or tree.root
    if root is None:
        return ""
    lines: list[str] = []
    for node in root.traverse():
        if node.tag not in _BLOCK_TAGS or _has_block_ancestor(node):
            continue
        line = _render_block(node, base_url)
        if line:
            lines.append(line)
    return "\n".join(lines)


def _has_block_ancestor(node: Node) -> bool:
    parent = node.parent
    while parent is not None:
        if parent.tag in _BLOCK_TAGS:
            return True
        parent = parent.parent
    return False


def _render_block(node: Node, base_url: str) -> str:
    if node.tag == "img":
        src = node.attributes.get("src")
        if not src:
            return ""
        alt = node.attributes.get("alt") or ""
        return f"![{alt}]({urljoin(base_url, src)})"
    text = node.text(separator=" ", strip=True)
    if not text:
        return ""
    if node.tag.startswith("h"):
        level = int(node.tag[1])
        anchor = node.css_first("a[href]")
        href = anchor.attributes.get("href") if anchor else None
        if href:
            return f"{'#' * level} [{text}]({urljoin(base_url, href)})"
        return f"{'#' * level} {text}"
    if node.tag == "li":
        return f"- {text}"
    return text


def build_fetcher(config: FetcherConfig, logger: structlog.BoundLogger | None = None) -> PageFetcher:
    if config.provider == "firecrawl":
        return FirecrawlFetcher(config, logger=logger)
    if config.provider == "http":
        return HttpFetcher(config, logger=logger)
    raise ValueError(f"Unsupported fetcher provider: {config.provider}")


__all__ = [
    "FirecrawlFetcher",
    "HttpFetcher",
    "PageContent",
    "PageFetcher",
    "build_fetcher",
    "html_to_markdown",
]
