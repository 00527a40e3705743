"""Extract article candidates from the listing page text."""

from __future__ import annotations

import re
from urllib.parse import urldefrag, urlparse

from ..config import SiteConfig
from ..models import ArticleCandidate

# "## [Title](https://...)" with an optional arrow between the hashes and the link
_HEADING_LINK = re.compile(
    r"^[ \t]*#{1,6}[ \t]*(?:→[ \t]*)?\[(?P<title>[^\]\n]+)\]\((?P<url>https?://[^)\s]+)\)",
    re.MULTILINE,
)


class ArticleLinkExtractor:
    """Turn listing markdown into an ordered, de-duplicated list of article links."""

    def __init__(self, site: SiteConfig) -> None:
        self.site = site
        self._excluded = [re.compile(pattern, re.IGNORECASE) for pattern in site.excluded_path_patterns]

    def extract(self, text: str, limit: int = 20) -> list[ArticleCandidate]:
        candidates: list[ArticleCandidate] = []
        seen: set[str] = set()
        for match in _HEADING_LINK.finditer(text or ""):
            if len(candidates) >= limit:
                break
            url, _ = urldefrag(match.group("url").strip())
            if url in seen or not self.is_article_url(url):
                continue
            seen.add(url)
            title = " ".join(match.group("title").split())
            candidates.append(ArticleCandidate(title=title, url=url))
        return candidates

    def is_article_url(self, url: str) -> bool:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        if host != self.site.domain and not host.endswith("." + self.site.domain):
            return False
        path = parsed.path or "/"
        return not any(pattern.search(path) for pattern in self._excluded)


__all__ = ["ArticleLinkExtractor"]
