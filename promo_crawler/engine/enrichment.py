"""Decide per article whether to fetch the full body before parsing."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from ..errors import FetchError
from ..models import ArticleCandidate, JobError, Promotion
from .fetcher import PageFetcher
from .parser import PromotionParser


@dataclass(slots=True)
class EnrichmentResult:
    candidate: ArticleCandidate
    promotion: Promotion | None
    fetched: bool = False
    enriched: bool = False
    error: JobError | None = None
    rejection: str | None = None


class EnrichmentController:
    """Title-only parse first, then fetch the article when asked to or when that failed."""

    def __init__(
        self,
        parser: PromotionParser,
        fetcher: PageFetcher,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.parser = parser
        self.fetcher = fetcher
        self.logger = logger or structlog.get_logger("promo_crawler.enrichment")

    def resolve(self, candidate: ArticleCandidate, enrich: bool = True) -> EnrichmentResult:
        title_only = self.parser.evaluate(candidate.title, candidate.url)
        if title_only.accepted and not enrich:
            return EnrichmentResult(candidate=candidate, promotion=title_only.promotion)

        try:
            page = self.fetcher.fetch(candidate.url)
        except FetchError as exc:
            self.logger.warning("article_fetch_failed", url=candidate.url, error=exc.reason)
            return EnrichmentResult(
                candidate=candidate,
                promotion=title_only.promotion,
                error=JobError(url=candidate.url, error=exc.reason),
                rejection=title_only.rejection,
            )

        full = self.parser.evaluate(candidate.title, candidate.url, page.text)
        if full.accepted:
            return EnrichmentResult(
                candidate=candidate, promotion=full.promotion, fetched=True, enriched=True
            )
        return EnrichmentResult(
            candidate=candidate,
            promotion=title_only.promotion,
            fetched=True,
            rejection=None if title_only.accepted else full.rejection,
        )


__all__ = ["EnrichmentController", "EnrichmentResult"]
