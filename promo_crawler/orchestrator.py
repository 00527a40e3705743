"""Run orchestrator wiring fetching, parsing, enrichment, dedup, storage and retention."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Sequence

import structlog

from .config import ConfigRepository, CrawlerConfig
from .engine import (
    ArticleLinkExtractor,
    DealFeed,
    DealImporter,
    DedupEngine,
    EnrichmentController,
    EnrichmentResult,
    JobTracker,
    PageFetcher,
    PromotionParser,
    RetentionManager,
    SweepResult,
    ThreadPoolManager,
    build_fetcher,
)
from .errors import FetchError, PersistenceError
from .infra import JobStore, PromotionStore, SQLiteJobStore, SQLiteManager, SQLitePromotionStore
from .logging_conf import run_context
from .models import ArticleCandidate, JobError, Promotion, RunSummary, ScrapeJob, utcnow


@dataclass(slots=True)
class PersistOutcome:
    inserted: int = 0
    skipped: int = 0
    error: str | None = None


class Orchestrator:
    """Central coordinator for one promotion-collection run at a time."""

    def __init__(
        self,
        config: CrawlerConfig,
        promotion_store: PromotionStore,
        job_store: JobStore,
        fetcher: PageFetcher,
        clock: Callable[[], datetime] = utcnow,
        thread_pool: ThreadPoolManager | None = None,
        storage: SQLiteManager | None = None,
        deal_feed: DealFeed | None = None,
    ) -> None:
        self.config = config
        self.promotion_store = promotion_store
        self.job_store = job_store
        self.fetcher = fetcher
        self.clock = clock
        self.storage = storage
        self.logger = structlog.get_logger("promo_crawler").bind(component="orchestrator")

        self.parser = PromotionParser(config.parser, config.site.source_name, clock=clock)
        self.extractor = ArticleLinkExtractor(config.site)
        self.enrichment = EnrichmentController(self.parser, fetcher)
        self.dedup = DedupEngine(promotion_store)
        self.retention = RetentionManager(promotion_store, config.retention, clock=clock)
        self.deal_importer = DealImporter(self.parser, config.site.listing_url, clock=clock)
        self.deal_feed = deal_feed or DealFeed(timeout=config.fetcher.timeout)
        if thread_pool is None and config.run.workers > 1:
            thread_pool = ThreadPoolManager(config.run.workers)
        self.thread_pool = thread_pool

    # ------------------------------------------------------------------
    # Pipeline run
    # ------------------------------------------------------------------
    def run(self, max_articles: int | None = None, enrich: bool | None = None) -> RunSummary:
        limit = self.config.run.max_articles if max_articles is None else max_articles
        if limit < 1:
            raise ValueError("max_articles must be >= 1")
        enrich = self.config.run.enrich if enrich is None else enrich

        tracker = JobTracker(self.job_store, clock=self.clock, logger=self.logger)
        job_id = tracker.start()
        with run_context(job_id=job_id, action="run"):
            return self._execute(tracker, limit, enrich)

    def _execute(self, tracker: JobTracker, limit: int, enrich: bool) -> RunSummary:
        listing_url = self.config.site.listing_url
        try:
            listing = self.fetcher.fetch(listing_url)
        except FetchError as exc:
            self.logger.error("listing_fetch_failed", url=listing_url, error=exc.reason)
            tracker.fail(f"listing fetch failed: {exc.reason}", url=listing_url)
            return RunSummary(
                success=False,
                job_id=tracker.job_id,
                errors_count=tracker.errors_count,
                error=f"listing fetch failed: {exc.reason}",
            )

        candidates = self.extractor.extract(listing.text, limit=limit)
        self.logger.info("articles_found", count=len(candidates), enrich=enrich)

        pages_scraped = 1
        parsed: list[Promotion] = []
        for result in self._resolve_all(candidates, enrich):
            if result.fetched:
                pages_scraped += 1
            if result.error is not None:
                tracker.record_error(result.error.url, result.error.error)
            if result.promotion is not None:
                parsed.append(result.promotion)

        outcome = self._persist(parsed)
        if outcome.error:
            tracker.record_error("", outcome.error)
        self._sweep_into(tracker)
        tracker.complete(pages_scraped=pages_scraped, promotions_found=outcome.inserted)

        summary = RunSummary(
            success=True,
            job_id=tracker.job_id,
            pages_scraped=pages_scraped,
            articles_found=len(candidates),
            promotions_parsed=len(parsed),
            promotions_found=outcome.inserted,
            duplicates_skipped=outcome.skipped,
            errors_count=tracker.errors_count,
        )
        self.logger.info("run_finished", **summary.to_dict())
        return summary

    def _resolve_all(self, candidates: Sequence[ArticleCandidate], enrich: bool) -> list[EnrichmentResult]:
        def _resolve(candidate: ArticleCandidate) -> EnrichmentResult:
            return self._resolve_one(candidate, enrich)

        if self.thread_pool is None or len(candidates) < 2:
            return [_resolve(candidate) for candidate in candidates]
        return self.thread_pool.map_ordered(
            _resolve, candidates, name="articles", max_workers=self.config.run.workers
        )

    def _resolve_one(self, candidate: ArticleCandidate, enrich: bool) -> EnrichmentResult:
        try:
            return self.enrichment.resolve(candidate, enrich=enrich)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("article_error", url=candidate.url, error=str(exc))
            return EnrichmentResult(
                candidate=candidate,
                promotion=None,
                error=JobError(url=candidate.url, error=str(exc)),
            )

    def _persist(self, promotions: Sequence[Promotion]) -> PersistOutcome:
        if not promotions:
            return PersistOutcome()
        try:
            partition = self.dedup.partition(promotions)
            ids = self.promotion_store.insert_many(partition.new)
        except PersistenceError as exc:
            self.logger.error("persist_failed", count=len(promotions), error=str(exc))
            return PersistOutcome(error=str(exc))
        # rows lost to a concurrent run's insert are duplicates too
        conflicts = len(partition.new) - len(ids)
        return PersistOutcome(inserted=len(ids), skipped=partition.skipped + conflicts)

    def _sweep_into(self, tracker: JobTracker) -> SweepResult | None:
        try:
            return self.retention.sweep()
        except PersistenceError as exc:
            self.logger.error("retention_failed", error=str(exc))
            tracker.record_error("", f"retention failed: {exc}")
            return None

    # ------------------------------------------------------------------
    # Maintenance and push-mode actions
    # ------------------------------------------------------------------
    def import_deals(self, deals: Iterable[Mapping[str, Any]]) -> dict[str, int]:
        """Store externally scraped deals through the regular dedup/insert/retention path."""

        deals = list(deals)
        promotions = self.deal_importer.convert(deals)
        outcome = self._persist(promotions)
        if outcome.error:
            raise PersistenceError(outcome.error)
        self.retention.sweep()
        report = {
            "received": len(deals),
            "parsed": len(promotions),
            "inserted": outcome.inserted,
            "skipped": len(deals) - outcome.inserted,
        }
        self.logger.info("deals_imported", **report)
        return report

    def import_from_url(self, url: str) -> dict[str, int]:
        """Pull deals from a feed URL, then import them like pushed deals.

        Raises ``FetchError`` when the feed is unreachable or not a deal list.
        """

        with run_context(action="import", feed_url=url):
            return self.import_deals(self.deal_feed.pull(url))

    def clean(self) -> dict[str, int]:
        deleted_invalid = self.retention.purge_invalid_destinations(
            self.config.parser.invalid_destination_terms
        )
        sweep = self.retention.sweep()
        return {
            "deleted_invalid": deleted_invalid,
            "deactivated": sweep.deactivated,
            "deleted": sweep.deleted,
        }

    def sweep(self) -> SweepResult:
        return self.retention.sweep()

    def recent_jobs(self, limit: int = 20) -> list[ScrapeJob]:
        return self.job_store.list_recent(limit)

    def recent_promotions(self, active_only: bool = True, limit: int = 50) -> list[Promotion]:
        return self.promotion_store.list_promotions(active_only=active_only, limit=limit)

    def close(self) -> None:
        self.fetcher.close()
        self.deal_feed.close()
        if self.thread_pool is not None:
            self.thread_pool.shutdown()
        if self.storage is not None:
            self.storage.close_all()


def build_orchestrator(repository: ConfigRepository | None = None) -> Orchestrator:
    repository = repository or ConfigRepository()
    config = repository.load()
    db_path = repository.database_path()
    storage = SQLiteManager()
    return Orchestrator(
        config=config,
        promotion_store=SQLitePromotionStore(storage, db_path),
        job_store=SQLiteJobStore(storage, db_path),
        fetcher=build_fetcher(config.fetcher),
        storage=storage,
    )


__all__ = ["Orchestrator", "PersistOutcome", "build_orchestrator"]
