"""Engine components: fetch → extract → parse/enrich → dedup → retain."""

from .dedup import DedupEngine, DedupResult, external_hash
from .deals import DealFeed, DealImporter, RawDeal, unwrap_deals
from .enrichment import EnrichmentController, EnrichmentResult
from .fetcher import FirecrawlFetcher, HttpFetcher, PageContent, PageFetcher, build_fetcher
from .jobs import JobTracker
from .links import ArticleLinkExtractor
from .parser import ParseOutcome, PromotionParser, QuantityMatch
from .retention import RetentionManager, SweepResult
from .thread_pool import ThreadPoolManager

__all__ = [
    "ArticleLinkExtractor",
    "DealFeed",
    "DealImporter",
    "DedupEngine",
    "DedupResult",
    "EnrichmentController",
    "EnrichmentResult",
    "FirecrawlFetcher",
    "HttpFetcher",
    "JobTracker",
    "PageContent",
    "PageFetcher",
    "ParseOutcome",
    "PromotionParser",
    "QuantityMatch",
    "RawDeal",
    "RetentionManager",
    "SweepResult",
    "ThreadPoolManager",
    "build_fetcher",
    "external_hash",
    "unwrap_deals",
]
