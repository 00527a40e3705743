"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    CrawlerConfig,
    FetcherConfig,
    ParserRules,
    ProgramRule,
    RetentionConfig,
    RunDefaults,
    ScheduleConfig,
    ScheduleType,
    SiteConfig,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "CrawlerConfig",
    "FetcherConfig",
    "ParserRules",
    "ProgramRule",
    "RetentionConfig",
    "RunDefaults",
    "ScheduleConfig",
    "ScheduleType",
    "SiteConfig",
]
