"""Pydantic models describing crawler, parser and retention configuration."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ScheduleType(str, Enum):
    """Scheduler modes for unattended runs."""

    CRON = "cron"
    INTERVAL = "interval"


class ScheduleConfig(BaseModel):
    """When the scheduler should trigger a run."""

    type: ScheduleType = Field(default=ScheduleType.CRON)
    value: Any = Field(
        default="0 */6 * * *",
        description="Cron expression or interval seconds / kwargs dict, depending on type.",
    )

    @model_validator(mode="after")
    def _validate_value(self) -> "ScheduleConfig":
        if self.type is ScheduleType.CRON and not isinstance(self.value, str):
            raise ValueError("Cron schedule requires string expression")
        if self.type is ScheduleType.INTERVAL and not isinstance(self.value, (int, float, dict)):
            raise ValueError("Interval schedule requires seconds (int/float) or kwargs dict")
        return self


class ProgramRule(BaseModel):
    """A loyalty program and the lowercase substrings that identify it."""

    model_config = ConfigDict(frozen=True)

    name: str
    aliases: tuple[str, ...]

    @field_validator("aliases", mode="before")
    @classmethod
    def _lower_aliases(cls, value: Any) -> tuple[str, ...]:
        if isinstance(value, str):
            value = [value]
        aliases = tuple(str(alias).strip().lower() for alias in value if str(alias).strip())
        if not aliases:
            raise ValueError("Program rule needs at least one alias")
        return aliases


DEFAULT_PROGRAMS: tuple[ProgramRule, ...] = (
    ProgramRule(name="Smiles", aliases=("smiles",)),
    ProgramRule(name="LATAM Pass", aliases=("latam pass", "latampass", "latam")),
    ProgramRule(name="TudoAzul", aliases=("tudoazul", "tudo azul", "azul fidelidade", "azul")),
    ProgramRule(name="Livelo", aliases=("livelo",)),
    ProgramRule(name="Esfera", aliases=("esfera",)),
    ProgramRule(name="TAP Miles&Go", aliases=("miles&go", "miles & go", "tap miles")),
    ProgramRule(name="AAdvantage", aliases=("aadvantage",)),
    ProgramRule(name="Iberia Plus", aliases=("iberia plus", "iberia")),
    ProgramRule(name="Flying Blue", aliases=("flying blue",)),
)


class ParserRules(BaseModel):
    """Static keyword, denylist and threshold tables used by the promotion parser."""

    model_config = ConfigDict(frozen=True)

    programs: tuple[ProgramRule, ...] = DEFAULT_PROGRAMS
    fallback_program: str = "Unclassified"
    default_destination: str = "General Promotion"
    denylist: tuple[str, ...] = (
        "baixe o app",
        "baixe nosso app",
        "baixe o aplicativo",
        "download the app",
        "get the app",
        "política de privacidade",
        "privacy policy",
        "termos de uso",
        "terms of use",
        "assine nossa newsletter",
    )
    quantity_keywords: tuple[str, ...] = (
        "milhas",
        "miles",
        "pontos",
        "points",
        "resgate",
        "redemption",
        "trecho",
        "segment",
        "ida e volta",
        "round trip",
    )
    route_noise_words: tuple[str, ...] = (
        "passagem",
        "passagens",
        "voo",
        "voos",
        "promoção",
        "promo",
        "oferta",
        "ida",
        "volta",
        "flight",
        "flights",
        "trip",
    )
    invalid_destination_terms: tuple[str, ...] = ("voo", "amanhã", "hoje", "ontem")
    min_title_length: int = 10
    min_quantity: int = 1000
    max_bare_quantity: int = 500_000
    min_bonus_percent: int = 10
    title_max_length: int = 200
    description_max_length: int = 300
    description_min_line_length: int = 30

    @field_validator(
        "denylist",
        "quantity_keywords",
        "route_noise_words",
        "invalid_destination_terms",
        mode="before",
    )
    @classmethod
    def _lower_terms(cls, value: Any) -> tuple[str, ...]:
        if isinstance(value, str):
            value = [value]
        return tuple(str(term).strip().lower() for term in value if str(term).strip())

    @model_validator(mode="after")
    def _validate_thresholds(self) -> "ParserRules":
        if self.min_quantity < 1000:
            raise ValueError("min_quantity must be >= 1000")
        if self.max_bare_quantity < self.min_quantity:
            raise ValueError("max_bare_quantity must be >= min_quantity")
        if not 0 < self.min_bonus_percent <= 100:
            raise ValueError("min_bonus_percent must be within 1..100")
        return self


class SiteConfig(BaseModel):
    """The single blog visited per run."""

    listing_url: str = "https://passageirodeprimeira.com/"
    domain: str = "passageirodeprimeira.com"
    source_name: str = "passageirodeprimeira"
    excluded_path_patterns: tuple[str, ...] = (
        r"^/?$",
        r"^/(categoria|category|categorias)(/|$)",
        r"^/tags?(/|$)",
        r"/page/\d+/?$",
        r"^/(autor|author)(/|$)",
    )

    @field_validator("domain", mode="before")
    @classmethod
    def _normalise_domain(cls, value: Any) -> str:
        domain = str(value or "").strip().lower()
        if domain.startswith("www."):
            domain = domain[4:]
        if not domain:
            raise ValueError("domain cannot be empty")
        return domain


class FetcherConfig(BaseModel):
    """Page fetcher selection and credentials."""

    provider: Literal["firecrawl", "http"] = "firecrawl"
    api_url: str = "https://api.firecrawl.dev/v1/scrape"
    api_key: str | None = None
    timeout: float = 60.0
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120 Safari/537.36"
    )

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be > 0")
        return value

    def resolved_api_key(self) -> str | None:
        return self.api_key or os.environ.get("FIRECRAWL_API_KEY") or None


class RunDefaults(BaseModel):
    """Defaults applied when the trigger omits a parameter."""

    max_articles: int = 20
    enrich: bool = True
    workers: int = 1

    @model_validator(mode="after")
    def _validate_bounds(self) -> "RunDefaults":
        if self.max_articles < 1:
            raise ValueError("max_articles must be >= 1")
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        return self


class RetentionConfig(BaseModel):
    """Age thresholds for soft expiry and hard deletion."""

    soft_expiry_days: int = 7
    hard_delete_days: int = 30

    @model_validator(mode="after")
    def _validate_thresholds(self) -> "RetentionConfig":
        if self.soft_expiry_days < 1:
            raise ValueError("soft_expiry_days must be >= 1")
        if self.hard_delete_days <= self.soft_expiry_days:
            raise ValueError("hard_delete_days must exceed soft_expiry_days")
        return self


class CrawlerConfig(BaseModel):
    """Top-level configuration persisted as ``data/config.yaml``."""

    site: SiteConfig = Field(default_factory=SiteConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    parser: ParserRules = Field(default_factory=ParserRules)
    run: RunDefaults = Field(default_factory=RunDefaults)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    database_path: Path = Field(default=Path("data/promotions.db"))

    @field_validator("database_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_database_path(self, base_dir: Path) -> Path:
        """Return the SQLite path relative to the project root."""

        if not self.database_path.is_absolute():
            return (base_dir / self.database_path).resolve()
        return self.database_path


__all__ = [
    "CrawlerConfig",
    "DEFAULT_PROGRAMS",
    "FetcherConfig",
    "ParserRules",
    "ProgramRule",
    "RetentionConfig",
    "RunDefaults",
    "ScheduleConfig",
    "ScheduleType",
    "SiteConfig",
]
