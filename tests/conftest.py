"""Shared fixtures: fixed clock, parser, temporary SQLite stores and a scripted fetcher."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from promo_crawler.config import ParserRules
from promo_crawler.engine import PromotionParser, external_hash
from promo_crawler.engine.fetcher import PageContent, PageFetcher
from promo_crawler.errors import FetchError
from promo_crawler.infra import SQLiteJobStore, SQLiteManager, SQLitePromotionStore
from promo_crawler.models import Promotion, QuantityKind

FIXED_NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

LISTING_URL = "https://passageirodeprimeira.com/"

LISTING_MARKDOWN = """\
# Passageiro de Primeira

## [Passagem SP → Miami por 35.000 milhas](https://passageirodeprimeira.com/passagem-sp-miami-35-mil/)

### [Ganhe até 70% de bônus na transferência para Smiles](https://passageirodeprimeira.com/smiles-bonus-70/)

## [Categoria Milhas](https://passageirodeprimeira.com/categoria/milhas/)

## [Guia de viagem](https://outro-blog.com/guia/)

## [Passagem SP → Miami por 35.000 milhas](https://passageirodeprimeira.com/passagem-sp-miami-35-mil/#comments)

## [Review da classe executiva da Iberia](https://passageirodeprimeira.com/review-iberia/)
"""

IBERIA_URL = "https://passageirodeprimeira.com/review-iberia/"

IBERIA_ARTICLE = """\
# Review da classe executiva da Iberia

A Iberia oferece voos de Madrid para São Paulo com cabine executiva renovada.
Resgates saem a partir de 34 mil pontos Iberia Plus por trecho na tarifa promocional.
"""


class FakeFetcher(PageFetcher):
    """Serve canned pages; values that are exceptions are raised instead."""

    def __init__(self, pages: dict[str, str | Exception] | None = None) -> None:
        self.pages: dict[str, str | Exception] = dict(pages or {})
        self.calls: list[str] = []
        self.closed = False

    def fetch(self, url: str) -> PageContent:
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise FetchError(url, "HTTP 404")
        if isinstance(page, Exception):
            raise page
        return PageContent(url=url, text=page)

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("PROMO_CRAWLER_HOME", str(tmp_path))
    monkeypatch.delenv("FIRECRAWL_API_KEY", raising=False)
    return tmp_path


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def rules() -> ParserRules:
    return ParserRules()


@pytest.fixture
def parser(rules: ParserRules, clock) -> PromotionParser:
    return PromotionParser(rules, "passageirodeprimeira", clock=clock)


@pytest.fixture
def sqlite_manager() -> Iterable[SQLiteManager]:
    manager = SQLiteManager()
    yield manager
    manager.close_all()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "promotions.db"


@pytest.fixture
def promotion_store(sqlite_manager: SQLiteManager, db_path: Path) -> SQLitePromotionStore:
    return SQLitePromotionStore(sqlite_manager, db_path)


@pytest.fixture
def job_store(sqlite_manager: SQLiteManager, db_path: Path) -> SQLiteJobStore:
    return SQLiteJobStore(sqlite_manager, db_path)


@pytest.fixture
def make_promotion() -> Callable[..., Promotion]:
    def _builder(**overrides: Any) -> Promotion:
        collected_at = overrides.pop("collected_at", FIXED_NOW)
        base: dict[str, Any] = {
            "program": "Smiles",
            "origin": "SP",
            "destination": "Miami",
            "quantity": 35000,
            "quantity_kind": QuantityKind.MILES,
            "title": "Passagem SP → Miami por 35.000 milhas",
            "description": None,
            "link": "https://passageirodeprimeira.com/passagem-sp-miami-35-mil/",
            "source": "passageirodeprimeira",
            "collected_at": collected_at,
        }
        base.update(overrides)
        base.setdefault(
            "external_hash", external_hash(base["title"], base["quantity"], collected_at.date())
        )
        return Promotion(**base)

    return _builder


@pytest.fixture
def days_ago() -> Callable[[int], datetime]:
    return lambda days: FIXED_NOW - timedelta(days=days)


@pytest.fixture
def fetcher_factory() -> Callable[..., FakeFetcher]:
    return FakeFetcher


@pytest.fixture
def site_pages() -> dict[str, str | Exception]:
    """Listing page plus the one article whose title alone does not parse."""

    return {LISTING_URL: LISTING_MARKDOWN, IBERIA_URL: IBERIA_ARTICLE}
