from __future__ import annotations

from promo_crawler.engine import EnrichmentController
from promo_crawler.errors import FetchError
from promo_crawler.models import ArticleCandidate

MIAMI = ArticleCandidate(
    title="Passagem SP → Miami por 35.000 milhas",
    url="https://passageirodeprimeira.com/passagem-sp-miami-35-mil/",
)
IBERIA = ArticleCandidate(
    title="Review da classe executiva da Iberia",
    url="https://passageirodeprimeira.com/review-iberia/",
)


def test_title_only_when_enrichment_disabled(parser, fetcher_factory) -> None:
    fetcher = fetcher_factory()
    result = EnrichmentController(parser, fetcher).resolve(MIAMI, enrich=False)
    assert fetcher.calls == []
    assert result.promotion.destination == "Miami"
    assert not result.fetched and result.error is None


def test_enriched_result_wins(parser, fetcher_factory) -> None:
    article = "Voe com a Smiles: trechos para Miami por 35.000 milhas na classe econômica com taxas."
    fetcher = fetcher_factory({MIAMI.url: article})
    result = EnrichmentController(parser, fetcher).resolve(MIAMI, enrich=True)
    assert fetcher.calls == [MIAMI.url]
    assert result.fetched and result.enriched
    assert result.promotion.program == "Smiles"
    assert result.promotion.description.startswith("Voe com a Smiles")


def test_failed_title_parse_forces_fetch(parser, site_pages, fetcher_factory) -> None:
    fetcher = fetcher_factory(site_pages)
    result = EnrichmentController(parser, fetcher).resolve(IBERIA, enrich=False)
    assert fetcher.calls == [IBERIA.url]
    assert result.promotion.quantity == 34000


def test_fetch_failure_keeps_title_result(parser, fetcher_factory) -> None:
    fetcher = fetcher_factory({MIAMI.url: FetchError(MIAMI.url, "HTTP 429")})
    result = EnrichmentController(parser, fetcher).resolve(MIAMI, enrich=True)
    assert result.promotion is not None
    assert result.promotion.destination == "Miami"
    assert not result.fetched
    assert result.error.to_dict() == {"url": MIAMI.url, "error": "HTTP 429"}


def test_fetch_failure_without_title_result(parser, fetcher_factory) -> None:
    result = EnrichmentController(parser, fetcher_factory()).resolve(IBERIA, enrich=True)
    assert result.promotion is None
    assert result.error.url == IBERIA.url
    assert result.rejection == "no_quantity"


def test_unparseable_article_falls_back_to_title(parser, fetcher_factory) -> None:
    fetcher = fetcher_factory({MIAMI.url: "Baixe o app para ver a oferta completa."})
    result = EnrichmentController(parser, fetcher).resolve(MIAMI, enrich=True)
    assert result.fetched and not result.enriched
    assert result.promotion.destination == "Miami"
    assert result.rejection is None
