from __future__ import annotations

import httpx
import pytest

from promo_crawler.engine import DealFeed, DealImporter, RawDeal, unwrap_deals
from promo_crawler.errors import FetchError, ParseRejected
from promo_crawler.models import QuantityKind

LISTING = "https://passageirodeprimeira.com/"
FEED = "https://deals.example.test/api/deals"


@pytest.fixture
def importer(parser, clock) -> DealImporter:
    return DealImporter(parser, LISTING, clock=clock)


def test_deal_uses_cost_raw_and_given_route(importer: DealImporter) -> None:
    promotion = importer.to_promotion(
        RawDeal.from_mapping(
            {
                "origin": "São Paulo",
                "destination": "Lisboa",
                "cost_raw": "a partir de 42 mil milhas",
                "source_url": "https://passageirodeprimeira.com/lisboa/",
                "full_text": "TAP Miles&Go   libera trechos para Lisboa",
            }
        )
    )
    assert promotion.quantity == 42000
    assert promotion.quantity_kind is QuantityKind.MILES
    assert promotion.program == "TAP Miles&Go"
    assert (promotion.origin, promotion.destination) == ("São Paulo", "Lisboa")
    assert promotion.title == "TAP Miles&Go libera trechos para Lisboa"
    assert promotion.link == "https://passageirodeprimeira.com/lisboa/"


def test_deal_falls_back_to_full_text_and_defaults(importer: DealImporter) -> None:
    promotion = importer.to_promotion(RawDeal(full_text="Smiles: 18.000 milhas em voos nacionais " + "y" * 250))
    assert promotion.quantity == 18000
    assert promotion.program == "Smiles"
    assert promotion.destination == "General Promotion"
    assert promotion.link == LISTING
    assert len(promotion.title) == 200


def test_deal_ignores_bonus_percentages(importer: DealImporter) -> None:
    with pytest.raises(ParseRejected):
        importer.to_promotion(RawDeal(cost_raw="100% de bônus", full_text="Livelo com 100% de bônus"))


def test_convert_skips_deals_without_miles(importer: DealImporter) -> None:
    promotions = importer.convert(
        [
            {"cost_raw": "35.000 milhas", "full_text": "Azul para Recife por 35.000 milhas"},
            {"cost_raw": "R$ 499", "full_text": "Promo em reais"},
            {"full_text": "Baixe o app e ganhe 10.000 milhas"},
        ]
    )
    assert [promotion.quantity for promotion in promotions] == [35000]
    assert promotions[0].program == "TudoAzul"


@pytest.mark.parametrize(
    "payload",
    [
        [{"cost_raw": "35.000 milhas"}],
        {"deals": [{"cost_raw": "35.000 milhas"}]},
        {"data": [{"cost_raw": "35.000 milhas"}]},
    ],
)
def test_unwrap_deals_accepts_known_envelopes(payload) -> None:
    assert unwrap_deals(payload) == [{"cost_raw": "35.000 milhas"}]


@pytest.mark.parametrize("payload", [{"deals": "nope"}, {"items": []}, "text", [1, 2]])
def test_unwrap_deals_rejects_other_shapes(payload) -> None:
    with pytest.raises(ValueError):
        unwrap_deals(payload)


def test_deal_feed_pulls_json() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["accept"] = request.headers["Accept"]
        return httpx.Response(200, json={"deals": [{"destination": "Natal"}]})

    feed = DealFeed(client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert feed.pull(FEED) == [{"destination": "Natal"}]
    assert seen == {"method": "GET", "accept": "application/json"}
    feed.close()


@pytest.mark.parametrize(
    ("response", "reason"),
    [
        (httpx.Response(503, text="down"), "HTTP 503"),
        (httpx.Response(200, text="<html>tunnel offline</html>"), "unexpected payload"),
        (httpx.Response(200, json={"items": []}), "unexpected payload"),
    ],
)
def test_deal_feed_failures_raise_fetch_error(response: httpx.Response, reason: str) -> None:
    feed = DealFeed(client=httpx.Client(transport=httpx.MockTransport(lambda request: response)))
    with pytest.raises(FetchError, match=reason) as excinfo:
        feed.pull(FEED)
    assert excinfo.value.url == FEED


def test_deal_feed_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    feed = DealFeed(client=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(FetchError, match="transport error"):
        feed.pull(FEED)
