"""Import of pre-scraped deal rows, pushed as JSON or pulled from a feed URL."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

import httpx
import structlog

from ..config import ParserRules
from ..errors import FetchError, ParseRejected
from ..models import Promotion, QuantityKind, utcnow
from .dedup import external_hash
from .parser import PromotionParser


@dataclass(slots=True)
class RawDeal:
    """One deal as posted by an external scraper; every field is optional."""

    origin: str | None = None
    destination: str | None = None
    cost_raw: str | None = None
    source_url: str | None = None
    full_text: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "RawDeal":
        def _text(key: str) -> str | None:
            value = payload.get(key)
            if value is None:
                return None
            text = " ".join(str(value).split())
            return text or None

        return cls(
            origin=_text("origin"),
            destination=_text("destination"),
            cost_raw=_text("cost_raw"),
            source_url=_text("source_url"),
            full_text=_text("full_text"),
        )


class DealImporter:
    """Turn raw deals into promotions using the parser's real-miles patterns only."""

    def __init__(
        self,
        parser: PromotionParser,
        fallback_link: str,
        clock: Callable[[], datetime] = utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.parser = parser
        self.fallback_link = fallback_link
        self.clock = clock
        self.logger = logger or structlog.get_logger("promo_crawler.deals")

    @property
    def rules(self) -> ParserRules:
        return self.parser.rules

    def convert(self, deals: Iterable[Mapping[str, Any] | RawDeal]) -> list[Promotion]:
        promotions: list[Promotion] = []
        for item in deals:
            deal = item if isinstance(item, RawDeal) else RawDeal.from_mapping(item)
            try:
                promotions.append(self.to_promotion(deal))
            except ParseRejected as exc:
                self.logger.debug("deal_skipped", reason=exc.reason, source_url=deal.source_url)
        return promotions

    def to_promotion(self, deal: RawDeal) -> Promotion:
        text = deal.full_text or ""
        quantity = None
        for candidate in (deal.cost_raw, deal.full_text):
            if candidate:
                quantity = self.parser.extract_quantity(candidate, allow_proxy=False, allow_bare=False)
                if quantity is not None:
                    break
        if quantity is None:
            raise ParseRejected("no_quantity")
        if quantity.value < self.rules.min_quantity:
            raise ParseRejected("quantity_below_minimum")
        if self.parser.is_denylisted(text):
            raise ParseRejected("denylisted")

        title = text or " ".join(part for part in (deal.origin, deal.destination, deal.cost_raw) if part)
        title = title[: self.rules.title_max_length]
        collected_at = self.clock()
        return Promotion(
            program=self.parser.classify_program(text),
            origin=deal.origin,
            destination=deal.destination or self.rules.default_destination,
            quantity=quantity.value,
            quantity_kind=QuantityKind.MILES,
            title=title,
            description=text[: self.rules.description_max_length] or None,
            link=deal.source_url or self.fallback_link,
            source=self.parser.source,
            collected_at=collected_at,
            external_hash=external_hash(title, quantity.value, collected_at.date()),
        )


def unwrap_deals(payload: Any) -> list[Mapping[str, Any]]:
    """Accept a bare list, ``{"deals": [...]}`` or ``{"data": [...]}``."""

    if isinstance(payload, Mapping):
        for key in ("deals", "data"):
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
    if not isinstance(payload, list) or not all(isinstance(item, Mapping) for item in payload):
        raise ValueError('expected a JSON list of deal objects, {"deals": [...]} or {"data": [...]}')
    return payload


class DealFeed:
    """Pull deal rows from an external scraper's JSON endpoint."""

    def __init__(
        self,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.timeout = timeout
        self._client = client
        self.logger = logger or structlog.get_logger("promo_crawler.deals")

    def pull(self, url: str) -> list[Mapping[str, Any]]:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, follow_redirects=True)
        headers = {"Accept": "application/json", "ngrok-skip-browser-warning": "true"}
        try:
            response = self._client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            self.logger.warning("deal_feed_transport_error", url=url, error=str(exc))
            raise FetchError(url, f"transport error: {exc}") from exc
        if response.status_code >= 400:
            raise FetchError(url, f"HTTP {response.status_code}")
        try:
            deals = unwrap_deals(response.json())
        except ValueError as exc:
            raise FetchError(url, f"unexpected payload: {exc}") from exc
        self.logger.info("deal_feed_pulled", url=url, count=len(deals))
        return deals

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


__all__ = ["DealFeed", "DealImporter", "RawDeal", "unwrap_deals"]
