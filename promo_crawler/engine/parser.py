"""Heuristic promotion parser: title (+ optional article text) -> Promotion."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import structlog

from ..config import ParserRules
from ..errors import ParseRejected
from ..models import Promotion, QuantityKind, utcnow
from .dedup import external_hash

_UNIT = r"(?:milhas|miles|pontos|points)"
# "35 mil milhas", "7,5 mil pontos", "40k miles"
_THOUSAND_UNIT = re.compile(
    rf"(?<![\d.,])(\d{{1,3}}(?:[.,]\d+)?)\s*(?:mil|thousand|k)\s+{_UNIT}\b", re.IGNORECASE
)
# "35.000 milhas", "120,000 points", "4510 milhas"
_GROUPED_UNIT = re.compile(
    rf"(?<![\d.,])(\d{{1,3}}(?:[.,]\d{{3}})+|\d{{4,7}})\s*{_UNIT}\b", re.IGNORECASE
)
_BARE_GROUPED = re.compile(r"(?<![\d.,])\d{1,3}(?:[.,]\d{3})+(?![.,]?\d)")
_PERCENT = re.compile(r"(?<![\d.,])(\d{1,3})\s*%")

_CAP = r"[A-ZÀ-ÖØ-Þ][\w'’-]*"
_PLACE = rf"{_CAP}(?:[ \t]+(?:(?:de|do|da|dos|das|del|la|of)[ \t]+)?{_CAP})*"
_ARROW_ROUTE = re.compile(rf"({_PLACE})[ \t]*(?:→|->|➔|➡|⇒)[ \t]*({_PLACE})")
_FROM_TO_ROUTE = re.compile(rf"(?i:\bde|\bfrom)[ \t]+({_PLACE})[ \t]+(?i:para|to)[ \t]+({_PLACE})")
_TO_ONLY = re.compile(rf"(?i:\bpara|\bto|\bfor|\brumo a)[ \t]+({_PLACE})")

_NON_PROSE_LINE = re.compile(r"^(?:#|[-*+]?\s*!?\[|https?://|<|\||>)")

_MAX_PLACE_LENGTH = 60


@dataclass(slots=True)
class QuantityMatch:
    value: int
    kind: QuantityKind


@dataclass(slots=True)
class ParseOutcome:
    """Either a promotion or the reason the input was rejected."""

    promotion: Promotion | None
    rejection: str | None = None

    @property
    def accepted(self) -> bool:
        return self.promotion is not None


class PromotionParser:
    """Apply the injected ``ParserRules`` tables to a title and optional article text."""

    def __init__(
        self,
        rules: ParserRules,
        source: str,
        clock: Callable[[], datetime] = utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.rules = rules
        self.source = source
        self.clock = clock
        self.logger = logger or structlog.get_logger("promo_crawler.parser")

    def parse(self, title: str, url: str, content: str | None = None) -> Promotion | None:
        return self.evaluate(title, url, content).promotion

    def evaluate(self, title: str, url: str, content: str | None = None) -> ParseOutcome:
        try:
            promotion = self._build(title, url, content)
        except ParseRejected as exc:
            self.logger.debug("article_rejected", url=url, reason=exc.reason, enriched=content is not None)
            return ParseOutcome(promotion=None, rejection=exc.reason)
        return ParseOutcome(promotion=promotion)

    def _build(self, title: str, url: str, content: str | None) -> Promotion:
        title = " ".join((title or "").split())
        content = content or ""
        if len(title) < self.rules.min_title_length:
            raise ParseRejected("title_too_short")
        if self.is_denylisted(title, content):
            raise ParseRejected("denylisted")

        program = self.classify_program(title, content)
        quantity = self.extract_quantity(f"{title}\n{content}")
        if quantity is None:
            raise ParseRejected("no_quantity")
        if quantity.value < self.rules.min_quantity:
            raise ParseRejected("quantity_below_minimum")

        origin, destination = self.extract_route(title, content)
        stored_title = title[: self.rules.title_max_length]
        collected_at = self.clock()
        return Promotion(
            program=program,
            origin=origin,
            destination=destination or self.rules.default_destination,
            quantity=quantity.value,
            quantity_kind=quantity.kind,
            title=stored_title,
            description=self.build_description(stored_title, content),
            link=url,
            source=self.source,
            collected_at=collected_at,
            active=True,
            external_hash=external_hash(stored_title, quantity.value, collected_at.date()),
        )

    # ------------------------------------------------------------------
    # Individual heuristics
    # ------------------------------------------------------------------
    def is_denylisted(self, *texts: str) -> bool:
        haystack = " ".join(texts).lower()
        return any(phrase in haystack for phrase in self.rules.denylist)

    def classify_program(self, title: str, content: str = "") -> str:
        # title mentions win over sidebar/footer mentions in the article body
        for text in (title, content):
            lowered = text.lower()
            for rule in self.rules.programs:
                if any(alias in lowered for alias in rule.aliases):
                    return rule.name
        return self.rules.fallback_program

    def extract_quantity(
        self, text: str, allow_proxy: bool = True, allow_bare: bool = True
    ) -> QuantityMatch | None:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        preferred = [line for line in lines if self._has_quantity_keyword(line)]
        ordered = preferred + [line for line in lines if line not in preferred]

        for line in ordered:
            match = _THOUSAND_UNIT.search(line)
            if match:
                value = float(match.group(1).replace(",", "."))
                return QuantityMatch(round(value * 1000), QuantityKind.MILES)
        for line in ordered:
            match = _GROUPED_UNIT.search(line)
            if match:
                return QuantityMatch(_strip_separators(match.group(1)), QuantityKind.MILES)
        if allow_bare:
            for match in _BARE_GROUPED.finditer(text):
                value = _strip_separators(match.group(0))
                if self.rules.min_quantity <= value <= self.rules.max_bare_quantity:
                    return QuantityMatch(value, QuantityKind.MILES)

        if allow_proxy:
            for match in _PERCENT.finditer(text):
                percent = int(match.group(1))
                if percent >= self.rules.min_bonus_percent:
                    return QuantityMatch(percent * 1000, QuantityKind.BONUS_PERCENT_PROXY)
        return None

    def extract_route(self, title: str, content: str = "") -> tuple[str | None, str | None]:
        """Return (origin, destination); either may be ``None``."""

        for text in (title, content):
            if not text:
                continue
            for pattern in (_ARROW_ROUTE, _FROM_TO_ROUTE):
                for match in pattern.finditer(text):
                    origin = self._clean_place(match.group(1))
                    destination = self._clean_place(match.group(2))
                    if not destination or self._names_program(destination):
                        continue
                    # "Livelo → Smiles" is a points transfer, not a flight
                    if origin and self._names_program(origin):
                        continue
                    return origin, destination
        for match in _TO_ONLY.finditer(title):
            destination = self._clean_place(match.group(1))
            if destination and not self._names_program(destination):
                return None, destination
        return None, None

    def build_description(self, title: str, content: str | None) -> str:
        if content:
            picked: list[str] = []
            for raw_line in content.splitlines():
                line = raw_line.strip()
                if len(line) <= self.rules.description_min_line_length:
                    continue
                if _NON_PROSE_LINE.match(line):
                    continue
                picked.append(line.replace("**", "").replace("__", ""))
                if len(picked) == 2:
                    break
            if picked:
                return " ".join(picked)[: self.rules.description_max_length]
        return title[: self.rules.description_max_length]

    # ------------------------------------------------------------------
    def _has_quantity_keyword(self, line: str) -> bool:
        lowered = line.lower()
        return any(keyword in lowered for keyword in self.rules.quantity_keywords)

    def _clean_place(self, raw: str) -> str | None:
        words = raw.split()
        noise = self.rules.route_noise_words
        while words and words[0].lower() in noise:
            words.pop(0)
        while words and words[-1].lower() in noise:
            words.pop()
        place = " ".join(words).strip(" -'’")
        if not place:
            return None
        return place[:_MAX_PLACE_LENGTH]

    def _names_program(self, place: str) -> bool:
        lowered = place.lower()
        return any(alias in lowered for rule in self.rules.programs for alias in rule.aliases)


def _strip_separators(number: str) -> int:
    return int(number.replace(".", "").replace(",", ""))


__all__ = ["ParseOutcome", "PromotionParser", "QuantityMatch"]
