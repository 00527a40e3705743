from __future__ import annotations

import json

import httpx
import pytest

from promo_crawler.config import FetcherConfig
from promo_crawler.engine import FirecrawlFetcher, HttpFetcher, build_fetcher
from promo_crawler.engine.fetcher import html_to_markdown
from promo_crawler.errors import FetchError

ARTICLE = "https://passageirodeprimeira.com/post/"


def _firecrawl(handler, api_key: str | None = "fc-test") -> FirecrawlFetcher:
    config = FetcherConfig(api_key=api_key)
    return FirecrawlFetcher(config, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_firecrawl_requests_markdown() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "data": {"markdown": "## [Post](https://x/)"}})

    page = _firecrawl(handler).fetch(ARTICLE)
    assert page.text == "## [Post](https://x/)"
    assert seen["auth"] == "Bearer fc-test"
    assert seen["body"] == {"url": ARTICLE, "formats": ["markdown"], "onlyMainContent": True}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(403, json={"error": "blocked"}),
        httpx.Response(429, json={"error": "rate limited"}),
        httpx.Response(502, text="bad gateway"),
        httpx.Response(200, json={"success": False, "error": "timeout"}),
        httpx.Response(200, json={"success": True, "data": {"markdown": "   "}}),
        httpx.Response(200, text="not json"),
    ],
)
def test_firecrawl_failures_raise(response: httpx.Response) -> None:
    fetcher = _firecrawl(lambda request: response)
    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch(ARTICLE)
    assert excinfo.value.url == ARTICLE


def test_firecrawl_transport_error_and_missing_key() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(FetchError, match="transport error"):
        _firecrawl(handler).fetch(ARTICLE)
    with pytest.raises(FetchError, match="api key"):
        _firecrawl(handler, api_key=None).fetch(ARTICLE)


def test_firecrawl_key_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FIRECRAWL_API_KEY", "fc-env")
    assert FetcherConfig().resolved_api_key() == "fc-env"


def test_http_fetcher_renders_markdown() -> None:
    html = """
    <html><body>
      <nav><a href="/categoria/">Categorias</a></nav>
      <h2><a href="/passagem-sp-miami/">Passagem SP → Miami por 35.000 milhas</a></h2>
      <p>Oferta válida para voos saindo de <b>São Paulo</b>.</p>
      <ul><li>Taxas inclusas</li></ul>
      <img src="/img/banner.png" alt="banner">
      <script>var x = 1;</script>
    </body></html>
    """

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=html, headers={"Content-Type": "text/html"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    page = HttpFetcher(FetcherConfig(provider="http"), client=client).fetch("https://passageirodeprimeira.com/")
    lines = page.text.splitlines()
    assert lines[0] == "## [Passagem SP → Miami por 35.000 milhas](https://passageirodeprimeira.com/passagem-sp-miami/)"
    assert lines[1].startswith("Oferta válida") and "São Paulo" in lines[1]
    assert "- Taxas inclusas" in lines
    assert "![banner](https://passageirodeprimeira.com/img/banner.png)" in lines
    assert "Categorias" not in page.text
    assert "var x" not in page.text


def test_http_fetcher_blocked() -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(403)))
    with pytest.raises(FetchError, match="HTTP 403"):
        HttpFetcher(FetcherConfig(provider="http"), client=client).fetch(ARTICLE)


def test_html_to_markdown_empty() -> None:
    assert html_to_markdown("<html><body><script>1</script></body></html>", ARTICLE) == ""


def test_build_fetcher_by_provider() -> None:
    assert isinstance(build_fetcher(FetcherConfig(provider="http")), HttpFetcher)
    assert isinstance(build_fetcher(FetcherConfig()), FirecrawlFetcher)
