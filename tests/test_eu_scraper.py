try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import random
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from aliwarehouse.clients.scraper_api import ScraperAPIClient, ScraperError
from aliwarehouse.clients.sqlite_store import TranslationStore
from aliwarehouse.core.config import ScraperSettings
from aliwarehouse.services.eu_scraper import (
    EUScraper,
    ScrapeOptions,
    build_search_url,
    dedupe_products,
    extract_product_id,
    filter_by_price,
    is_captcha_page,
    parse_price,
    parse_product_cards_html,
    save_scraped_products,
    wait_for_captcha_solve,
)

SEARCH_HTML = """
<html><body>
  <div class="search-item-card-wrapper">
    <a href="//www.aliexpress.com/item/1005001.html">
      <img src="https://ae01.alicdn.com/a.jpg" alt="Solar garden light"/>
    </a>
    <a href="/item/1005001.html">again</a>
    <h3 class="title">Solar Garden Light 4 pack</h3>
    <div class="price">€12,99</div>
    <del>€19,99</del>
    <span>Ships from Spain</span>
  </div>
  <div class="product-card">
    <a href="https://www.aliexpress.com/item/1005002.html">
      <img src="data:image/gif;base64,AAAA" data-src="https://ae04.alicdn.com/b.jpg" alt="Wall lamp with sensor"/>
    </a>
    <span>Price 8.50</span>
  </div>
  <div class="list-item">
    <a href="/item/1005003.html">Tiny</a>
  </div>
  <a href="/item/overview">No product id</a>
</body></html>
"""

SINGLE_HTML = """
<div class="product-card">
  <a href="/item/1005001.html"><h2>Solar Garden Light duplicate</h2></a>
  <span>€ 11,00</span>
</div>
"""


class FakeTime:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakePage:
    def __init__(self, titles: list[str], url: str = "https://www.aliexpress.com/wholesale") -> None:
        self._titles = titles
        self.url = url

    async def title(self) -> str:
        return self._titles.pop(0) if len(self._titles) > 1 else self._titles[0]


def test_build_search_url_omits_first_page() -> None:
    first = parse_qs(urlparse(build_search_url("solar light", "ES")).query)
    second = parse_qs(urlparse(build_search_url("solar light", "ES", 2)).query)

    assert first == {"SearchText": ["solar light"], "shipFromCountry": ["ES"]}
    assert second["page"] == ["2"]


def test_extract_product_id() -> None:
    assert extract_product_id("https://www.aliexpress.com/item/1005001.html?spm=x") == "1005001"
    assert extract_product_id("https://www.aliexpress.com/i/42.html") == "42"
    assert extract_product_id("https://www.aliexpress.com/store/1") is None


@pytest.mark.parametrize(
    "title, url, expected",
    [
        ("Captcha Interception", "https://www.aliexpress.com/", True),
        ("Security Verification", "https://www.aliexpress.com/", True),
        ("AliExpress", "https://www.aliexpress.com/punish?x=1", True),
        ("Solar light - AliExpress", "https://www.aliexpress.com/wholesale", False),
    ],
)
def test_is_captcha_page(title: str, url: str, expected: bool) -> None:
    assert is_captcha_page(title, url) is expected


@pytest.mark.parametrize("text, value", [("12,99", 12.99), ("8.50", 8.5), ("1.234,56", 1.234), ("abc", 0.0)])
def test_parse_price(text: str, value: float) -> None:
    assert parse_price(text) == pytest.approx(value)


def test_parse_product_cards_html() -> None:
    products = parse_product_cards_html(SEARCH_HTML, "solar light", category="garden")

    assert [p.aliexpress_product_id for p in products] == ["1005001", "1005002"]
    first, second = products
    assert first.aliexpress_url == "https://www.aliexpress.com/item/1005001.html"
    assert first.title == "Solar Garden Light 4 pack"
    assert first.price == pytest.approx(12.99)
    assert first.original_price == pytest.approx(19.99)
    assert first.ships_from == "Spain"
    assert first.main_image_url == "https://ae01.alicdn.com/a.jpg"
    assert first.category == "garden"

    assert second.title == "Wall lamp with sensor"
    assert second.price == pytest.approx(8.5)
    assert second.original_price is None
    assert second.ships_from == "EU"
    assert second.main_image_url == "https://ae04.alicdn.com/b.jpg"


def test_price_filter_and_dedupe() -> None:
    products = parse_product_cards_html(SEARCH_HTML, "q")

    assert [p.aliexpress_product_id for p in filter_by_price(products, min_price=10)] == ["1005001"]
    assert [p.aliexpress_product_id for p in filter_by_price(products, max_price=10)] == ["1005002"]

    duplicates = parse_product_cards_html(SINGLE_HTML, "q")
    merged = dedupe_products([*products, *duplicates])
    assert len(merged) == 2
    assert merged[0].title == "Solar Garden Light 4 pack"


@pytest.mark.anyio
async def test_wait_for_captcha_solve_returns_when_cleared() -> None:
    fake = FakeTime()
    page = FakePage(["Captcha Interception", "Captcha Interception", "Results"])

    solved = await wait_for_captcha_solve(
        page, max_wait=120, interval=3, sleep=fake.sleep, clock=fake.clock
    )

    assert solved
    assert fake.sleeps == [3, 3, 3, 3]


@pytest.mark.anyio
async def test_wait_for_captcha_solve_gives_up_after_ceiling() -> None:
    fake = FakeTime()
    page = FakePage(["Captcha Interception"])

    solved = await wait_for_captcha_solve(
        page, max_wait=9, interval=3, sleep=fake.sleep, clock=fake.clock
    )

    assert not solved
    assert fake.now == 9


def _scraper_api(pages: dict) -> tuple[ScraperAPIClient, list[tuple[str, int]]]:
    requested: list[tuple[str, int]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["render"] == "true"
        assert request.url.params["country_code"] == "eu"
        target = parse_qs(urlparse(request.url.params["url"]).query)
        key = (target["shipFromCountry"][0], int(target.get("page", ["1"])[0]))
        requested.append(key)
        status, body = pages.get(key, (200, "<html></html>"))
        return httpx.Response(status, text=body)

    client = ScraperAPIClient(
        ScraperSettings(scraper_api_key="key"), transport=httpx.MockTransport(handler)
    )
    return client, requested


@pytest.mark.anyio
async def test_scrape_eu_via_scraper_api_tags_and_dedupes(tmp_path: Path) -> None:
    client, requested = _scraper_api(
        {
            ("ES", 1): (200, SEARCH_HTML),
            ("ES", 2): (500, "upstream failure"),
            ("PL", 1): (200, SINGLE_HTML),
        }
    )
    fake = FakeTime()
    scraper = EUScraper(
        ScraperSettings(scraper_api_key="key"),
        scraper_api=client,
        sleep=fake.sleep,
        clock=fake.clock,
        rng=random.Random(0),
    )

    products, summary = await scraper.scrape_eu(
        ScrapeOptions(
            search_query="solar light",
            countries=["ES", "PL"],
            max_pages=2,
            use_scraper_api=True,
        )
    )

    assert requested == [("ES", 1), ("ES", 2), ("PL", 1), ("PL", 2)]
    assert [p.aliexpress_product_id for p in products] == ["1005001", "1005002"]
    assert products[0].ships_from == "ES"
    assert products[0].ships_from_display == "Ships from Spain"
    assert summary.success
    assert summary.products_found == 2
    assert summary.duplicates_skipped == 1
    assert summary.duration_ms == int(fake.now * 1000)

    store = TranslationStore(str(tmp_path / "translations.db"))
    assert save_scraped_products(store, products, summary) == 2
    assert summary.products_saved == 2
    saved = store.get_source_product("1005001")
    assert saved.status == "pending"
    assert saved.ships_from == "ES"
    assert saved.is_eu_warehouse is True


@pytest.mark.anyio
async def test_scrape_country_via_api_requires_client() -> None:
    scraper = EUScraper(ScraperSettings())
    with pytest.raises(ScraperError):
        await scraper.scrape_country_via_api("ES", ScrapeOptions(search_query="q"))


def test_scraper_api_client_requires_key() -> None:
    with pytest.raises(ScraperError):
        ScraperAPIClient(ScraperSettings())
