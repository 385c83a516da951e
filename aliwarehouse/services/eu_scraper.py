"""
Search-page scraper for AliExpress products shipped from EU warehouses.

Two fetch modes share one HTML parser: a stealth Playwright browser that waits
for a human to clear CAPTCHAs, and ScraperAPI's rendering endpoint. Both walk
search result pages country by country and tag each product with the
warehouse country it was listed under.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence
from urllib.parse import urlencode

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Route, async_playwright

from aliwarehouse.clients.scraper_api import ScraperAPIClient, ScraperError
from aliwarehouse.clients.sqlite_store import TranslationStore
from aliwarehouse.core.config import ScraperSettings
from aliwarehouse.schemas.products import SourceProductInput

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

SEARCH_URL = "https://www.aliexpress.com/wholesale"

EU_WAREHOUSE_COUNTRIES = ("DE", "FR", "ES", "PL", "IT", "NL", "BE", "CZ", "AT", "PT")

COUNTRY_NAMES: Dict[str, str] = {
    "DE": "Germany",
    "FR": "France",
    "ES": "Spain",
    "PL": "Poland",
    "IT": "Italy",
    "NL": "Netherlands",
    "BE": "Belgium",
    "CZ": "Czech Republic",
    "AT": "Austria",
    "PT": "Portugal",
}

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

STEALTH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-web-security",
    "--disable-features=IsolateOrigins,site-per-process",
    "--window-size=1920,1080",
    "--disable-notifications",
    "--disable-popup-blocking",
)

# Forces English copy and EUR prices regardless of proxy location.
LOCALE_COOKIES = [
    {
        "name": "aep_usuc_f",
        "value": "site=glo&c_tp=EUR&region=DE&b_locale=en_US",
        "domain": ".aliexpress.com",
        "path": "/",
    },
    {"name": "intl_locale", "value": "en_US", "domain": ".aliexpress.com", "path": "/"},
]

EXTRA_HEADERS = {
    "Accept-Language": "en-GB,en;q=0.9,de;q=0.8",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
}

CAPTCHA_TITLE_MARKERS = ("captcha", "verification", "robot")
CAPTCHA_URL_MARKERS = ("captcha", "punish", "sec.aliexpress")

PRODUCT_SELECTORS = (
    '[class*="search-item-card"]',
    '[class*="product-card"]',
    '[class*="list--gallery"]',
    '[class*="list-item"]',
    '[class*="card-out-wrapper"]',
    '[data-widget-cid*="product"]',
    'a[href*="/item/"][href*=".html"]',
    'img[src*="ae01.alicdn.com"]',
    'img[src*="ae04.alicdn.com"]',
)

_ITEM_LINK = 'a[href*="/item/"]'
_TITLE_SELECTORS = ("h1", "h2", "h3", '[class*="title"]', '[class*="Title"]', '[class*="name"]')
_ORIGINAL_PRICE_SELECTOR = 'del, s, [class*="origin"], [class*="was"]'
_CARD_MARKERS = ("card", "item", "product")

_PRODUCT_ID = re.compile(r"/(?:item|i)/(\d+)\.html")
_EUR_PRICE = re.compile(r"€\s*([\d,.]+)|EUR\s*([\d,.]+)|([\d,.]+)\s*€", re.IGNORECASE)
_ANY_PRICE = re.compile(r"\d{1,3}[,.]\d{2}")
_NUMBER = re.compile(r"[\d,.]+")
_LEADING_FLOAT = re.compile(r"\d+(?:\.\d+)?")
_SHIPS_FROM = re.compile(r"ships?\s*from[:\s]*([\w\s]+)", re.IGNORECASE)


class CaptchaTimeoutError(ScraperError):
    """Raised when a CAPTCHA is still showing after the wait ceiling."""


@dataclass(slots=True)
class ScrapeOptions:
    search_query: str
    countries: Sequence[str] = EU_WAREHOUSE_COUNTRIES
    max_pages: int = 3
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    category: Optional[str] = None
    debug: bool = False
    headless: bool = True
    use_scraper_api: bool = False
    use_proxy: bool = False


@dataclass(slots=True)
class ScrapedProduct:
    aliexpress_product_id: str
    aliexpress_url: str
    title: str
    price: float
    search_query: str
    original_price: Optional[float] = None
    currency: str = "EUR"
    ships_from: str = "EU"
    ships_from_display: Optional[str] = None
    is_eu_warehouse: bool = True
    main_image_url: Optional[str] = None
    category: Optional[str] = None

    def to_source_product(self) -> SourceProductInput:
        return SourceProductInput(
            aliexpress_product_id=self.aliexpress_product_id,
            aliexpress_url=self.aliexpress_url,
            title=self.title,
            price=self.price,
            original_price=self.original_price,
            currency=self.currency,
            ships_from=self.ships_from,
            ships_from_display=self.ships_from_display,
            is_eu_warehouse=self.is_eu_warehouse,
            main_image_url=self.main_image_url,
            image_urls=[self.main_image_url] if self.main_image_url else [],
            category=self.category,
            search_query=self.search_query,
            status="pending",
        )


@dataclass(slots=True)
class ScrapeSummary:
    success: bool
    products_found: int
    duplicates_skipped: int
    duration_ms: int
    products_saved: int = 0
    errors: List[str] = field(default_factory=list)


def build_search_url(query: str, country: str, page: int = 1) -> str:
    params: Dict[str, Any] = {"SearchText": query, "shipFromCountry": country}
    # The first page loads more reliably without an explicit page parameter.
    if page > 1:
        params["page"] = page
    return f"{SEARCH_URL}?{urlencode(params)}"


def extract_product_id(url: str) -> Optional[str]:
    match = _PRODUCT_ID.search(url)
    return match.group(1) if match else None


def is_captcha_page(title: str, url: str) -> bool:
    lowered = title.lower()
    return any(marker in lowered for marker in CAPTCHA_TITLE_MARKERS) or any(
        marker in url for marker in CAPTCHA_URL_MARKERS
    )


def parse_price(text: str) -> float:
    """Parse a storefront price, treating the first comma as the decimal mark."""
    match = _LEADING_FLOAT.match(text.strip().replace(",", ".", 1))
    return float(match.group(0)) if match else 0.0


def _absolute_url(href: str) -> str:
    if href.startswith("//"):
        return f"https:{href}"
    if not href.startswith("http"):
        return f"https://www.aliexpress.com{href}"
    return href


def _find_card(link: Tag) -> Tag:
    card = link
    for _ in range(10):
        classes = " ".join(card.get("class") or [])
        if any(marker in classes for marker in _CARD_MARKERS):
            break
        parent = card.parent
        if not isinstance(parent, Tag) or parent.name == "[document]":
            break
        card = parent
    return card


def _extract_title(card: Tag, link: Tag) -> str:
    for selector in _TITLE_SELECTORS:
        for scope in (card, link):
            element = scope.select_one(selector)
            text = element.get_text(strip=True) if element else ""
            if len(text) > 5:
                return text
    image = card.find("img")
    alt = image.get("alt") if isinstance(image, Tag) else None
    return alt or link.get_text(strip=True)[:100]


def _extract_price(card_text: str) -> float:
    match = _EUR_PRICE.search(card_text)
    if match:
        return parse_price(next((group for group in match.groups() if group), "0"))
    fallback = _ANY_PRICE.search(card_text)
    return parse_price(fallback.group(0)) if fallback else 0.0


def _extract_original_price(card: Tag) -> Optional[float]:
    element = card.select_one(_ORIGINAL_PRICE_SELECTOR)
    if element is None:
        return None
    match = _NUMBER.search(element.get_text())
    return parse_price(match.group(0)) if match else None


def _extract_image(card: Tag) -> Optional[str]:
    image = card.find("img")
    if not isinstance(image, Tag):
        return None
    src = image.get("src") or image.get("data-src")
    if src and "data:image" in src:
        src = image.get("data-src")
    return src or None


def parse_product_cards_html(
    html: str, search_query: str, category: Optional[str] = None
) -> List[ScrapedProduct]:
    """Extract product cards from a rendered search results page."""
    soup = BeautifulSoup(html, "html.parser")
    products: List[ScrapedProduct] = []
    seen: set[str] = set()

    for link in soup.select(_ITEM_LINK):
        href = link.get("href") or ""
        if ".html" not in href:
            continue
        product_id = extract_product_id(href)
        if not product_id or product_id in seen:
            continue
        seen.add(product_id)

        card = _find_card(link)
        title = _extract_title(card, link)
        if len(title) < 5:
            continue

        card_text = card.get_text(" ", strip=True)
        ships_match = _SHIPS_FROM.search(card_text)
        ships_from = ships_match.group(1).strip() if ships_match else None

        products.append(
            ScrapedProduct(
                aliexpress_product_id=product_id,
                aliexpress_url=_absolute_url(href),
                title=title,
                price=_extract_price(card_text),
                original_price=_extract_original_price(card),
                ships_from=ships_from or "EU",
                ships_from_display=ships_from,
                main_image_url=_extract_image(card),
                search_query=search_query,
                category=category,
            )
        )
    return products


def filter_by_price(
    products: Sequence[ScrapedProduct],
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> List[ScrapedProduct]:
    return [
        product
        for product in products
        if (min_price is None or product.price >= min_price)
        and (max_price is None or product.price <= max_price)
    ]


def tag_country(products: Sequence[ScrapedProduct], country: str) -> None:
    display = COUNTRY_NAMES.get(country, country)
    for product in products:
        product.ships_from = country
        product.ships_from_display = f"Ships from {display}"


def dedupe_products(products: Sequence[ScrapedProduct]) -> List[ScrapedProduct]:
    """Keep the first product seen for each AliExpress id."""
    unique: Dict[str, ScrapedProduct] = {}
    for product in products:
        unique.setdefault(product.aliexpress_product_id, product)
    return list(unique.values())


async def page_shows_captcha(page: Page) -> bool:
    try:
        title = await page.title()
    except PlaywrightError:
        # A navigation is in flight, which usually means the challenge was cleared.
        return False
    return is_captcha_page(title, page.url)


async def wait_for_captcha_solve(
    page: Page,
    *,
    max_wait: float = 120.0,
    interval: float = 3.0,
    sleep: Sleep = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Block until a human clears the CAPTCHA in the browser window."""
    logger.warning(
        "CAPTCHA detected; solve it in the browser window (waiting up to %.0fs)", max_wait
    )
    started = clock()
    while clock() - started < max_wait:
        await sleep(interval)
        if not await page_shows_captcha(page):
            logger.info("CAPTCHA solved, continuing")
            await sleep(interval)
            return True
        logger.debug("Still waiting for CAPTCHA (%.0fs elapsed)", clock() - started)
    logger.error("CAPTCHA not solved within %.0fs", max_wait)
    return False


async def wait_for_products(
    page: Page,
    *,
    max_wait: float = 30.0,
    sleep: Sleep = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Scroll until product cards render or the wait ceiling passes."""
    started = clock()
    await page.evaluate("window.scrollTo(0, 500)")
    await sleep(1.0)

    while clock() - started < max_wait:
        for selector in PRODUCT_SELECTORS:
            if await page.query_selector(selector) is not None:
                logger.debug("Products rendered (selector %s)", selector)
                await sleep(2.0)
                await page.evaluate("window.scrollTo(0, 1000)")
                await sleep(1.0)
                return True

        link_count = await page.eval_on_selector_all(_ITEM_LINK, "els => els.length")
        if link_count > 3:
            logger.debug("Found %s product links", link_count)
            await sleep(2.0)
            return True

        await page.evaluate("window.scrollBy(0, 300)")
        await sleep(2.0)

    logger.warning("Timed out waiting for products")
    return False


async def _block_heavy_resources(route: Route) -> None:
    if route.request.resource_type in ("font", "media"):
        await route.abort()
    else:
        await route.continue_()


@asynccontextmanager
async def open_stealth_page(
    *,
    headless: bool = True,
    proxy: Optional[Dict[str, str]] = None,
    user_agent: Optional[str] = None,
) -> AsyncIterator[Page]:
    """Launch Chromium with automation fingerprints suppressed and EU locale cookies set."""
    args = list(STEALTH_ARGS)
    launch_kwargs: Dict[str, Any] = {"headless": headless}
    if proxy:
        args += ["--ignore-certificate-errors", "--ignore-certificate-errors-spki-list"]
        launch_kwargs["proxy"] = proxy
    launch_kwargs["args"] = args

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(**launch_kwargs)
        try:
            context = await browser.new_context(
                user_agent=user_agent or random.choice(USER_AGENTS),
                viewport={"width": 1920, "height": 1080},
                extra_http_headers=EXTRA_HEADERS,
                ignore_https_errors=bool(proxy),
            )
            await context.add_cookies(LOCALE_COOKIES)
            if not proxy:
                await context.route("**/*", _block_heavy_resources)
            yield await context.new_page()
        finally:
            await browser.close()


class EUScraper:
    """Scrape search results for each EU warehouse country and merge them."""

    def __init__(
        self,
        settings: ScraperSettings,
        *,
        scraper_api: Optional[ScraperAPIClient] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        debug_dir: Path = Path("."),
    ) -> None:
        self._settings = settings
        self._scraper_api = scraper_api
        self._sleep = sleep
        self._clock = clock
        self._rng = rng or random.Random()
        self._debug_dir = debug_dir

    async def _random_delay(self, low: float, high: float) -> None:
        await self._sleep(self._rng.uniform(low, high))

    def _finish_page(
        self, products: List[ScrapedProduct], country: str, options: ScrapeOptions
    ) -> List[ScrapedProduct]:
        kept = filter_by_price(products, options.min_price, options.max_price)
        tag_country(kept, country)
        logger.info("  Found %s products", len(kept))
        return kept

    async def scrape_country_via_api(
        self, country: str, options: ScrapeOptions
    ) -> List[ScrapedProduct]:
        if self._scraper_api is None:
            raise ScraperError("ScraperAPI is not configured")
        collected: List[ScrapedProduct] = []
        logger.info("Scraping %s (%s) via ScraperAPI", COUNTRY_NAMES.get(country, country), country)

        for page_number in range(1, options.max_pages + 1):
            url = build_search_url(options.search_query, country, page_number)
            logger.info("  Page %s/%s: %s", page_number, options.max_pages, url)
            try:
                html = await self._scraper_api.fetch_html(url)
            except ScraperError as exc:
                logger.error("  Error on page %s: %s", page_number, exc)
                await self._random_delay(3.0, 5.0)
                continue

            if options.debug:
                path = self._debug_dir / f"debug-{country}-page{page_number}.html"
                path.write_text(html, encoding="utf-8")
                logger.info("  HTML saved: %s", path)

            products = parse_product_cards_html(html, options.search_query, options.category)
            collected.extend(self._finish_page(products, country, options))
            if not products:
                logger.info("  No products found, stopping pagination")
                break
            if page_number < options.max_pages:
                await self._random_delay(2.0, 4.0)
        return collected

    async def _open_search(self, page: Page, url: str) -> None:
        await page.goto(url, wait_until="domcontentloaded", timeout=90_000)
        if not await page_shows_captcha(page):
            return
        solved = await wait_for_captcha_solve(
            page,
            max_wait=self._settings.captcha_timeout_seconds,
            interval=self._settings.captcha_poll_seconds,
            sleep=self._sleep,
            clock=self._clock,
        )
        if not solved:
            raise CaptchaTimeoutError(f"CAPTCHA not solved for {url}")
        # Solving often lands on the home page instead of the results.
        if "wholesale" not in page.url and "SearchText" not in page.url:
            logger.info("  Re-navigating to search results")
            await page.goto(url, wait_until="domcontentloaded", timeout=90_000)

    async def scrape_country_in_browser(
        self, page: Page, country: str, options: ScrapeOptions
    ) -> List[ScrapedProduct]:
        collected: List[ScrapedProduct] = []
        logger.info("Scraping %s (%s)", COUNTRY_NAMES.get(country, country), country)

        for page_number in range(1, options.max_pages + 1):
            url = build_search_url(options.search_query, country, page_number)
            logger.info("  Page %s/%s: %s", page_number, options.max_pages, url)
            try:
                await self._open_search(page, url)
            except CaptchaTimeoutError:
                logger.warning("  Skipping %s due to unsolved CAPTCHA", country)
                break
            except PlaywrightError as exc:
                logger.error("  Error on page %s: %s", page_number, exc)
                await self._random_delay(5.0, 10.0)
                continue

            try:
                if not await wait_for_products(page, sleep=self._sleep, clock=self._clock):
                    await page.evaluate("window.scrollTo(0, document.body.scrollHeight / 2)")
                    await self._sleep(3.0)
                if options.debug:
                    path = self._debug_dir / f"debug-{country}-page{page_number}.png"
                    await page.screenshot(path=str(path), full_page=True)
                    logger.info("  Screenshot saved: %s", path)
                html = await page.content()
                has_next = await page.query_selector('[class*="next"]:not([disabled])') is not None
            except PlaywrightError as exc:
                logger.error("  Error on page %s: %s", page_number, exc)
                await self._random_delay(5.0, 10.0)
                continue

            products = parse_product_cards_html(html, options.search_query, options.category)
            collected.extend(self._finish_page(products, country, options))
            if not has_next or not products:
                logger.info("  No more pages available")
                break
            await self._random_delay(3.0, 6.0)
        return collected

    async def _scrape_with_browser(
        self, options: ScrapeOptions, errors: List[str]
    ) -> List[ScrapedProduct]:
        proxy = None
        if options.use_proxy and self._scraper_api is not None:
            proxy = {"server": self._scraper_api.proxy_server, **self._scraper_api.proxy_credentials()}
            logger.info("Routing the browser through the ScraperAPI proxy")

        collected: List[ScrapedProduct] = []
        try:
            async with open_stealth_page(
                headless=options.headless,
                proxy=proxy,
                user_agent=self._rng.choice(USER_AGENTS),
            ) as page:
                for country in options.countries:
                    try:
                        collected.extend(await self.scrape_country_in_browser(page, country, options))
                    except PlaywrightError as exc:
                        message = f"Error scraping {country}: {exc}"
                        logger.error(message)
                        errors.append(message)
                    await self._random_delay(10.0, 20.0)
        except PlaywrightError as exc:
            message = f"Browser error: {exc}"
            logger.error(message)
            errors.append(message)
        return collected

    async def _scrape_with_api(
        self, options: ScrapeOptions, errors: List[str]
    ) -> List[ScrapedProduct]:
        collected: List[ScrapedProduct] = []
        countries = list(options.countries)
        for index, country in enumerate(countries):
            try:
                collected.extend(await self.scrape_country_via_api(country, options))
            except ScraperError as exc:
                message = f"Error scraping {country}: {exc}"
                logger.error(message)
                errors.append(message)
            if index < len(countries) - 1:
                await self._random_delay(5.0, 10.0)
        return collected

    async def scrape_eu(
        self, options: ScrapeOptions
    ) -> tuple[List[ScrapedProduct], ScrapeSummary]:
        started = self._clock()
        errors: List[str] = []
        logger.info(
            "Starting EU scrape for %r across %s (max %s pages each)",
            options.search_query,
            ", ".join(options.countries),
            options.max_pages,
        )

        if options.use_scraper_api and self._scraper_api is None:
            logger.warning("ScraperAPI requested but SCRAPER_API_KEY is not set; using the browser")
        if options.use_scraper_api and self._scraper_api is not None:
            found = await self._scrape_with_api(options, errors)
        else:
            found = await self._scrape_with_browser(options, errors)

        products = dedupe_products(found)
        summary = ScrapeSummary(
            success=not errors,
            products_found=len(products),
            duplicates_skipped=len(found) - len(products),
            duration_ms=int((self._clock() - started) * 1000),
            errors=errors,
        )
        logger.info(
            "Scrape complete: %s total, %s unique, %s duplicates",
            len(found),
            len(products),
            summary.duplicates_skipped,
        )
        return products, summary


def save_scraped_products(
    store: TranslationStore, products: Sequence[ScrapedProduct], summary: ScrapeSummary
) -> int:
    """Upsert scraped products as pending source products and record the count."""
    saved, errors = store.upsert_source_products(
        [product.to_source_product() for product in products]
    )
    summary.products_saved = saved
    summary.errors.extend(errors)
    if errors:
        summary.success = False
        logger.warning("%s products failed to save", len(errors))
    return saved


__all__ = [
    "COUNTRY_NAMES",
    "CaptchaTimeoutError",
    "EUScraper",
    "EU_WAREHOUSE_COUNTRIES",
    "ScrapeOptions",
    "ScrapeSummary",
    "ScrapedProduct",
    "build_search_url",
    "dedupe_products",
    "extract_product_id",
    "filter_by_price",
    "is_captcha_page",
    "open_stealth_page",
    "parse_price",
    "parse_product_cards_html",
    "save_scraped_products",
    "tag_country",
    "wait_for_captcha_solve",
    "wait_for_products",
]
