"""Poshmark adapter: intercepted API responses with a page-scraping fallback.

Poshmark has no stable public API. The search page loads its results from an
internal ``/vm-rest/`` endpoint, so the adapter listens for that response
while the page loads. When nothing is observed within a short grace window
the listing cards rendered on the page are parsed instead. Both strategies
produce the same Listing shape; the first one that yields data wins and the
second never runs. No authentication is required for public search.
"""

import asyncio
import logging
import re
from typing import Any
from urllib.parse import urlencode, urljoin

from bs4 import BeautifulSoup
from playwright.async_api import Page, Response
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..errors import ExtractionFailure
from ..models import Listing, ListingDetail, Outcome, Query
from ..services.browser_session import BrowserSessionManager
from .base import (
    ITEM_PARSE_ERRORS,
    BaseAdapter,
    humanize_slug,
    json_ld_images,
    json_ld_seller,
    parse_json_ld,
    parse_price,
    to_decimal,
)

logger = logging.getLogger(__name__)

POSHMARK_BASE = "https://poshmark.com"
SEARCH_URL = f"{POSHMARK_BASE}/search"
LISTING_URL = f"{POSHMARK_BASE}/listing/"

VM_REST_PATTERN = "/vm-rest/"
CARD_SELECTOR = ".card"

CONDITION_MAP = {
    "new": "nwt",
    "like_new": "nwot",
    "good": "good",
    "fair": "fair",
}

SORT_MAP = {
    "relevance": "relevance",
    "newest": "added_desc",
    "price_low_to_high": "price_asc",
    "price_high_to_low": "price_desc",
    "most_popular": "like_count",
}

SIZE_MAP = {
    "xxs": "XXS",
    "xs": "XS",
    "s": "S",
    "small": "S",
    "m": "M",
    "medium": "M",
    "l": "L",
    "large": "L",
    "xl": "XL",
    "xxl": "XXL",
    "os": "OS",
    "one size": "OS",
}

COLOR_MAP = {
    "black": "Black",
    "blue": "Blue",
    "brown": "Brown",
    "cream": "Cream",
    "gold": "Gold",
    "gray": "Gray",
    "grey": "Gray",
    "green": "Green",
    "orange": "Orange",
    "pink": "Pink",
    "purple": "Purple",
    "red": "Red",
    "silver": "Silver",
    "tan": "Tan",
    "white": "White",
    "yellow": "Yellow",
}

HEX_ID_RE = re.compile(r"^[a-f0-9]{24}$", re.I)
NUMERIC_SIZE_RE = re.compile(r"^\d+(?:\.\d+)?$")


def map_size(size: str) -> str | None:
    """Map a size filter to Poshmark's vocabulary; numeric sizes pass through."""
    value = size.strip()
    if NUMERIC_SIZE_RE.match(value):
        return value
    return SIZE_MAP.get(value.lower())


def build_search_url(query: Query) -> str:
    """Build the Poshmark search page URL with every filter mapped.

    Unknown sort, condition, size and color values are dropped.

    Args:
        query: Search request.

    Returns:
        Fully encoded search URL.
    """
    params: list[tuple[str, str]] = [
        ("query", query.text),
        ("type", "listings"),
        ("src", "dir"),
    ]

    if query.sort and query.sort in SORT_MAP:
        params.append(("sort_by", SORT_MAP[query.sort]))

    if query.condition and query.condition != "any":
        posh_condition = CONDITION_MAP.get(query.condition)
        if posh_condition:
            params.append(("condition", posh_condition))

    if query.price_min is not None or query.price_max is not None:
        low = query.price_min if query.price_min is not None else 0
        high = query.price_max if query.price_max is not None else ""
        params.append(("price[]", f"{low}-{high}"))

    for size in query.sizes:
        mapped = map_size(size)
        if mapped:
            params.append(("size[]", mapped))

    for color in query.colors:
        mapped = COLOR_MAP.get(color.strip().lower())
        if mapped:
            params.append(("color[]", mapped))

    return f"{SEARCH_URL}?{urlencode(params)}"


def humanize_poshmark_slug(slug: str) -> str:
    """Title from a listing slug, without the trailing 24-char hex id."""
    parts = slug.split("-")
    if len(parts) > 1 and HEX_ID_RE.match(parts[-1]):
        parts.pop()
    return humanize_slug("-".join(parts))


def slug_from_href(href: str) -> str:
    return re.sub(r"^.*/listing/", "", href).strip("/")


class ApiResponseCapture:
    """Passive response observer keeping the first matching API payload.

    Attach with ``page.on("response", capture)`` before navigating.
    """

    def __init__(self, path_fragment: str = VM_REST_PATTERN):
        self.path_fragment = path_fragment
        self.payload: Any = None
        self.captured = asyncio.Event()

    def matches(self, response: Response) -> bool:
        if self.path_fragment not in response.url or response.status != 200:
            return False
        content_type = response.headers.get("content-type", "")
        return "application/json" in content_type

    async def __call__(self, response: Response) -> None:
        if self.captured.is_set() or not self.matches(response):
            return
        try:
            payload = await response.json()
        except Exception as e:
            logger.debug(f"Ignoring unreadable response from {response.url}: {e}")
            return
        if not self.captured.is_set():
            self.payload = payload
            self.captured.set()

    async def wait(self, timeout: float) -> bool:
        if self.captured.is_set():
            return True
        try:
            await asyncio.wait_for(self.captured.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True


def parse_cards(html: str) -> list[dict[str, str]]:
    """Extract raw listing card fields from a rendered search page.

    Args:
        html: Page HTML.

    Returns:
        One dict per card with href, title, price, image, brand and size.
    """
    soup = BeautifulSoup(html, "lxml")
    cards: list[dict[str, str]] = []
    for card in soup.select(CARD_SELECTOR):
        covershot = card.select_one("a.tile__covershot")
        if covershot is None:
            continue
        href = covershot.get("href") or ""
        if "/listing/" not in href:
            continue

        img = covershot.find("img")
        title_el = card.select_one("a.tile__title")
        price_el = card.select_one(".fw--bold")
        brand_el = card.select_one(".tile__details__pipe__brand")
        size_el = card.select_one(".tile__details__pipe__size")

        cards.append({
            "href": href,
            "title": title_el.get_text(strip=True) if title_el else (img.get("alt", "") if img else ""),
            "price": price_el.get_text(strip=True) if price_el else "",
            "image": img.get("src", "") if img else "",
            "brand": brand_el.get_text(strip=True) if brand_el else "",
            "size": size_el.get_text(strip=True) if size_el else "",
        })
    return cards


class PoshmarkAdapter(BaseAdapter):
    """Poshmark adapter implementing the adapter protocol."""

    name = "poshmark"
    display_name = "Poshmark"
    requires_auth = False
    default_limit = 48

    def __init__(
        self,
        browser: BrowserSessionManager,
        timeout_seconds: float = 45.0,
        default_limit: int | None = None,
        navigation_timeout_ms: int = 30000,
        grace_seconds: float = 2.0,
        card_timeout_ms: int = 10000,
    ):
        """Initialize Poshmark adapter.

        Args:
            browser: Shared browser session manager.
            timeout_seconds: Per-search deadline.
            default_limit: Result limit when the query has none.
            navigation_timeout_ms: Timeout for each page navigation.
            grace_seconds: Extra wait for a late API response after load.
            card_timeout_ms: How long the fallback waits for listing cards.
        """
        super().__init__(timeout_seconds=timeout_seconds, default_limit=default_limit)
        self.browser = browser
        self.navigation_timeout_ms = navigation_timeout_ms
        self.grace_seconds = grace_seconds
        self.card_timeout_ms = card_timeout_ms

    async def _search(self, query: Query) -> Outcome:
        limit = self.effective_limit(query)
        search_url = build_search_url(query)

        async with self.browser.page() as page:
            capture = ApiResponseCapture()
            page.on("response", capture)

            await page.goto(
                search_url, wait_until="networkidle", timeout=self.navigation_timeout_ms
            )
            await capture.wait(self.grace_seconds)

            for strategy in (self._from_intercepted, self._from_page):
                outcome = await strategy(page, capture, limit)
                if outcome is not None:
                    return outcome

        raise ExtractionFailure("no extraction strategy produced results")

    async def _from_intercepted(
        self, page: Page, capture: ApiResponseCapture, limit: int
    ) -> Outcome | None:
        payload = capture.payload
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            self.logger.info("No Poshmark API payload intercepted, falling back to page extraction")
            return None

        listings = self.parse_api_items(payload["data"], limit)
        total = payload.get("total_count")
        return Outcome.ok(self.name, listings, total_found=total if isinstance(total, int) else None)

    async def _from_page(
        self, page: Page, capture: ApiResponseCapture, limit: int
    ) -> Outcome | None:
        try:
            await page.wait_for_selector(CARD_SELECTOR, timeout=self.card_timeout_ms)
        except PlaywrightTimeoutError as e:
            raise ExtractionFailure("listing cards did not render") from e

        html = await page.content()
        listings = self.parse_card_listings(parse_cards(html), limit)
        if not listings:
            self.logger.warning("Poshmark cards rendered but none could be parsed")
            return None
        return Outcome.ok(self.name, listings)

    def parse_api_items(self, items: list[Any], limit: int) -> list[Listing]:
        """Parse intercepted ``vm-rest`` items into listings.

        Args:
            items: Raw ``data`` entries.
            limit: Maximum number of listings to return.

        Returns:
            Parsed listings in API order.
        """
        listings: list[Listing] = []
        for item in items:
            if len(listings) >= limit:
                break
            try:
                listing = self._parse_api_item(item)
            except ITEM_PARSE_ERRORS as e:
                self.logger.debug(f"Skipping malformed Poshmark item: {e}")
                continue
            if listing is not None:
                listings.append(listing)
        return listings

    def _parse_api_item(self, item: dict[str, Any]) -> Listing | None:
        listing_id = item.get("id") or item.get("post_id")
        if not listing_id:
            return None

        amount = (
            (item.get("price_amount") or {}).get("val")
            or (item.get("original_price_amount") or {}).get("val")
            or item.get("price")
        )
        price_text = f"${amount}" if amount is not None else "Price not listed"

        images: list[str] = []
        if item.get("picture_url"):
            images.append(item["picture_url"])
        for picture in item.get("pictures") or []:
            url = picture if isinstance(picture, str) else (picture or {}).get("url")
            if url and url not in images:
                images.append(url)

        return Listing(
            id=str(listing_id),
            title=item.get("title") or "Untitled Listing",
            price=price_text,
            price_numeric=to_decimal(amount),
            currency="$",
            url=f"{LISTING_URL}{item.get('title_slug') or listing_id}",
            images=images,
            seller=item.get("creator_username"),
            condition=item.get("condition"),
            marketplace=self.name,
        )

    def parse_card_listings(self, cards: list[dict[str, str]], limit: int) -> list[Listing]:
        """Turn raw card fields into listings, synthesizing missing titles.

        Args:
            cards: Output of :func:`parse_cards`.
            limit: Maximum number of listings to return.

        Returns:
            Parsed listings in page order.
        """
        listings: list[Listing] = []
        for card in cards:
            if len(listings) >= limit:
                break
            slug = slug_from_href(card["href"])
            if not slug:
                continue

            title = card.get("title")
            if not title and card.get("brand"):
                title = " - ".join(part for part in (card["brand"], card.get("size")) if part)
            if not title:
                title = humanize_poshmark_slug(slug)

            parsed = parse_price(card.get("price"))
            href = card["href"]
            listings.append(Listing(
                id=slug,
                title=title,
                price=card.get("price") or "Price not listed",
                price_numeric=parsed.numeric if parsed else None,
                currency=parsed.currency if parsed else "$",
                url=urljoin(POSHMARK_BASE, href),
                images=[card["image"]] if card.get("image") else [],
                marketplace=self.name,
            ))
        return listings

    async def get_listing_details(self, listing_id: str) -> ListingDetail:
        """Fetch details for one listing page.

        Structured JSON-LD product data is preferred; description, images and
        seller fall back to the rendered page when the structured data omits
        them.

        Args:
            listing_id: Listing slug or id.

        Returns:
            ListingDetail for the item.
        """
        url = f"{LISTING_URL}{listing_id}"
        async with self.browser.page() as page:
            await page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
            html = await page.content()

        soup = BeautifulSoup(html, "lxml")
        json_ld = parse_json_ld(soup)
        page_data = extract_detail_fields(soup)

        images = json_ld_images(json_ld) or page_data["images"]
        return ListingDetail(
            id=listing_id,
            marketplace=self.name,
            url=url,
            title=(json_ld or {}).get("name"),
            description=(json_ld or {}).get("description") or page_data["description"],
            images=images,
            seller=json_ld_seller(json_ld) or page_data["seller"],
            # Poshmark always ships; local pickup does not exist.
            shipping_offered=True,
        )

    async def health_check(self) -> bool:
        outcome = await self.search(Query(text="test", limit=1))
        return outcome.success


def extract_detail_fields(soup: BeautifulSoup) -> dict[str, Any]:
    """Read description, images and seller from a rendered listing page."""
    desc_el = soup.select_one('[data-test="listing-description"]') or soup.select_one(
        ".listing__description"
    )

    images: list[str] = []
    for img in soup.select('[data-test="listing-image"] img, .listing__slideshow img, .slideshow img'):
        src = img.get("src")
        if src and "placeholder" not in src and src not in images:
            images.append(src)

    seller_el = (
        soup.select_one('[data-test="listing-seller-name"]')
        or soup.select_one(".listing__seller-name")
        or soup.select_one(".closet-header__name a")
    )

    return {
        "description": desc_el.get_text(strip=True) if desc_el else None,
        "images": images,
        "seller": seller_el.get_text(strip=True) if seller_el else None,
    }

