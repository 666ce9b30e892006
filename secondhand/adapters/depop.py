"""Depop adapter calling the web API from inside a real browser page.

Depop sits behind Cloudflare TLS fingerprinting, so plain HTTP clients are
rejected. The adapter first loads the Depop front page to obtain clearance
cookies, then calls the internal search API with the page's own ``fetch`` so
the request inherits that trust. The JSON comes back directly; no DOM
scraping is needed for search. No Depop account is required.
"""

import re
from typing import Any
from urllib.parse import urlencode

from bs4 import BeautifulSoup
from playwright.async_api import Page

from ..errors import SchemaDrift, UpstreamUnavailable
from ..models import Listing, ListingDetail, Outcome, Query
from ..services.browser_session import BrowserSessionManager
from .base import (
    ITEM_PARSE_ERRORS,
    BaseAdapter,
    json_ld_images,
    json_ld_seller,
    parse_json_ld,
    to_decimal,
)

DEPOP_HOME = "https://www.depop.com/"
SEARCH_API = "https://webapi.depop.com/api/v2/search/products/"
EXTENDED_API = "https://webapi.depop.com/api/v1/product/by-slug/"
PRODUCT_URL = "https://www.depop.com/products/"

CONDITION_MAP = {
    "new": "brand_new",
    "like_new": "used_like_new",
    "excellent": "used_excellent",
    "good": "used_good",
    "fair": "used_fair",
}

SORT_MAP = {
    "relevance": "relevance",
    "newest": "newestFirst",
    "price_low_to_high": "priceAscending",
    "price_high_to_low": "priceDescending",
    "most_popular": "mostPopular",
}

CURRENCY_SYMBOLS = {"GBP": "£", "EUR": "€"}

SELLER_META_RE = re.compile(r"Sold by @([\w.]+)")

# Runs inside the page; returns {error, data} instead of throwing.
FETCH_JSON_JS = """
async (url) => {
    try {
        const res = await fetch(url, { headers: { accept: 'application/json' } });
        if (!res.ok) return { error: `HTTP ${res.status}`, data: null };
        return { error: null, data: await res.json() };
    } catch (e) {
        return { error: e.message || String(e), data: null };
    }
}
"""


def build_search_url(query: Query, limit: int) -> str:
    """Build the Depop search API URL for a query.

    Args:
        query: Search request.
        limit: Number of items to request.

    Returns:
        Fully encoded API URL.
    """
    params: list[tuple[str, str]] = [
        ("what", query.text),
        ("itemsPerPage", str(limit)),
        ("country", "us"),
        ("currency", "USD"),
        ("sort", SORT_MAP.get(query.sort or "relevance", "relevance")),
    ]
    if query.price_min is not None:
        params.append(("priceMin", str(query.price_min)))
    if query.price_max is not None:
        params.append(("priceMax", str(query.price_max)))
    if query.condition and query.condition != "any":
        depop_condition = CONDITION_MAP.get(query.condition)
        if depop_condition:
            params.append(("conditions", depop_condition))
    if query.category:
        params.append(("groups", query.category))
    params.extend(("sizes", size) for size in query.sizes)
    params.extend(("colours", color) for color in query.colors)

    return f"{SEARCH_API}?{urlencode(params)}"


def humanize_depop_slug(slug: str) -> str:
    """Derive a display title from a product slug.

    Depop slugs look like ``<username>-<words...>-<suffix>``; the username
    and the random suffix are dropped.
    """
    parts = [part for part in slug.split("-") if part]
    if len(parts) <= 2:
        return " ".join(parts)
    return " ".join(word.capitalize() for word in parts[1:-1])


def seller_from_meta(soup: BeautifulSoup) -> str | None:
    """Recover the seller handle from the ``Sold by @user`` meta description."""
    meta = soup.find("meta", attrs={"name": "description"})
    content = meta.get("content", "") if meta else ""
    match = SELLER_META_RE.search(content or "")
    return match.group(1) if match else None


class DepopAdapter(BaseAdapter):
    """Depop adapter implementing the adapter protocol."""

    name = "depop"
    display_name = "Depop"
    requires_auth = False
    default_limit = 24

    def __init__(
        self,
        browser: BrowserSessionManager,
        timeout_seconds: float = 45.0,
        default_limit: int | None = None,
        navigation_timeout_ms: int = 30000,
    ):
        """Initialize Depop adapter.

        Args:
            browser: Shared browser session manager.
            timeout_seconds: Per-search deadline.
            default_limit: Result limit when the query has none.
            navigation_timeout_ms: Timeout for each page navigation.
        """
        super().__init__(timeout_seconds=timeout_seconds, default_limit=default_limit)
        self.browser = browser
        self.navigation_timeout_ms = navigation_timeout_ms

    async def _search(self, query: Query) -> Outcome:
        limit = self.effective_limit(query)
        api_url = build_search_url(query, limit)

        async with self.browser.page() as page:
            # Establish Cloudflare clearance before calling the API.
            await page.goto(
                DEPOP_HOME, wait_until="networkidle", timeout=self.navigation_timeout_ms
            )
            result = await page.evaluate(FETCH_JSON_JS, api_url)

        data = self._unwrap(result)
        products = data.get("products")
        if not isinstance(products, list):
            raise SchemaDrift("Depop search response has no products list")

        listings = self.parse_products(products, limit)
        total = _meta_count(data)
        return Outcome.ok(self.name, listings, total_found=total)

    def _unwrap(self, result: Any) -> dict[str, Any]:
        if not isinstance(result, dict):
            raise SchemaDrift("Depop in-page fetch returned an unexpected value")
        if result.get("error") or result.get("data") is None:
            raise UpstreamUnavailable(f"Depop API error: {result.get('error')}")
        data = result["data"]
        if not isinstance(data, dict):
            raise SchemaDrift("Depop search response is not a JSON object")
        return data

    def parse_products(self, products: list[Any], limit: int) -> list[Listing]:
        """Parse search API products into listings, skipping broken ones.

        Args:
            products: Raw ``products`` entries.
            limit: Maximum number of listings to return.

        Returns:
            Parsed listings in API order.
        """
        listings: list[Listing] = []
        for product in products:
            if len(listings) >= limit:
                break
            try:
                listing = self._parse_product(product)
            except ITEM_PARSE_ERRORS as e:
                self.logger.debug(f"Skipping malformed Depop product: {e}")
                continue
            if listing is not None:
                listings.append(listing)
        return listings

    def _parse_product(self, product: dict[str, Any]) -> Listing | None:
        slug = product.get("slug")
        if not slug:
            return None

        price = product.get("price") or {}
        amount = price.get("priceAmount")
        symbol = CURRENCY_SYMBOLS.get(price.get("currencyName"), "$")
        price_text = f"{symbol}{amount}" if amount is not None else "Price not listed"

        images: list[str] = []
        preview = product.get("preview")
        if isinstance(preview, dict):
            image_url = preview.get("480") or preview.get("320") or preview.get("640")
            if image_url:
                images.append(image_url)

        return Listing(
            id=slug,
            title=humanize_depop_slug(slug),
            price=price_text,
            price_numeric=to_decimal(amount),
            currency=symbol,
            url=f"{PRODUCT_URL}{slug}",
            images=images,
            seller=_extended_seller(product),
            condition=product.get("condition"),
            marketplace=self.name,
        )

    async def get_listing_details(self, listing_id: str) -> ListingDetail:
        """Fetch details for one product from its page and the extended API.

        Args:
            listing_id: Product slug.

        Returns:
            ListingDetail with description, images, seller and shipping.
        """
        product_url = f"{PRODUCT_URL}{listing_id}"
        async with self.browser.page() as page:
            await page.goto(
                f"{product_url}/", wait_until="networkidle", timeout=self.navigation_timeout_ms
            )
            html = await page.content()
            extended = await self._fetch_extended(page, listing_id)

        soup = BeautifulSoup(html, "lxml")
        json_ld = parse_json_ld(soup)

        seller = _extended_seller(extended) or json_ld_seller(json_ld) or seller_from_meta(soup)

        shipping_offered = None
        if extended is not None:
            pricing = extended.get("pricing")
            if not isinstance(pricing, dict):
                pricing = {}
            shipping_offered = (
                pricing.get("national_shipping_cost") is not None
                or extended.get("has_free_shipping") is True
            )

        return ListingDetail(
            id=listing_id,
            marketplace=self.name,
            url=product_url,
            title=json_ld.get("name") if json_ld else None,
            description=(json_ld or {}).get("description") or (extended or {}).get("description"),
            images=json_ld_images(json_ld),
            seller=seller,
            shipping_offered=shipping_offered,
        )

    async def _fetch_extended(self, page: Page, slug: str) -> dict[str, Any] | None:
        url = f"{EXTENDED_API}{slug}/extended/?lang=en&force_fee_calculation=true"
        result = await page.evaluate(FETCH_JSON_JS, url)
        if not isinstance(result, dict) or result.get("error"):
            self.logger.warning(f"Depop extended lookup failed for {slug}: {result}")
            return None
        data = result.get("data")
        return data if isinstance(data, dict) else None

    async def health_check(self) -> bool:
        outcome = await self.search(Query(text="test", limit=1))
        return outcome.success


def _meta_count(data: dict[str, Any]) -> int | None:
    meta = data.get("meta")
    count = meta.get("resultCount") if isinstance(meta, dict) else None
    return count if isinstance(count, int) else None


def _extended_seller(extended: dict[str, Any] | None) -> str | None:
    if not extended:
        return None
    seller = extended.get("seller")
    if isinstance(seller, dict):
        return seller.get("username")
    return None
