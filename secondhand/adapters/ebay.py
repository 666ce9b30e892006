"""eBay adapter backed by the official Browse API.

Authenticates with an OAuth client-credentials token that is cached and
refreshed shortly before expiry, translates the query into Browse API filter
syntax and parses item summaries one at a time, skipping malformed items.

Docs: https://developer.ebay.com/api-docs/buy/browse/overview.html
"""

from decimal import Decimal
from typing import Any
from urllib.parse import quote

import aiohttp

from ..errors import AuthFailure, ConfigurationError, SchemaDrift, UpstreamUnavailable
from ..models import Listing, ListingDetail, Outcome, Query
from ..services.http import SessionFactory, create_session
from ..services.token_cache import TokenCache
from .base import ITEM_PARSE_ERRORS, BaseAdapter, parse_price

TOKEN_URL = "https://api.ebay.com/identity/v1/oauth2/token"
BROWSE_API_URL = "https://api.ebay.com/buy/browse/v1"
OAUTH_SCOPE = "https://api.ebay.com/oauth/api_scope"
ITEM_URL = "https://www.ebay.com/itm/"

# Browse API page maximum
MAX_PAGE_SIZE = 200

CONDITION_MAP = {
    "new": "NEW",
    "like_new": "LIKE_NEW",
    "good": "GOOD",
    "fair": "FAIR",
}

NO_RESULTS_NOTE = (
    "No eBay listings found for this query. eBay searches nationally "
    "(not location-based). Try broadening your search terms."
)


def _format_amount(value: Decimal | None) -> str:
    return "" if value is None else format(value, "f")


def build_filter(query: Query) -> str | None:
    """Build the Browse API ``filter`` parameter for a query.

    Args:
        query: Search request.

    Returns:
        Comma-joined filter expression, or None when no filter applies.
    """
    filters: list[str] = []
    if query.price_min is not None or query.price_max is not None:
        low = _format_amount(query.price_min)
        high = _format_amount(query.price_max)
        filters.append(f"price:[{low}..{high}]")
        filters.append("priceCurrency:USD")

    if query.condition and query.condition != "any":
        ebay_condition = CONDITION_MAP.get(query.condition)
        if ebay_condition:
            filters.append(f"conditions:{{{ebay_condition}}}")

    return ",".join(filters) if filters else None


def _currency_symbol(price: dict[str, Any] | None) -> str:
    currency = (price or {}).get("currency")
    return "$" if currency in (None, "USD") else str(currency)


def _price_text(price: dict[str, Any] | None) -> str:
    if not price or price.get("value") is None:
        return "Price not listed"
    return f"{_currency_symbol(price)}{price['value']}"


def _join_location(location: dict[str, Any] | None, *fields: str) -> str | None:
    if not isinstance(location, dict):
        return None
    text = ", ".join(str(location[f]) for f in fields if location.get(f))
    return text or None


class EbayAdapter(BaseAdapter):
    """eBay adapter implementing the adapter protocol via the Browse API."""

    name = "ebay"
    display_name = "eBay"
    requires_auth = True
    default_limit = 20

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        token_cache: TokenCache,
        marketplace_id: str = "EBAY_US",
        session_factory: SessionFactory = create_session,
        timeout_seconds: float = 20.0,
        default_limit: int | None = None,
    ):
        """Initialize eBay adapter.

        Args:
            client_id: OAuth client id.
            client_secret: OAuth client secret.
            token_cache: Shared bearer token cache.
            marketplace_id: eBay marketplace header value.
            session_factory: Creates the aiohttp session for each call.
            timeout_seconds: Per-search deadline.
            default_limit: Result limit when the query has none.

        Raises:
            ConfigurationError: If credentials are missing.
        """
        if not client_id or not client_secret:
            raise ConfigurationError(
                "eBay credentials not configured. Set EBAY_CLIENT_ID and EBAY_CLIENT_SECRET."
            )
        super().__init__(timeout_seconds=timeout_seconds, default_limit=default_limit)
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_cache = token_cache
        self.marketplace_id = marketplace_id
        self._session_factory = session_factory

    async def _search(self, query: Query) -> Outcome:
        limit = self.effective_limit(query)
        params = {"q": query.text, "limit": str(min(limit, MAX_PAGE_SIZE))}
        filter_expr = build_filter(query)
        if filter_expr:
            params["filter"] = filter_expr

        async with self._session_factory() as session:
            token = await self._get_token(session)
            async with session.get(
                f"{BROWSE_API_URL}/item_summary/search",
                params=params,
                headers=self._api_headers(token),
            ) as response:
                if response.status != 200:
                    body = await response.text()
                    raise UpstreamUnavailable(
                        f"eBay API returned {response.status}: {body}", status=response.status
                    )
                data = await response.json()

        if not isinstance(data, dict):
            raise SchemaDrift("eBay search response is not a JSON object")

        items = data.get("itemSummaries")
        if items is None:
            if "total" not in data:
                raise SchemaDrift("eBay search response has neither itemSummaries nor total")
            items = []
        if not isinstance(items, list):
            raise SchemaDrift("eBay itemSummaries is not a list")

        listings = self.parse_listings(items, limit)
        total = data.get("total")
        return Outcome.ok(
            self.name,
            listings,
            total_found=total if isinstance(total, int) else None,
            note=NO_RESULTS_NOTE if not listings else None,
        )

    def parse_listings(self, items: list[Any], limit: int) -> list[Listing]:
        """Parse Browse API item summaries, skipping malformed items.

        Args:
            items: Raw ``itemSummaries`` entries.
            limit: Maximum number of listings to return.

        Returns:
            Parsed listings in API order.
        """
        listings: list[Listing] = []
        for item in items:
            if len(listings) >= limit:
                break
            try:
                listings.append(self._parse_item(item))
            except ITEM_PARSE_ERRORS as e:
                self.logger.debug(f"Skipping malformed eBay item: {e}")
        return listings

    def _parse_item(self, item: dict[str, Any]) -> Listing:
        item_id = str(item["itemId"])
        price = item.get("price")
        price_text = _price_text(price)
        parsed = parse_price(price_text)

        # Search results carry only the primary image; the full set comes with details.
        images: list[str] = []
        image_url = (item.get("image") or {}).get("imageUrl")
        if image_url:
            images.append(image_url)

        return Listing(
            id=item_id,
            title=item.get("title") or "Untitled Listing",
            price=price_text,
            price_numeric=parsed.numeric if parsed else None,
            currency=_currency_symbol(price),
            condition=item.get("condition"),
            location=_join_location(item.get("itemLocation"), "city", "stateOrProvince"),
            url=item.get("itemWebUrl") or f"{ITEM_URL}{item_id}",
            images=images,
            seller=(item.get("seller") or {}).get("username"),
            marketplace=self.name,
        )

    async def get_listing_details(self, listing_id: str) -> ListingDetail:
        """Fetch full details for one eBay item.

        Args:
            listing_id: eBay item id (e.g. "v1|1234|0").

        Returns:
            ListingDetail with all photos, location and shipping options.

        Raises:
            AuthFailure: If the token exchange is rejected.
            UpstreamUnavailable: If the item endpoint fails.
        """
        async with self._session_factory() as session:
            token = await self._get_token(session)
            async with session.get(
                f"{BROWSE_API_URL}/item/{quote(listing_id, safe='')}",
                headers=self._api_headers(token),
            ) as response:
                if response.status != 200:
                    raise UpstreamUnavailable(
                        f"eBay API returned {response.status}", status=response.status
                    )
                item = await response.json()

        if not isinstance(item, dict):
            raise SchemaDrift("eBay item response is not a JSON object")

        images: list[str] = []
        primary = (item.get("image") or {}).get("imageUrl")
        if primary:
            images.append(primary)
        for extra in item.get("additionalImages") or []:
            url = extra.get("imageUrl") if isinstance(extra, dict) else None
            if url and url not in images:
                images.append(url)

        shipping_options = item.get("shippingOptions")
        delivery_types = None
        if isinstance(shipping_options, list):
            delivery_types = [
                option["shippingServiceCode"]
                for option in shipping_options
                if isinstance(option, dict) and option.get("shippingServiceCode")
            ]

        return ListingDetail(
            id=str(item.get("itemId") or listing_id),
            marketplace=self.name,
            url=item.get("itemWebUrl") or f"{ITEM_URL}{listing_id}",
            title=item.get("title"),
            description=item.get("description") or item.get("shortDescription"),
            images=images,
            location=_join_location(
                item.get("itemLocation"), "city", "stateOrProvince", "country"
            ),
            seller=(item.get("seller") or {}).get("username"),
            delivery_types=delivery_types,
            shipping_offered=bool(shipping_options) if isinstance(shipping_options, list) else False,
        )

    async def health_check(self) -> bool:
        """Check that the token exchange succeeds."""
        try:
            async with self._session_factory() as session:
                await self._get_token(session)
            return True
        except (AuthFailure, aiohttp.ClientError, TimeoutError) as e:
            self.logger.warning(f"eBay health check failed: {e}")
            return False

    def _api_headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "X-EBAY-C-MARKETPLACE-ID": self.marketplace_id,
        }

    async def _get_token(self, session: aiohttp.ClientSession) -> str:
        async def fetch() -> tuple[str, float]:
            return await self._exchange_credentials(session)

        return await self.token_cache.get_or_refresh(self.client_id, fetch)

    async def _exchange_credentials(self, session: aiohttp.ClientSession) -> tuple[str, float]:
        """Exchange client credentials for an application token.

        Returns:
            Tuple of bearer token and lifetime in seconds.

        Raises:
            AuthFailure: If eBay rejects the exchange or omits the token.
        """
        async with session.post(
            TOKEN_URL,
            data={"grant_type": "client_credentials", "scope": OAUTH_SCOPE},
            auth=aiohttp.BasicAuth(self.client_id, self.client_secret),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        ) as response:
            if response.status != 200:
                raise AuthFailure(f"eBay OAuth failed with status {response.status}")
            data = await response.json()

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthFailure("eBay OAuth response did not include an access token")
        return token, float(data.get("expires_in", 7200))
