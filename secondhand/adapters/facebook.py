"""Facebook Marketplace adapter using the site's internal GraphQL API.

Works without login and without a browser. Free-text locations are resolved
to coordinates first (cached per normalized text), then the listings feed is
queried around those coordinates. The GraphQL ``doc_id`` values identify
persisted queries of the Facebook frontend and may need updating when the
frontend changes; an unexpected response shape is reported as schema drift.
"""

import asyncio
import json
import re
from typing import Any

from ..errors import LocationUnresolved, SchemaDrift, UpstreamUnavailable
from ..models import Listing, ListingDetail, LocationCoordinates, Outcome, Query
from ..services.http import DEFAULT_USER_AGENT, SessionFactory, create_session
from ..services.location_cache import LocationCache
from .base import ITEM_PARSE_ERRORS, BaseAdapter, parse_price

GRAPHQL_URL = "https://www.facebook.com/api/graphql/"
ITEM_URL = "https://www.facebook.com/marketplace/item/"
LOCATION_DOC_ID = "5585904654783609"
SEARCH_DOC_ID = "7111939778879383"

GRAPHQL_HEADERS = {
    "content-type": "application/x-www-form-urlencoded",
    "sec-fetch-site": "same-origin",
    "user-agent": DEFAULT_USER_AGENT,
}

# Upper price bound Facebook treats as "no limit"
MAX_PRICE_SENTINEL = 214748364700

# Facebook returns at most this many feed units per request
MAX_PAGE_SIZE = 24

LISTING_TYPENAME = "MarketplaceFeedListingStoryObject"
AVAILABLE_STATES = {"AVAILABLE", "IN_STOCK"}
UNAVAILABLE_FLAGS = ("is_sold", "is_pending", "is_hidden")

# Sellers often mark sold items in the title instead of using the sold flag.
SOLD_TITLE_RE = re.compile(r"^\s*(?:\[SOLD\]|\(SOLD\)|SOLD\s+[-:!]|SOLD[:!]|SOLD\s*$)", re.I)


def _dig(data: Any, *path: str) -> Any:
    """Walk nested dictionaries, returning None on any missing step."""
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def is_marked_sold(title: str | None) -> bool:
    return bool(title) and SOLD_TITLE_RE.match(title) is not None


def is_unavailable(listing: dict[str, Any]) -> bool:
    """Check whether a feed listing is sold, pending, hidden or inactive.

    Explicit availability flags and the sold-marker title heuristic are
    combined with a plain union; neither signal overrides the other.

    Args:
        listing: Raw ``listing`` node from the search feed.

    Returns:
        True if any unavailability signal is present.
    """
    if any(listing.get(flag) is True for flag in UNAVAILABLE_FLAGS):
        return True
    if listing.get("is_live_in_marketplace") is False:
        return True

    availability = listing.get("availability")
    if availability and availability not in AVAILABLE_STATES:
        return True

    return is_marked_sold(listing.get("marketplace_listing_title"))


class FacebookAdapter(BaseAdapter):
    """Facebook Marketplace adapter implementing the adapter protocol."""

    name = "facebook"
    display_name = "Facebook Marketplace"
    requires_auth = False
    default_limit = 24

    def __init__(
        self,
        location_cache: LocationCache,
        session_factory: SessionFactory = create_session,
        timeout_seconds: float = 20.0,
        default_limit: int | None = None,
        default_location: str = "san francisco",
        radius_km: int = 16,
        detail_doc_id: str | None = None,
        photos_doc_id: str | None = None,
    ):
        """Initialize Facebook adapter.

        Args:
            location_cache: Shared location cache.
            session_factory: Creates the aiohttp session for each call.
            timeout_seconds: Per-search deadline.
            default_limit: Result limit when the query has none.
            default_location: Location used when the query has none.
            radius_km: Search radius when the query has none.
            detail_doc_id: GraphQL doc id for the item details query.
            photos_doc_id: GraphQL doc id for the item photos query.
        """
        super().__init__(timeout_seconds=timeout_seconds, default_limit=default_limit)
        self.location_cache = location_cache
        self.default_location = default_location
        self.radius_km = radius_km
        self.detail_doc_id = detail_doc_id
        self.photos_doc_id = photos_doc_id
        self._session_factory = session_factory

    async def _search(self, query: Query) -> Outcome:
        location = query.location or self.default_location
        limit = self.effective_limit(query)

        coords = await self.get_location(location)
        if coords is None:
            raise LocationUnresolved(
                f'Could not find location "{location}". Try a major city name '
                'like "san francisco", "nyc", or "chicago".'
            )

        variables = {
            "count": min(limit, MAX_PAGE_SIZE),
            "params": {
                "bqf": {"callsite": "COMMERCE_MKTPLACE_WWW", "query": query.text},
                "browse_request_params": {
                    "commerce_enable_local_pickup": True,
                    "commerce_enable_shipping": True,
                    "commerce_search_and_rp_available": True,
                    "commerce_search_and_rp_condition": None,
                    "commerce_search_and_rp_ctime_days": None,
                    "filter_location_latitude": coords.latitude,
                    "filter_location_longitude": coords.longitude,
                    "filter_price_lower_bound": int(query.price_min or 0),
                    "filter_price_upper_bound": (
                        int(query.price_max) if query.price_max is not None else MAX_PRICE_SENTINEL
                    ),
                    "filter_radius_km": query.radius_km or self.radius_km,
                },
                "custom_request_params": {"surface": "SEARCH"},
            },
        }

        async with self._session_factory() as session:
            response = await self._fetch_graphql(session, SEARCH_DOC_ID, variables)

        edges = _dig(response, "data", "marketplace_search", "feed_units", "edges")
        if not isinstance(edges, list):
            raise SchemaDrift(
                "Unexpected response structure from Facebook. The GraphQL doc_id may need updating."
            )

        listings = self.parse_listings(edges, limit, query.show_unavailable)
        return Outcome.ok(self.name, listings)

    async def get_location(self, query: str) -> LocationCoordinates | None:
        """Resolve free-text location to coordinates through the cache.

        Args:
            query: City, neighborhood or postal code.

        Returns:
            Coordinates, or None when Facebook does not recognize the text.
        """
        return await self.location_cache.get_or_resolve(query, self._lookup_location)

    async def _lookup_location(self, query: str) -> LocationCoordinates | None:
        variables = {
            "params": {
                "caller": "MARKETPLACE",
                "page_category": ["CITY", "SUBCITY", "NEIGHBORHOOD", "POSTAL_CODE"],
                "query": query,
            }
        }
        async with self._session_factory() as session:
            response = await self._fetch_graphql(session, LOCATION_DOC_ID, variables)

        edges = _dig(response, "data", "city_street_search", "street_results", "edges")
        if not edges or not isinstance(edges, list):
            self.logger.info(f"Facebook could not resolve location {query!r}")
            return None

        node = edges[0].get("node") if isinstance(edges[0], dict) else None
        latitude = _dig(node, "location", "latitude")
        longitude = _dig(node, "location", "longitude")
        if latitude is None or longitude is None:
            raise SchemaDrift("Facebook location result has no coordinates")

        address = node.get("single_line_address") or query
        kind = (node.get("subtitle") or "").split(" ·")[0]
        name = address if kind in ("", "City") else kind

        return LocationCoordinates(latitude=latitude, longitude=longitude, name=name)

    def parse_listings(
        self, edges: list[Any], limit: int, show_unavailable: bool = False
    ) -> list[Listing]:
        """Parse feed edges into listings, applying availability filtering.

        Args:
            edges: Raw ``feed_units.edges`` entries.
            limit: Maximum number of listings to return.
            show_unavailable: Keep sold/pending/hidden items.

        Returns:
            Parsed listings, at most ``limit``.
        """
        listings: list[Listing] = []
        for edge in edges:
            if len(listings) >= limit:
                break
            try:
                node = edge.get("node") if isinstance(edge, dict) else None
                if not isinstance(node, dict) or node.get("__typename") != LISTING_TYPENAME:
                    continue
                listing = node.get("listing")
                if not isinstance(listing, dict):
                    continue
                if not show_unavailable and is_unavailable(listing):
                    continue
                listings.append(self._parse_listing(listing))
            except ITEM_PARSE_ERRORS as e:
                self.logger.debug(f"Skipping unparseable Facebook listing: {e}")
        return listings

    def _parse_listing(self, listing: dict[str, Any]) -> Listing:
        listing_id = str(listing["id"])
        price = _dig(listing, "listing_price", "formatted_amount") or "Price not listed"
        parsed = parse_price(price)

        images = self._collect_photos(listing)
        if not images:
            primary = _dig(listing, "primary_listing_photo", "image", "uri")
            if primary:
                images.append(primary)

        description = _dig(listing, "redacted_description", "text") or listing.get(
            "marketplace_listing_description"
        )

        return Listing(
            id=listing_id,
            title=listing.get("marketplace_listing_title") or "Untitled Listing",
            description=description,
            price=price,
            price_numeric=parsed.numeric if parsed else None,
            currency=parsed.currency if parsed else "$",
            location=_dig(listing, "location", "reverse_geocode", "city_page", "display_name"),
            url=f"{ITEM_URL}{listing_id}",
            images=images,
            seller=_dig(listing, "marketplace_listing_seller", "name"),
            marketplace=self.name,
        )

    @staticmethod
    def _collect_photos(listing: dict[str, Any]) -> list[str]:
        photos = listing.get("listing_photos") or listing.get("all_listing_photos")
        images: list[str] = []
        if isinstance(photos, list):
            for photo in photos:
                uri = _dig(photo, "image", "uri")
                if uri and uri not in images:
                    images.append(uri)
        return images

    async def get_listing_details(self, listing_id: str) -> ListingDetail:
        """Fetch details for one listing with two concurrent GraphQL queries.

        The photo query and the details query are merged; if one fails the
        other still populates the result.

        Args:
            listing_id: Facebook listing id.

        Returns:
            ListingDetail with photos, description, seller and delivery data.

        Raises:
            UpstreamUnavailable: If both queries fail.
            SchemaDrift: If neither response carries the product details.
        """
        variables = {"targetId": listing_id}
        async with self._session_factory() as session:
            photos_result, details_result = await asyncio.gather(
                self._fetch_graphql(session, self.photos_doc_id, variables),
                self._fetch_graphql(session, self.detail_doc_id, variables),
                return_exceptions=True,
            )

        for label, result in (("photos", photos_result), ("details", details_result)):
            if isinstance(result, BaseException):
                self.logger.warning(f"Facebook {label} query failed for {listing_id}: {result}")

        if isinstance(photos_result, BaseException) and isinstance(details_result, BaseException):
            raise UpstreamUnavailable(
                f"Facebook detail lookup failed for {listing_id}: {details_result}"
            )

        photos_target = (
            None if isinstance(photos_result, BaseException) else self._detail_target(photos_result)
        )
        target = (
            None if isinstance(details_result, BaseException) else self._detail_target(details_result)
        )

        for label, result, found in (
            ("photos", photos_result, photos_target),
            ("details", details_result, target),
        ):
            if not isinstance(result, BaseException) and found is None:
                self.logger.warning(
                    f"Facebook {label} query for {listing_id} returned no product details"
                )

        if photos_target is None and target is None:
            raise SchemaDrift(f"Facebook detail lookup for {listing_id} returned no product details")

        images = self._collect_photos(photos_target or {}) or self._collect_photos(target or {})
        detail = target or {}

        coords = None
        latitude = _dig(detail, "location", "latitude")
        longitude = _dig(detail, "location", "longitude")
        location_text = _dig(detail, "location_text", "text")
        if latitude is not None and longitude is not None:
            coords = LocationCoordinates(
                latitude=latitude, longitude=longitude, name=location_text or ""
            )

        delivery_types = detail.get("delivery_types")
        return ListingDetail(
            id=listing_id,
            marketplace=self.name,
            url=f"{ITEM_URL}{listing_id}",
            title=detail.get("marketplace_listing_title"),
            description=_dig(detail, "redacted_description", "text"),
            images=images,
            location=location_text,
            location_coords=coords,
            seller=_dig(detail, "marketplace_listing_seller", "name"),
            delivery_types=delivery_types if isinstance(delivery_types, list) else None,
            shipping_offered=detail.get("is_shipping_offered"),
        )

    @staticmethod
    def _detail_target(response: Any) -> dict[str, Any] | None:
        target = _dig(response, "data", "viewer", "marketplace_product_details_page", "target")
        return target if isinstance(target, dict) else None

    async def health_check(self) -> bool:
        """Check that location lookup works."""
        try:
            return await self.get_location("new york") is not None
        except Exception as e:
            self.logger.warning(f"Facebook health check failed: {e}")
            return False

    async def _fetch_graphql(
        self, session: Any, doc_id: str | None, variables: dict[str, Any]
    ) -> dict[str, Any]:
        """POST a persisted GraphQL query.

        Raises:
            UpstreamUnavailable: On non-200 status, GraphQL errors or a
                missing doc id.
        """
        if not doc_id:
            raise UpstreamUnavailable("GraphQL doc_id not configured")

        body = {"variables": json.dumps(variables), "doc_id": doc_id}
        async with session.post(GRAPHQL_URL, data=body, headers=GRAPHQL_HEADERS) as response:
            if response.status != 200:
                raise UpstreamUnavailable(
                    f"Facebook API returned status {response.status}", status=response.status
                )
            # Facebook answers with text/html content type even for JSON bodies.
            payload = await response.json(content_type=None)

        if not isinstance(payload, dict):
            raise SchemaDrift("Facebook GraphQL response is not a JSON object")

        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            message = errors[0].get("message") if isinstance(errors[0], dict) else errors[0]
            raise UpstreamUnavailable(f"Facebook GraphQL error: {message}")

        return payload
