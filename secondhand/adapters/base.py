"""Base adapter protocol and shared helpers for marketplace integrations.

Defines the interface every marketplace adapter implements and a base class
that turns the adapter-specific search into a call that never raises: every
failure, including the per-call deadline, becomes a failed Outcome.
"""

import asyncio
import json
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from bs4 import BeautifulSoup

from ..errors import MarketplaceError
from ..models import ListingDetail, Outcome, PriceInfo, Query

PRICE_RE = re.compile(r"([£€$])?\s*([\d,]+(?:\.\d{2})?)")

# Errors that mean one result item is malformed; the item is skipped.
ITEM_PARSE_ERRORS = (KeyError, TypeError, ValueError, AttributeError, ArithmeticError)


def parse_price(text: str | None) -> PriceInfo | None:
    """Extract currency symbol and numeric value from a formatted price.

    Handles formats such as "$50", "$1,234.56", "€50" and "£50". Thousands
    separators are stripped; the currency defaults to "$".

    Args:
        text: Price as displayed by the marketplace.

    Returns:
        PriceInfo, or None when no number can be found.
    """
    if not text:
        return None

    match = PRICE_RE.search(text)
    if not match:
        return None

    digits = match.group(2).replace(",", "")
    if not digits:
        return None
    try:
        numeric = Decimal(digits)
    except InvalidOperation:
        return None

    return PriceInfo(numeric=numeric, currency=match.group(1) or "$")


def to_decimal(value: object) -> Decimal | None:
    """Convert a raw API amount to Decimal, None when it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def humanize_slug(slug: str) -> str:
    """Turn a URL slug into a title-cased display title."""
    return " ".join(word.capitalize() for word in slug.split("-") if word)



def parse_json_ld(soup: BeautifulSoup) -> dict[str, Any] | None:
    """Return the first JSON-LD object embedded in the page, if any."""
    for script in soup.find_all("script", type="application/ld+json"):
        text = script.string
        if not text:
            continue
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            continue
        if isinstance(data, list):
            data = next((entry for entry in data if isinstance(entry, dict)), None)
        if isinstance(data, dict):
            return data
    return None


def json_ld_images(data: dict[str, Any] | None) -> list[str]:
    if not data:
        return []
    image = data.get("image")
    if isinstance(image, str):
        return [image]
    if isinstance(image, list):
        return [img for img in image if isinstance(img, str)]
    return []


def json_ld_seller(data: dict[str, Any] | None) -> str | None:
    """Seller name from a JSON-LD Product's offers, if present."""
    offers = data.get("offers") if data else None
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    seller = offers.get("seller") if isinstance(offers, dict) else None
    if isinstance(seller, dict):
        return seller.get("name") or seller.get("alternateName")
    return None

class AdapterProtocol(Protocol):
    """Protocol defining the interface for all marketplace adapters.

    Methods:
        search: Search listings; never raises.
        get_listing_details: Fetch full details for one listing.
        health_check: Best-effort reachability probe.
    """

    name: str
    display_name: str
    requires_auth: bool

    async def search(self, query: Query) -> Outcome:
        """Search the marketplace.

        Args:
            query: Search request.

        Returns:
            Outcome; failures are reported with success=False.
        """
        ...

    async def get_listing_details(self, listing_id: str) -> ListingDetail:
        """Fetch details for one listing.

        Args:
            listing_id: Marketplace-scoped listing id.

        Returns:
            ListingDetail for the item.

        Raises:
            MarketplaceError: If the details cannot be fetched.
        """
        ...

    async def health_check(self) -> bool:
        """Check whether the marketplace is reachable."""
        ...


class BaseAdapter:
    """Base class providing the never-raising search template.

    Subclasses implement :meth:`_search` and may raise any
    :class:`MarketplaceError`; :meth:`search` converts it to a failed outcome.
    """

    name: str = ""
    display_name: str = ""
    requires_auth: bool = False
    default_limit: int = 20

    def __init__(self, timeout_seconds: float = 30.0, default_limit: int | None = None):
        """Initialize base adapter.

        Args:
            timeout_seconds: Per-call deadline applied to search.
            default_limit: Result limit used when the query has none.
        """
        self.timeout_seconds = timeout_seconds
        if default_limit is not None:
            self.default_limit = default_limit
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    def effective_limit(self, query: Query) -> int:
        return query.limit or self.default_limit

    async def search(self, query: Query) -> Outcome:
        """Search the marketplace without ever raising.

        Args:
            query: Search request.

        Returns:
            Outcome with listings, or a failed Outcome describing the error.
        """
        self._log_search_start(query)
        try:
            outcome = await asyncio.wait_for(self._search(query), timeout=self.timeout_seconds)
        except TimeoutError:
            message = f"{self.display_name} search timed out after {self.timeout_seconds:g}s"
            self.logger.error(message)
            return self.failure(message)
        except MarketplaceError as e:
            self._log_search_error(query, e)
            return self.failure(f"{self.display_name}: {e}")
        except Exception as e:
            self._log_search_error(query, e)
            return self.failure(f"{self.display_name} search failed: {e}")

        self._log_search_success(outcome)
        return outcome

    async def _search(self, query: Query) -> Outcome:
        raise NotImplementedError

    async def get_listing_details(self, listing_id: str) -> ListingDetail:
        raise NotImplementedError(f"{self.display_name} does not support listing details")

    async def health_check(self) -> bool:
        """Default health check for adapters without a dedicated probe."""
        return True

    def failure(self, message: str) -> Outcome:
        return Outcome.failure(self.name, message)

    def _log_search_start(self, query: Query) -> None:
        self.logger.info(f"Starting {self.name} search for {query.text!r}")

    def _log_search_success(self, outcome: Outcome) -> None:
        if outcome.success:
            self.logger.info(
                f"{self.name} search returned {len(outcome.listings)} listings "
                f"(total found: {outcome.total_found})"
            )
        else:
            self.logger.warning(f"{self.name} search failed: {outcome.error}")

    def _log_search_error(self, query: Query, error: Exception) -> None:
        self.logger.error(f"Failed to search {self.name} for {query.text!r}: {error}")
