"""Data models shared by every marketplace adapter.

Defines Pydantic models for the search query, the normalized listing shape,
per-item details and the per-marketplace search outcome, plus the small value
objects kept in the location and token caches. All models validate their
fields on construction.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Condition = Literal["new", "like_new", "excellent", "good", "fair", "any"]
SortOrder = Literal[
    "relevance", "newest", "price_low_to_high", "price_high_to_low", "most_popular"
]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class Query(BaseModel):
    """Search request issued against one or more marketplaces.

    Attributes:
        text: Free-text search term.
        location: City or area for location-based marketplaces.
        price_min: Inclusive lower price bound.
        price_max: Inclusive upper price bound.
        limit: Maximum number of listings per marketplace, adapter default when None.
        condition: Item condition filter ("any" disables it).
        sort: Result ordering for marketplaces that support it.
        category: Marketplace category/group identifier.
        sizes: Size filters.
        colors: Color filters.
        show_unavailable: Keep sold/pending/hidden items in results.
        radius_km: Search radius around the resolved location.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1)
    location: str | None = None
    price_min: Decimal | None = Field(default=None, ge=0)
    price_max: Decimal | None = Field(default=None, ge=0)
    limit: int | None = Field(default=None, ge=1)
    condition: Condition | None = None
    sort: SortOrder | None = None
    category: str | None = None
    sizes: tuple[str, ...] = ()
    colors: tuple[str, ...] = ()
    show_unavailable: bool = False
    radius_km: int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_price_bounds(self) -> "Query":
        if (
            self.price_min is not None
            and self.price_max is not None
            and self.price_min > self.price_max
        ):
            raise ValueError("price_min must not exceed price_max")
        return self


class PriceInfo(BaseModel):
    """Numeric magnitude and currency symbol extracted from a price string."""

    numeric: Decimal
    currency: str = "$"


class Listing(BaseModel):
    """Normalized for-sale item as returned by any marketplace.

    Listing ids are only unique inside one marketplace, so identity is the
    ``(marketplace, id)`` pair exposed as :attr:`key`.
    """

    id: str
    title: str
    price: str
    price_numeric: Decimal | None = None
    currency: str | None = None
    location: str | None = None
    description: str | None = None
    url: str
    images: list[str] = Field(default_factory=list)
    seller: str | None = None
    condition: str | None = None
    marketplace: str
    scraped_at: datetime = Field(default_factory=utc_now)

    @property
    def key(self) -> tuple[str, str]:
        return (self.marketplace, self.id)


class LocationCoordinates(BaseModel):
    """Resolved coordinates for a free-text location."""

    latitude: float
    longitude: float
    name: str


class ListingDetail(BaseModel):
    """Full information for one listing, fetched on demand."""

    id: str
    marketplace: str
    url: str
    title: str | None = None
    description: str | None = None
    images: list[str] = Field(default_factory=list)
    location: str | None = None
    location_coords: LocationCoordinates | None = None
    seller: str | None = None
    delivery_types: list[str] | None = None
    shipping_offered: bool | None = None


class Outcome(BaseModel):
    """Result of searching one marketplace.

    A failed outcome never carries listings.
    """

    marketplace: str
    success: bool
    listings: list[Listing] = Field(default_factory=list)
    error: str | None = None
    total_found: int | None = None
    note: str | None = None

    @model_validator(mode="after")
    def _failed_outcome_has_no_listings(self) -> "Outcome":
        if not self.success and self.listings:
            raise ValueError("failed outcome must not carry listings")
        return self

    @classmethod
    def ok(
        cls,
        marketplace: str,
        listings: list[Listing],
        total_found: int | None = None,
        note: str | None = None,
    ) -> "Outcome":
        return cls(
            marketplace=marketplace,
            success=True,
            listings=listings,
            total_found=total_found if total_found is not None else len(listings),
            note=note,
        )

    @classmethod
    def failure(cls, marketplace: str, error: str) -> "Outcome":
        return cls(marketplace=marketplace, success=False, listings=[], error=error)


class CachedToken(BaseModel):
    """Bearer token with its absolute expiry instant."""

    value: str
    expires_at: datetime

    def expires_within(self, margin: timedelta, now: datetime | None = None) -> bool:
        """Check whether the token expires inside the given safety margin.

        Args:
            margin: Safety margin before the real expiry.
            now: Reference time, defaults to the current UTC time.

        Returns:
            True if the remaining lifetime is shorter than ``margin``.
        """
        current = now or utc_now()
        return self.expires_at - current < margin
