"""Tests for the shared data models."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from secondhand.models import CachedToken, Listing, Outcome, Query


def make_listing(listing_id: str = "1", marketplace: str = "ebay") -> Listing:
    return Listing(
        id=listing_id,
        title="Vintage lamp",
        price="$20",
        url=f"https://example.com/{listing_id}",
        marketplace=marketplace,
    )


class TestQuery:
    def test_defaults(self):
        query = Query(text="desk")
        assert query.limit is None
        assert query.sizes == ()
        assert query.colors == ()
        assert query.show_unavailable is False

    def test_rejects_inverted_price_range(self):
        with pytest.raises(ValidationError, match="price_min must not exceed price_max"):
            Query(text="desk", price_min=Decimal("100"), price_max=Decimal("50"))

    def test_accepts_equal_price_bounds(self):
        query = Query(text="desk", price_min=Decimal("50"), price_max=Decimal("50"))
        assert query.price_min == query.price_max

    def test_rejects_empty_text(self):
        with pytest.raises(ValidationError):
            Query(text="")

    def test_rejects_zero_limit(self):
        with pytest.raises(ValidationError):
            Query(text="desk", limit=0)

    def test_rejects_unknown_condition(self):
        with pytest.raises(ValidationError):
            Query(text="desk", condition="mint")

    def test_is_immutable(self):
        query = Query(text="desk")
        with pytest.raises(ValidationError):
            query.text = "chair"


class TestListing:
    def test_identity_is_marketplace_and_id(self):
        ebay = make_listing("42", "ebay")
        depop = make_listing("42", "depop")
        assert ebay.key == ("ebay", "42")
        assert ebay.key != depop.key

    def test_scraped_at_is_utc(self):
        assert make_listing().scraped_at.tzinfo is not None


class TestOutcome:
    def test_ok_defaults_total_to_listing_count(self):
        outcome = Outcome.ok("ebay", [make_listing("1"), make_listing("2")])
        assert outcome.success is True
        assert outcome.total_found == 2
        assert outcome.error is None

    def test_ok_keeps_explicit_total(self):
        outcome = Outcome.ok("ebay", [make_listing()], total_found=350)
        assert outcome.total_found == 350

    def test_failure_has_no_listings(self):
        outcome = Outcome.failure("depop", "Depop search timed out after 45s")
        assert outcome.success is False
        assert outcome.listings == []
        assert outcome.error == "Depop search timed out after 45s"

    def test_failed_outcome_with_listings_is_rejected(self):
        with pytest.raises(ValidationError, match="must not carry listings"):
            Outcome(marketplace="ebay", success=False, listings=[make_listing()])


class TestCachedToken:
    def test_expires_within_margin(self):
        now = datetime(2024, 1, 1, tzinfo=UTC)
        token = CachedToken(value="abc", expires_at=now + timedelta(seconds=30))
        assert token.expires_within(timedelta(seconds=60), now=now) is True
        assert token.expires_within(timedelta(seconds=10), now=now) is False
