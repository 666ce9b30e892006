"""Tests for price parsing and the never-raising search template."""

import asyncio
from decimal import Decimal

import pytest

from secondhand.adapters.base import BaseAdapter, humanize_slug, parse_price, to_decimal
from secondhand.errors import SchemaDrift
from secondhand.models import Listing, Outcome, Query


@pytest.mark.parametrize(
    "text, numeric, currency",
    [
        ("$1,234.56", Decimal("1234.56"), "$"),
        ("€50", Decimal("50"), "€"),
        ("£ 12.50", Decimal("12.50"), "£"),
        ("45", Decimal("45"), "$"),
        ("Now $80 (was $120)", Decimal("80"), "$"),
    ],
)
def test_parse_price(text, numeric, currency):
    price = parse_price(text)
    assert price is not None
    assert price.numeric == numeric
    assert price.currency == currency


@pytest.mark.parametrize("text", [None, "", "ask", "Free", "Make an offer"])
def test_parse_price_unparsable(text):
    assert parse_price(text) is None


def test_to_decimal():
    assert to_decimal("12.5") == Decimal("12.5")
    assert to_decimal(3) == Decimal("3")
    assert to_decimal(None) is None
    assert to_decimal(True) is None
    assert to_decimal("n/a") is None


def test_humanize_slug():
    assert humanize_slug("vintage-denim--jacket") == "Vintage Denim Jacket"


class StubAdapter(BaseAdapter):
    name = "stub"
    display_name = "Stub"

    def __init__(self, behaviour, timeout_seconds: float = 1.0):
        super().__init__(timeout_seconds=timeout_seconds)
        self.behaviour = behaviour

    async def _search(self, query: Query) -> Outcome:
        return await self.behaviour(query)


@pytest.mark.asyncio
async def test_search_returns_adapter_outcome():
    listing = Listing(id="1", title="Lamp", price="$5", url="https://x/1", marketplace="stub")

    async def ok(query):
        return Outcome.ok("stub", [listing])

    outcome = await StubAdapter(ok).search(Query(text="lamp"))
    assert outcome.success is True
    assert outcome.listings == [listing]


@pytest.mark.asyncio
async def test_search_deadline_becomes_failed_outcome():
    async def slow(query):
        await asyncio.sleep(10)

    outcome = await StubAdapter(slow, timeout_seconds=0.05).search(Query(text="lamp"))

    assert outcome.success is False
    assert outcome.listings == []
    assert outcome.error == "Stub search timed out after 0.05s"


@pytest.mark.asyncio
async def test_marketplace_error_is_prefixed_with_display_name():
    async def drift(query):
        raise SchemaDrift("unexpected response")

    outcome = await StubAdapter(drift).search(Query(text="lamp"))
    assert outcome.success is False
    assert outcome.error == "Stub: unexpected response"


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_failed_outcome():
    async def broken(query):
        raise RuntimeError("boom")

    outcome = await StubAdapter(broken).search(Query(text="lamp"))
    assert outcome.success is False
    assert outcome.error == "Stub search failed: boom"


def test_effective_limit_prefers_query():
    adapter = StubAdapter(None)
    assert adapter.effective_limit(Query(text="x", limit=5)) == 5
    assert adapter.effective_limit(Query(text="x")) == adapter.default_limit
