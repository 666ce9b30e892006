"""Tests for the browser-mediated Depop adapter."""

from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import pytest

from secondhand.adapters.depop import (
    DEPOP_HOME,
    DepopAdapter,
    build_search_url,
    humanize_depop_slug,
)
from secondhand.models import Query

SEARCH_RESULT = {
    "error": None,
    "data": {
        "meta": {"resultCount": 812, "hasMore": True},
        "products": [
            {
                "id": 1,
                "slug": "janedoe-vintage-denim-jacket-a1b2",
                "price": {"priceAmount": "35.00", "currencyName": "USD"},
                "preview": {"320": "https://media-photos.depop.com/320.jpg", "480": "https://media-photos.depop.com/480.jpg"},
                "seller": {"username": "janedoe"},
            },
            {"id": 2},
            {
                "id": 3,
                "slug": "bob-wool-scarf-ff00",
                "price": {"priceAmount": "12.00", "currencyName": "GBP"},
            },
        ],
    },
}


def make_adapter(browser) -> DepopAdapter:
    return DepopAdapter(browser=browser, navigation_timeout_ms=1000)


def test_build_search_url_maps_filters():
    query = Query(
        text="denim jacket",
        price_min=Decimal("10"),
        price_max=Decimal("80"),
        condition="like_new",
        sort="newest",
        sizes=("M", "L"),
        colors=("blue",),
    )
    params = parse_qs(urlparse(build_search_url(query, 24)).query)

    assert params["what"] == ["denim jacket"]
    assert params["itemsPerPage"] == ["24"]
    assert params["sort"] == ["newestFirst"]
    assert params["priceMin"] == ["10"]
    assert params["priceMax"] == ["80"]
    assert params["conditions"] == ["used_like_new"]
    assert params["sizes"] == ["M", "L"]
    assert params["colours"] == ["blue"]


def test_humanize_depop_slug():
    assert humanize_depop_slug("janedoe-vintage-denim-jacket-a1b2") == "Vintage Denim Jacket"
    assert humanize_depop_slug("janedoe-a1b2") == "janedoe a1b2"


@pytest.mark.asyncio
async def test_search_calls_api_from_page(mock_browser, mock_page):
    mock_page.evaluate.return_value = SEARCH_RESULT

    outcome = await make_adapter(mock_browser).search(Query(text="denim jacket"))

    assert outcome.success is True
    assert outcome.total_found == 812
    assert [listing.id for listing in outcome.listings] == [
        "janedoe-vintage-denim-jacket-a1b2",
        "bob-wool-scarf-ff00",
    ]

    jacket = outcome.listings[0]
    assert jacket.title == "Vintage Denim Jacket"
    assert jacket.price == "$35.00"
    assert jacket.price_numeric == Decimal("35.00")
    assert jacket.images == ["https://media-photos.depop.com/480.jpg"]
    assert jacket.url == "https://www.depop.com/products/janedoe-vintage-denim-jacket-a1b2"

    scarf = outcome.listings[1]
    assert scarf.price == "£12.00"
    assert scarf.currency == "£"

    assert mock_page.goto.await_args.args[0] == DEPOP_HOME
    assert mock_page.evaluate.await_args.args[1].startswith("https://webapi.depop.com/api/v2/search/products/?")


@pytest.mark.asyncio
async def test_in_page_fetch_error_fails_search(mock_browser, mock_page):
    mock_page.evaluate.return_value = {"error": "HTTP 403", "data": None}

    outcome = await make_adapter(mock_browser).search(Query(text="jacket"))

    assert outcome.success is False
    assert outcome.error == "Depop: Depop API error: HTTP 403"


@pytest.mark.asyncio
async def test_missing_products_is_schema_drift(mock_browser, mock_page):
    mock_page.evaluate.return_value = {"error": None, "data": {"items": []}}

    outcome = await make_adapter(mock_browser).search(Query(text="jacket"))

    assert outcome.success is False
    assert "no products list" in outcome.error


@pytest.mark.asyncio
async def test_details_fall_back_to_meta_description_seller(mock_browser, mock_page, fixture_text):
    mock_page.content.return_value = fixture_text("depop_product.html")
    mock_page.evaluate.return_value = {"error": "HTTP 403", "data": None}

    detail = await make_adapter(mock_browser).get_listing_details("janedoe-vintage-denim-jacket-a1b2")

    assert detail.seller == "jane.doe"
    assert detail.title == "Vintage denim jacket"
    assert detail.description == "Boxy fit 90s denim jacket"
    assert detail.images == ["https://media-photos.depop.com/b1/jacket.jpg"]
    assert detail.shipping_offered is None


@pytest.mark.asyncio
async def test_details_prefer_extended_api(mock_browser, mock_page, fixture_text):
    mock_page.content.return_value = fixture_text("depop_product.html")
    mock_page.evaluate.return_value = {
        "error": None,
        "data": {
            "seller": {"username": "janedoe"},
            "pricing": {"national_shipping_cost": "4.99"},
        },
    }

    detail = await make_adapter(mock_browser).get_listing_details("janedoe-vintage-denim-jacket-a1b2")

    assert detail.seller == "janedoe"
    assert detail.shipping_offered is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "result",
    [
        None,
        "blocked",
        {"error": None, "data": []},
        {"error": None, "data": {"products": [None, 1, {"slug": ""}, {"slug": "a-b-c", "price": "free"}]}},
        {"error": None, "data": {"products": [{"slug": "a-b-c", "preview": [], "price": {"priceAmount": {}}}]}},
    ],
)
async def test_garbled_results_never_raise(mock_browser, mock_page, result):
    mock_page.evaluate.return_value = result

    outcome = await make_adapter(mock_browser).search(Query(text="jacket"))

    if not outcome.success:
        assert outcome.listings == []
