"""Tests for resolving the enabled adapters at startup."""

from unittest.mock import MagicMock

from secondhand.adapters.registry import AdapterRegistry, build_adapters
from secondhand.errors import ConfigurationError


def fake_adapter(name: str) -> MagicMock:
    adapter = MagicMock()
    adapter.name = name
    return adapter


def fake_container() -> MagicMock:
    container = MagicMock()
    container.facebook_adapter.return_value = fake_adapter("facebook")
    container.depop_adapter.return_value = fake_adapter("depop")
    container.poshmark_adapter.return_value = fake_adapter("poshmark")
    container.ebay_adapter.side_effect = ConfigurationError("eBay credentials not configured")
    return container


def test_unknown_names_are_skipped_and_order_kept():
    registry = build_adapters(["poshmark", "craigslist", "facebook"], fake_container())
    assert registry.names() == ["poshmark", "facebook"]


def test_configuration_error_disables_only_that_adapter():
    registry = build_adapters(["facebook", "ebay", "depop", "poshmark"], fake_container())

    assert registry.names() == ["facebook", "depop", "poshmark"]
    assert "ebay" not in registry
    assert registry.get("ebay") is None


def test_duplicate_names_build_one_adapter():
    container = fake_container()
    registry = build_adapters(["depop", "depop"], container)

    assert len(registry) == 1
    container.depop_adapter.assert_called_once()


def test_registry_lookup():
    registry = AdapterRegistry()
    depop = fake_adapter("depop")
    registry.register(depop)

    assert registry.get("depop") is depop
    assert registry.all() == [depop]
