"""Tests for environment settings and the adapter tuning file."""

from secondhand.config import ALL_MARKETPLACES, Config, MarketplaceSettings


def test_all_marketplaces_enabled_by_default():
    assert MarketplaceSettings().enabled_marketplaces == list(ALL_MARKETPLACES)


def test_marketplaces_env_is_normalized(monkeypatch):
    monkeypatch.setenv("MARKETPLACES", " eBay, depop,,EBAY ,craigslist")
    assert MarketplaceSettings().enabled_marketplaces == ["ebay", "depop", "craigslist"]


def test_defaults_when_tuning_file_missing(tmp_path):
    config = Config(config_dir=tmp_path)
    assert config.tuning.poshmark.grace_seconds == 2.0
    assert config.tuning.facebook.default_location == "san francisco"


def test_tuning_file_overrides_defaults(tmp_path):
    (tmp_path / "adapters.yml").write_text(
        "adapters:\n"
        "  depop:\n"
        "    timeout_seconds: 60\n"
        "  facebook:\n"
        "    default_location: chicago\n"
    )
    config = Config(config_dir=tmp_path)

    assert config.tuning.depop.timeout_seconds == 60
    assert config.tuning.depop.default_limit == 24
    assert config.tuning.facebook.default_location == "chicago"
    assert config.tuning.max_timeout_seconds == 60


def test_packaged_tuning_file_loads():
    config = Config()
    assert config.tuning.ebay.timeout_seconds == 20
    assert config.tuning.poshmark.timeout_seconds == 45


def test_container_config(monkeypatch, tmp_path):
    monkeypatch.setenv("EBAY_CLIENT_ID", "client")
    monkeypatch.setenv("EBAY_CLIENT_SECRET", "secret")
    monkeypatch.setenv("CHROME_PATH", "/opt/chrome")
    monkeypatch.setenv("MARKETPLACES", "ebay,poshmark")

    data = Config(config_dir=tmp_path).as_container_config()

    assert data["marketplaces"] == ["ebay", "poshmark"]
    assert data["ebay"]["client_id"] == "client"
    assert data["ebay"]["marketplace_id"] == "EBAY_US"
    assert data["ebay"]["token_refresh_margin_seconds"] == 60
    assert data["browser"] == {"executable_path": "/opt/chrome", "headless": True}
    assert data["aggregator"]["deadline_seconds"] == 50.0
