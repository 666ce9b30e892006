"""Configuration management for the marketplace adapters.

Handles environment variables (credentials, browser override, enabled
marketplaces) and the adapter tuning file ``adapters.yml`` (deadlines,
default limits and provider-specific knobs). The adapters themselves never
read the environment; they receive the validated values through the
dependency-injection container.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

ALL_MARKETPLACES = ("facebook", "ebay", "depop", "poshmark")


class EbaySettings(BaseSettings):
    """eBay Browse API credentials.

    Attributes:
        client_id: OAuth application client id.
        client_secret: OAuth application client secret.
        marketplace_id: Value of the X-EBAY-C-MARKETPLACE-ID header.
    """
    client_id: str | None = Field(default=None, validation_alias="EBAY_CLIENT_ID")
    client_secret: str | None = Field(default=None, validation_alias="EBAY_CLIENT_SECRET")
    marketplace_id: str = Field(default="EBAY_US", validation_alias="EBAY_MARKETPLACE_ID")

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


class BrowserSettings(BaseSettings):
    """Headless browser settings.

    Attributes:
        executable_path: Explicit Chrome/Chromium path, overrides discovery.
        headless: Launch without a visible window.
    """
    executable_path: str | None = Field(default=None, validation_alias="CHROME_PATH")
    headless: bool = Field(default=True, validation_alias="BROWSER_HEADLESS")


class MarketplaceSettings(BaseSettings):
    """Which marketplaces are enabled for this process.

    Attributes:
        marketplaces: Comma-separated marketplace names, all when unset.
    """
    marketplaces: str | None = Field(default=None, validation_alias="MARKETPLACES")

    @property
    def enabled_marketplaces(self) -> list[str]:
        """Get the enabled marketplace names in declaration order.

        Returns:
            Lower-cased, de-duplicated names; every known marketplace when
            MARKETPLACES is not set.
        """
        if self.marketplaces is None:
            return list(ALL_MARKETPLACES)

        names: list[str] = []
        for raw in self.marketplaces.split(","):
            name = raw.strip().lower()
            if name and name not in names:
                names.append(name)
        return names


class EbayTuning(BaseModel):
    timeout_seconds: float = 20.0
    default_limit: int = 20
    token_refresh_margin_seconds: float = Field(default=60.0, ge=0, le=60)


class FacebookTuning(BaseModel):
    timeout_seconds: float = 20.0
    default_limit: int = 24
    default_location: str = "san francisco"
    radius_km: int = 16
    detail_doc_id: str = "24599524826383452"
    photos_doc_id: str = "10059604367394414"


class DepopTuning(BaseModel):
    timeout_seconds: float = 45.0
    default_limit: int = 24
    navigation_timeout_ms: int = 30000


class PoshmarkTuning(BaseModel):
    timeout_seconds: float = 45.0
    default_limit: int = 48
    navigation_timeout_ms: int = 30000
    grace_seconds: float = 2.0
    card_timeout_ms: int = 10000


class AdapterTuning(BaseModel):
    """Per-adapter tunables loaded from ``adapters.yml``."""

    ebay: EbayTuning = Field(default_factory=EbayTuning)
    facebook: FacebookTuning = Field(default_factory=FacebookTuning)
    depop: DepopTuning = Field(default_factory=DepopTuning)
    poshmark: PoshmarkTuning = Field(default_factory=PoshmarkTuning)

    @property
    def max_timeout_seconds(self) -> float:
        return max(
            self.ebay.timeout_seconds,
            self.facebook.timeout_seconds,
            self.depop.timeout_seconds,
            self.poshmark.timeout_seconds,
        )


class Config:
    """Application configuration manager.

    Centralizes loading of environment settings and the adapter tuning file,
    and exposes the flattened dictionary consumed by the container.
    """

    def __init__(self, config_dir: Path | None = None):
        """Initialize configuration manager.

        Args:
            config_dir: Directory holding adapters.yml, defaults to secondhand/data.
        """
        if config_dir is None:
            config_dir = Path(__file__).parent / "data"

        self.config_dir = Path(config_dir)

        self.ebay = EbaySettings()
        self.browser = BrowserSettings()
        self.marketplaces = MarketplaceSettings()
        self.tuning = self._load_tuning()

    def _load_tuning(self) -> AdapterTuning:
        """Load adapter tunables from YAML configuration.

        Returns:
            AdapterTuning with file values over built-in defaults.
        """
        tuning_path = self.config_dir / "adapters.yml"
        if not tuning_path.exists():
            return AdapterTuning()

        with open(tuning_path) as f:
            data = yaml.safe_load(f) or {}

        return AdapterTuning.model_validate(data.get("adapters", {}))

    @property
    def enabled_marketplaces(self) -> list[str]:
        return self.marketplaces.enabled_marketplaces

    def as_container_config(self) -> dict[str, Any]:
        """Flatten settings into the container configuration mapping.

        Returns:
            Nested dictionary suitable for ``Configuration.from_dict``.
        """
        return {
            "marketplaces": self.enabled_marketplaces,
            "ebay": {
                "client_id": self.ebay.client_id,
                "client_secret": self.ebay.client_secret,
                "marketplace_id": self.ebay.marketplace_id,
                **self.tuning.ebay.model_dump(),
            },
            "facebook": self.tuning.facebook.model_dump(),
            "depop": self.tuning.depop.model_dump(),
            "poshmark": self.tuning.poshmark.model_dump(),
            "browser": {
                "executable_path": self.browser.executable_path,
                "headless": self.browser.headless,
            },
            "aggregator": {
                "deadline_seconds": self.tuning.max_timeout_seconds + 5.0,
            },
        }
