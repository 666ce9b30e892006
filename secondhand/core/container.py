"""Dependency-injection container.

Wires the process-scoped services (location cache, token cache, browser
session manager) into the adapters. Caches and the browser manager are
singletons so every adapter built from one container shares them.
"""

from dependency_injector import containers, providers

from ..adapters.depop import DepopAdapter
from ..adapters.ebay import EbayAdapter
from ..adapters.facebook import FacebookAdapter
from ..adapters.poshmark import PoshmarkAdapter
from ..services.aggregator import Aggregator
from ..services.browser_session import BrowserSessionManager
from ..services.http import create_session
from ..services.location_cache import LocationCache
from ..services.token_cache import TokenCache


class Container(containers.DeclarativeContainer):
    """DI container for the marketplace adapters."""

    config = providers.Configuration()

    # Services
    location_cache = providers.Singleton(LocationCache)
    token_cache = providers.Singleton(
        TokenCache, refresh_margin=config.ebay.token_refresh_margin_seconds
    )
    browser = providers.Singleton(
        BrowserSessionManager,
        executable_path=config.browser.executable_path,
        headless=config.browser.headless,
    )
    session_factory = providers.Object(create_session)

    # Adapters
    ebay_adapter = providers.Factory(
        EbayAdapter,
        client_id=config.ebay.client_id,
        client_secret=config.ebay.client_secret,
        token_cache=token_cache,
        marketplace_id=config.ebay.marketplace_id,
        session_factory=session_factory,
        timeout_seconds=config.ebay.timeout_seconds,
        default_limit=config.ebay.default_limit,
    )
    facebook_adapter = providers.Factory(
        FacebookAdapter,
        location_cache=location_cache,
        session_factory=session_factory,
        timeout_seconds=config.facebook.timeout_seconds,
        default_limit=config.facebook.default_limit,
        default_location=config.facebook.default_location,
        radius_km=config.facebook.radius_km,
        detail_doc_id=config.facebook.detail_doc_id,
        photos_doc_id=config.facebook.photos_doc_id,
    )
    depop_adapter = providers.Factory(
        DepopAdapter,
        browser=browser,
        timeout_seconds=config.depop.timeout_seconds,
        default_limit=config.depop.default_limit,
        navigation_timeout_ms=config.depop.navigation_timeout_ms,
    )
    poshmark_adapter = providers.Factory(
        PoshmarkAdapter,
        browser=browser,
        timeout_seconds=config.poshmark.timeout_seconds,
        default_limit=config.poshmark.default_limit,
        navigation_timeout_ms=config.poshmark.navigation_timeout_ms,
        grace_seconds=config.poshmark.grace_seconds,
        card_timeout_ms=config.poshmark.card_timeout_ms,
    )

    # Fan-out; the registry is supplied at call time once it has been built.
    aggregator = providers.Factory(
        Aggregator, deadline_seconds=config.aggregator.deadline_seconds
    )
