"""Adapter registry.

The set of marketplaces is closed: every supported name maps to the
container provider that builds its adapter. The registry is resolved once at
startup from the configured marketplace list.
"""

import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from ..errors import ConfigurationError
from .base import AdapterProtocol

if TYPE_CHECKING:
    from ..core.container import Container

logger = logging.getLogger(__name__)

AdapterFactory = Callable[["Container"], AdapterProtocol]

ADAPTER_FACTORIES: dict[str, AdapterFactory] = {
    "facebook": lambda container: container.facebook_adapter(),
    "ebay": lambda container: container.ebay_adapter(),
    "depop": lambda container: container.depop_adapter(),
    "poshmark": lambda container: container.poshmark_adapter(),
}


class AdapterRegistry:
    """Ordered collection of the adapters enabled for this process."""

    def __init__(self) -> None:
        self._adapters: dict[str, AdapterProtocol] = {}
        self.logger = logging.getLogger(f"{__name__}.registry")

    def register(self, adapter: AdapterProtocol) -> None:
        """Register an adapter under its marketplace name.

        Args:
            adapter: Adapter instance implementing AdapterProtocol.
        """
        self._adapters[adapter.name] = adapter
        self.logger.info(f"Registered adapter for marketplace: {adapter.name}")

    def get(self, name: str) -> AdapterProtocol | None:
        return self._adapters.get(name)

    def all(self) -> list[AdapterProtocol]:
        """Get registered adapters in registration order."""
        return list(self._adapters.values())

    def names(self) -> list[str]:
        return list(self._adapters.keys())

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, name: object) -> bool:
        return name in self._adapters


def build_adapters(enabled: Iterable[str], container: "Container") -> AdapterRegistry:
    """Build the registry for the enabled marketplaces.

    Unknown names are skipped. An adapter whose construction raises
    ConfigurationError (e.g. missing credentials) is left out; the others
    are still registered.

    Args:
        enabled: Marketplace names in the desired order.
        container: Container providing the adapter factories.

    Returns:
        AdapterRegistry holding every adapter that could be built.
    """
    registry = AdapterRegistry()
    for name in enabled:
        factory = ADAPTER_FACTORIES.get(name)
        if factory is None:
            logger.warning(f"Unknown marketplace {name!r}, skipping")
            continue
        if name in registry:
            continue

        try:
            adapter = factory(container)
        except ConfigurationError as e:
            logger.warning(f"Marketplace {name!r} disabled: {e}")
            continue

        registry.register(adapter)

    logger.info(f"Enabled marketplaces: {', '.join(registry.names()) or 'none'}")
    return registry
