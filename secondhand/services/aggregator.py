"""Fan-out search across all enabled marketplaces.

One query is issued to every registered adapter concurrently. Each adapter
call is guarded so that a misbehaving adapter, or one that overruns the outer
deadline, yields a failed outcome for its own marketplace without affecting
the others. Results come back in registration order.
"""

import asyncio
import logging

from ..adapters.base import AdapterProtocol
from ..adapters.registry import AdapterRegistry
from ..errors import MarketplaceError
from ..models import ListingDetail, Outcome, Query

logger = logging.getLogger(__name__)


class Aggregator:
    """Runs searches, detail lookups and health probes over the registry."""

    def __init__(self, registry: AdapterRegistry, deadline_seconds: float = 50.0):
        """Initialize aggregator.

        Args:
            registry: Enabled adapters.
            deadline_seconds: Outer ceiling for any single adapter call.
        """
        self.registry = registry
        self.deadline_seconds = deadline_seconds

    async def search(self, query: Query) -> list[Outcome]:
        """Search every enabled marketplace concurrently.

        Args:
            query: Search request.

        Returns:
            One outcome per adapter, in registration order. Never raises.
        """
        adapters = self.registry.all()
        if not adapters:
            logger.warning("Search requested with no marketplaces enabled")
            return []

        logger.info(f"Searching {len(adapters)} marketplaces for {query.text!r}")
        outcomes = await asyncio.gather(*(self._guarded_search(a, query) for a in adapters))

        succeeded = sum(1 for outcome in outcomes if outcome.success)
        logger.info(f"Search finished: {succeeded}/{len(outcomes)} marketplaces succeeded")
        return list(outcomes)

    async def _guarded_search(self, adapter: AdapterProtocol, query: Query) -> Outcome:
        try:
            return await asyncio.wait_for(adapter.search(query), timeout=self.deadline_seconds)
        except TimeoutError:
            message = f"{adapter.display_name} search timed out after {self.deadline_seconds:g}s"
            logger.error(message)
            return Outcome.failure(adapter.name, message)
        except Exception as e:
            logger.exception(f"Adapter {adapter.name} raised during search")
            return Outcome.failure(adapter.name, f"{adapter.display_name} search failed: {e}")

    async def get_listing_details(self, marketplace: str, listing_id: str) -> ListingDetail:
        """Fetch details for one listing from the named marketplace.

        Args:
            marketplace: Marketplace name, e.g. "ebay".
            listing_id: Marketplace-scoped listing id.

        Returns:
            ListingDetail from the adapter.

        Raises:
            MarketplaceError: If the marketplace is not enabled or the lookup fails.
        """
        adapter = self.registry.get(marketplace)
        if adapter is None:
            raise MarketplaceError(f"Marketplace {marketplace!r} is not enabled")

        try:
            return await asyncio.wait_for(
                adapter.get_listing_details(listing_id), timeout=self.deadline_seconds
            )
        except TimeoutError as e:
            raise MarketplaceError(
                f"{adapter.display_name} detail lookup timed out after {self.deadline_seconds:g}s"
            ) from e

    async def health(self) -> dict[str, bool]:
        """Probe every enabled marketplace.

        Returns:
            Mapping of marketplace name to health; probes that raise count as False.
        """
        adapters = self.registry.all()
        results = await asyncio.gather(
            *(asyncio.wait_for(a.health_check(), timeout=self.deadline_seconds) for a in adapters),
            return_exceptions=True,
        )

        health: dict[str, bool] = {}
        for adapter, result in zip(adapters, results):
            if isinstance(result, BaseException):
                logger.warning(f"Health check for {adapter.name} failed: {result!r}")
                health[adapter.name] = False
            else:
                health[adapter.name] = bool(result)
        return health
