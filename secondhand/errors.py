"""Exception hierarchy for marketplace adapters.

Adapters raise these internally; ``search`` converts them into failed
outcomes while detail lookups and health probes let them propagate.
"""


class MarketplaceError(Exception):
    """Base class for every adapter failure."""


class ConfigurationError(MarketplaceError):
    """Missing credential or browser executable. Disables one adapter."""


class UpstreamUnavailable(MarketplaceError):
    """Network failure or non-success response from the marketplace."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class AuthFailure(MarketplaceError):
    """Token exchange rejected by the provider."""


class SchemaDrift(MarketplaceError):
    """Response shape no longer matches what the adapter expects."""


class LocationUnresolved(MarketplaceError):
    """Free-text location could not be resolved to coordinates."""


class ExtractionFailure(MarketplaceError):
    """Neither response interception nor page extraction produced data."""
