"""HTTP session factory for the API-based adapters."""

from collections.abc import Callable

import aiohttp

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

SessionFactory = Callable[[], aiohttp.ClientSession]


def create_session(timeout: float = 20.0) -> aiohttp.ClientSession:
    """Create configured aiohttp session for marketplace API calls.

    Args:
        timeout: Total per-request timeout in seconds.

    Returns:
        aiohttp.ClientSession: Session with connection limits and browser-like headers.
    """
    connector = aiohttp.TCPConnector(limit=100, limit_per_host=30)
    client_timeout = aiohttp.ClientTimeout(total=timeout)

    headers = {
        "User-Agent": DEFAULT_USER_AGENT,
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.9",
    }

    return aiohttp.ClientSession(connector=connector, timeout=client_timeout, headers=headers)
