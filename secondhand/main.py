"""Application entry point.

Configures logging, builds the dependency-injection container from the
environment and ``adapters.yml``, and manages the lifetime of the shared
resources. The calling agent's dispatcher uses :func:`initialize_resources`
to obtain the aggregator and :func:`cleanup_resources` on shutdown.
"""

import asyncio
import logging

from .adapters.registry import build_adapters
from .config import Config
from .core.container import Container
from .services.aggregator import Aggregator

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(levelname)s - %(message)s",
        level=level,
    )


def create_container(config: Config | None = None) -> Container:
    """Create a container configured from settings.

    Args:
        config: Loaded configuration, read from the environment when omitted.

    Returns:
        Container ready to build adapters.
    """
    if config is None:
        config = Config()

    container = Container()
    container.config.from_dict(config.as_container_config())
    return container


async def initialize_resources(container: Container) -> Aggregator:
    """Resolve the enabled adapters and build the aggregator.

    The browser is launched lazily by the first adapter that needs a page.

    Args:
        container: Configured container.

    Returns:
        Aggregator over every adapter that could be built.
    """
    registry = build_adapters(container.config.marketplaces(), container)
    if not len(registry):
        logger.warning("No marketplaces could be enabled")
    return container.aggregator(registry=registry)


async def cleanup_resources(container: Container) -> None:
    """Shut down the browser and drop cached state."""
    try:
        await container.browser().shutdown()
        logger.info("Browser session closed")
    except Exception as e:
        logger.warning(f"Error during browser shutdown: {e}")

    container.location_cache().clear()
    container.token_cache().clear()
    logger.info("Caches cleared")


async def _run_health_check() -> dict[str, bool]:
    container = create_container()
    aggregator = await initialize_resources(container)
    try:
        return await aggregator.health()
    finally:
        await cleanup_resources(container)


def main() -> None:
    """Probe every enabled marketplace and log whether it is reachable."""
    configure_logging()
    results = asyncio.run(_run_health_check())
    for name, healthy in results.items():
        logger.info(f"{name}: {'ok' if healthy else 'unavailable'}")


if __name__ == "__main__":
    main()
