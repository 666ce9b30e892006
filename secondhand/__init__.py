"""Secondhand marketplace search package.

Searches several independent secondhand marketplaces with one query and
returns normalized for-sale listings. Each marketplace is reached through a
different access method:

- eBay through its official Browse API
- Facebook Marketplace through anonymous GraphQL requests
- Depop through its web API, called from inside a headless browser page
- Poshmark through intercepted page traffic with a DOM-scraping fallback

The package follows a modular architecture with separate concerns for:
- Shared data models and error types
- Marketplace adapters and their registry
- Process-scoped services (caches, browser session, fan-out aggregator)
- Configuration and dependency wiring
"""
