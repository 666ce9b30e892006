"""Shared services package.

Contains the process-scoped services the adapters depend on: the location
and token caches, the headless browser session manager, the HTTP session
factory and the aggregator that fans a query out to every adapter.
"""
