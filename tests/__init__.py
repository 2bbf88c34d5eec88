"""
VSS Test Suite.

This package contains:
- unit/: Unit tests (temporary SQLite stores, no network)
- integration/: HTTP API and SDK tests against an in-process aiohttp server
"""
