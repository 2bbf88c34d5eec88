"""
API module for the VSS server.

This module provides the external interface: an aiohttp HTTP server that
maps JSON requests onto VssService and VssError onto error responses.

Invariants:
    - Status codes and error codes follow the fixed wire contract
    - No request handler touches the store directly

How to change safely:
    - Add new routes, don't modify existing ones
    - Keep request models backward compatible
"""

from .http_server import ERROR_STATUS, HttpServer, create_http_app

__all__ = [
    "ERROR_STATUS",
    "HttpServer",
    "create_http_app",
]
