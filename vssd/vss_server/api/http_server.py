"""
HTTP server implementation for VSS.

This module exposes the four VSS operations over HTTP with JSON bodies:
- POST /vss/getObject
- POST /vss/putObjects
- POST /vss/deleteObject
- POST /vss/listKeyVersions
- GET /health

Invariants:
    - Handlers only translate; all semantics live in VssService
    - Every error response is {"error_code": ..., "message": ...}
    - Undecodable or ill-typed bodies are INVALID_REQUEST_EXCEPTION

How to change safely:
    - Keep routes and field names in sync with the wire schema
    - Map new VssError subclasses in ERROR_STATUS
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from aiohttp import web
from pydantic import BaseModel, ValidationError

from ..config import HttpConfig
from ..engine import VssService
from ..errors import ErrorCode, InvalidRequestError, VssError
from ..store import DeleteItem, WriteItem
from .schemas import (
    DeleteObjectRequest,
    GetObjectRequest,
    ListKeyVersionsRequest,
    PutObjectRequest,
    key_value_to_json,
)

logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("vss_service", VssService)

ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.CONFLICT_EXCEPTION: 409,
    ErrorCode.INVALID_REQUEST_EXCEPTION: 400,
    ErrorCode.NO_SUCH_KEY_EXCEPTION: 404,
    ErrorCode.AUTH_EXCEPTION: 401,
    ErrorCode.INTERNAL_SERVER_EXCEPTION: 500,
}

M = TypeVar("M", bound=BaseModel)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def error_response(code: ErrorCode, message: str, status: int | None = None) -> web.Response:
    return web.json_response(
        {"error_code": code.name, "message": message},
        status=status or ERROR_STATUS.get(code, 500),
    )


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException as e:
        if e.status < 400:
            raise
        # aiohttp rejections (oversized body, unknown route) keep their status
        code = (
            ErrorCode.INVALID_REQUEST_EXCEPTION
            if e.status < 500
            else ErrorCode.INTERNAL_SERVER_EXCEPTION
        )
        return error_response(code, e.text or e.reason, status=e.status)
    except VssError as e:
        return error_response(e.code, e.message)
    except Exception as e:
        logger.error(f"HTTP handler error: {e}", exc_info=True)
        return error_response(ErrorCode.INTERNAL_SERVER_EXCEPTION, "Internal server error")


def create_http_app(service: VssService, config: HttpConfig | None = None) -> web.Application:
    """Create an HTTP application for VSS.

    Args:
        service: VssService instance
        config: HTTP server configuration

    Returns:
        aiohttp Application instance
    """
    config = config or HttpConfig()
    app = web.Application(
        client_max_size=config.max_request_bytes,
        middlewares=[error_middleware],
    )
    app[SERVICE_KEY] = service

    app.router.add_post("/vss/getObject", handle_get_object)
    app.router.add_post("/vss/putObjects", handle_put_objects)
    app.router.add_post("/vss/deleteObject", handle_delete_object)
    app.router.add_post("/vss/listKeyVersions", handle_list_key_versions)
    app.router.add_get("/health", handle_health)

    return app


async def parse_body(request: web.Request, model: type[M]) -> M:
    """Read and validate a JSON request body.

    Raises:
        InvalidRequestError: If the body is not valid JSON for the model
    """
    body = await request.read()
    try:
        return model.model_validate_json(body or b"{}")
    except ValidationError as e:
        raise InvalidRequestError(f"Invalid request body: {e.error_count()} error(s)") from e


async def handle_get_object(request: web.Request) -> web.Response:
    """Handle POST /vss/getObject - Read one key."""
    body = await parse_body(request, GetObjectRequest)
    kv = await request.app[SERVICE_KEY].get_object(body.store_id, body.key)
    return web.json_response({"value": key_value_to_json(kv)})


async def handle_put_objects(request: web.Request) -> web.Response:
    """Handle POST /vss/putObjects - Atomic multi-key write/delete."""
    body = await parse_body(request, PutObjectRequest)
    await request.app[SERVICE_KEY].put_object(
        body.store_id,
        global_version=body.global_version,
        transaction_items=[
            WriteItem(key=item.key, expected_version=item.version, value=item.value)
            for item in body.transaction_items
        ],
        delete_items=[
            DeleteItem(key=item.key, expected_version=item.version) for item in body.delete_items
        ],
    )
    return web.json_response({})


async def handle_delete_object(request: web.Request) -> web.Response:
    """Handle POST /vss/deleteObject - Idempotent single-key delete."""
    body = await parse_body(request, DeleteObjectRequest)
    if body.key_value is None:
        raise InvalidRequestError("key_value is required")
    await request.app[SERVICE_KEY].delete_object(
        body.store_id, body.key_value.key, body.key_value.version
    )
    return web.json_response({})


async def handle_list_key_versions(request: web.Request) -> web.Response:
    """Handle POST /vss/listKeyVersions - One page of keys and versions."""
    body = await parse_body(request, ListKeyVersionsRequest)
    result = await request.app[SERVICE_KEY].list_key_versions(
        body.store_id,
        key_prefix=body.key_prefix,
        page_size=body.page_size,
        page_token=body.page_token,
    )

    payload: dict[str, Any] = {
        "key_versions": [key_value_to_json(kv, include_value=False) for kv in result.key_versions],
        "next_page_token": result.next_page_token,
    }
    if result.global_version is not None:
        payload["global_version"] = result.global_version
    return web.json_response(payload)


async def handle_health(request: web.Request) -> web.Response:
    """Handle GET /health - Health check."""
    result = await request.app[SERVICE_KEY].health()
    status = 200 if result.get("healthy") else 503
    return web.json_response(result, status=status)


class HttpServer:
    """HTTP server wrapper for VSS.

    This class manages the aiohttp server lifecycle:
    - Application setup
    - Socket binding
    - Graceful shutdown

    Example:
        >>> server = HttpServer(service, HttpConfig(port=8080))
        >>> await server.start()
        >>> # Server is now running
        >>> await server.stop()
    """

    def __init__(self, service: VssService, config: HttpConfig | None = None) -> None:
        self.service = service
        self.config = config or HttpConfig()
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Start serving."""
        if self._runner is not None:
            logger.warning("Server already running")
            return

        runner = web.AppRunner(create_http_app(self.service, self.config))
        await runner.setup()
        site = web.TCPSite(runner, self.config.host, self.config.port)
        await site.start()
        self._runner = runner

        logger.info(
            f"HTTP server running on http://{self.config.host}:{self.config.port}",
            extra={"host": self.config.host, "port": self.config.port},
        )

    async def stop(self) -> None:
        """Stop serving, letting in-flight requests finish."""
        if self._runner is None:
            return

        logger.info("Stopping HTTP server")
        await self._runner.cleanup()
        self._runner = None
