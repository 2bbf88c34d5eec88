"""
VSS Server - Main entry point.

This module starts the VSS server:
- Versioned SQLite store
- Transaction and pagination engines
- HTTP server (primary API)

Usage:
    python -m vssd.vss_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The data directory exists before the first request is accepted
    - Graceful shutdown waits for in-flight requests

How to change safely:
    - Add new components with enable/disable flags
    - Test shutdown sequence thoroughly
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

import json_log_formatter

from .api import HttpServer
from .config import ServerConfig
from .engine import VssService

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


class Server:
    """VSS Server orchestrator.

    Manages the lifecycle of the server components.

    Attributes:
        config: Server configuration
        service: VSS operations over the configured store
        http_server: HTTP API server

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Server is running
        >>> await server.stop()
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized in start())
        self.service: VssService | None = None
        self.http_server: HttpServer | None = None

    async def start(self) -> None:
        """Start the server and wait for a shutdown request."""
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting VSS server")
        self.config.log_config()

        try:
            Path(self.config.storage.data_dir).mkdir(parents=True, exist_ok=True)

            self.service = VssService.from_config(self.config)

            self.http_server = HttpServer(self.service, self.config.http)
            await self.http_server.start()

            self._running = True
            logger.info("VSS server started successfully")

            await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if not self._running and self.http_server is None:
            return

        logger.info("Stopping VSS server")

        if self.http_server:
            await self.http_server.stop()
            self.http_server = None

        self._running = False
        logger.info("VSS server stopped")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    server = Server(config)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(server.stop())
        loop.close()


if __name__ == "__main__":
    main()
