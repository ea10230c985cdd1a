#!/usr/bin/env python3
"""
CameraConnect Relay Server

Runs the WebSocket relay and the HTTP polling signaling endpoint side
by side in one process.
"""

import asyncio
import logging
import os
import sys

from .http_server import HTTPServer
from .message_log import SESSION_TTL, PollingTransport
from .room_state import SessionRegistry
from .websocket_server import WebSocketServer

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL = 60  # seconds between idle session sweeps


async def run_server(
    ws_host: str,
    ws_port: int,
    http_host: str,
    http_port: int,
    session_ttl: float = SESSION_TTL,
    cleanup_interval: float = CLEANUP_INTERVAL,
):
    """
    Run the relay with WebSocket and HTTP signaling support.

    Args:
        ws_host: WebSocket host address to bind to
        ws_port: WebSocket port to listen on
        http_host: HTTP host address to bind to
        http_port: HTTP port to listen on
        session_ttl: Seconds an idle polling session survives
        cleanup_interval: Seconds between idle session sweeps
    """
    registry = SessionRegistry()
    transport = PollingTransport()

    ws_server = WebSocketServer(registry, ws_host, ws_port)
    http_server = HTTPServer(transport, http_host, http_port, registry)

    await ws_server.start()
    await http_server.start()

    logger.info("Relay server is ready")

    cleanup_task = asyncio.create_task(
        idle_session_cleanup(transport, session_ttl, cleanup_interval)
    )

    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("Server shutdown requested")
    finally:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
        await http_server.stop()
        await ws_server.stop()
        logger.info("Relay server stopped")


async def idle_session_cleanup(
    transport: PollingTransport,
    session_ttl: float,
    interval: float,
):
    """
    Periodic task deleting polling sessions nobody touched for a while.

    Args:
        transport: The polling transport to sweep
        session_ttl: Seconds of inactivity before a session is dropped
        interval: Seconds between sweeps
    """
    logger.info("Starting idle session cleanup task")

    while True:
        try:
            await asyncio.sleep(interval)
            expired = transport.expire_idle_sessions(session_ttl)
            if expired:
                logger.info(f"Expired {len(expired)} idle signaling sessions")
        except asyncio.CancelledError:
            logger.info("Idle session cleanup task cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in idle session cleanup: {e}")


def main():
    """Main entry point for the relay server."""
    logger.info("Starting CameraConnect relay server...")

    ws_host = os.environ.get("WEBSOCKET_HOST", "0.0.0.0")
    ws_port = int(os.environ.get("WEBSOCKET_PORT", "3001"))

    http_host = os.environ.get("HTTP_HOST", "0.0.0.0")
    http_port = int(os.environ.get("HTTP_PORT", "3000"))

    session_ttl = float(os.environ.get("SESSION_TTL", str(SESSION_TTL)))
    cleanup_interval = float(
        os.environ.get("CLEANUP_INTERVAL", str(CLEANUP_INTERVAL))
    )

    try:
        asyncio.run(
            run_server(
                ws_host,
                ws_port,
                http_host,
                http_port,
                session_ttl,
                cleanup_interval,
            )
        )
    except KeyboardInterrupt:
        logger.info("Shutting down relay server...")
        sys.exit(0)


if __name__ == "__main__":
    main()
