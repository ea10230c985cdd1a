"""
HTTP Signaling Server

Exposes the polling transport over plain HTTP for peers that cannot keep
a WebSocket open:

    POST   /signaling                          {sessionId, type, data}
    GET    /signaling?sessionId&type&lastIndex
    DELETE /signaling?sessionId
    GET    /health
"""

import json
import logging
from typing import Optional

from aiohttp import web

from .message_log import (
    InvalidMessageTypeError,
    PollingTransport,
    SessionNotFoundError,
)
from .room_state import SessionRegistry

logger = logging.getLogger(__name__)

TRANSPORT_KEY = web.AppKey("transport", PollingTransport)
REGISTRY_KEY = web.AppKey("registry", SessionRegistry)


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def post_signaling(request: web.Request) -> web.Response:
    transport = request.app[TRANSPORT_KEY]
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return _error("Invalid JSON body", 400)
    if not isinstance(body, dict):
        return _error("Invalid JSON body", 400)

    session_id = body.get("sessionId")
    if not isinstance(session_id, str) or not session_id:
        return _error("Missing sessionId", 400)

    try:
        transport.post(session_id, body.get("type"), body.get("data"))
    except InvalidMessageTypeError:
        return _error("Invalid message type", 400)

    return web.json_response({"success": True})


async def get_signaling(request: web.Request) -> web.Response:
    transport = request.app[TRANSPORT_KEY]
    session_id = request.query.get("sessionId")
    message_type = request.query.get("type")
    if not session_id or not message_type:
        return _error("Missing sessionId or type", 400)

    try:
        last_index = int(request.query.get("lastIndex", "0"))
    except ValueError:
        return _error("lastIndex must be an integer", 400)

    try:
        messages, cursor = transport.poll(session_id, message_type, last_index)
    except InvalidMessageTypeError:
        return _error("Invalid message type", 400)
    except ValueError as e:
        return _error(str(e), 400)

    return web.json_response({"messages": messages, "lastIndex": cursor})


async def delete_signaling(request: web.Request) -> web.Response:
    transport = request.app[TRANSPORT_KEY]
    session_id = request.query.get("sessionId")
    if not session_id:
        return _error("Missing sessionId", 400)

    try:
        transport.clear(session_id)
    except SessionNotFoundError:
        return _error("Session not found", 404)

    return web.json_response({"success": True})


async def health(request: web.Request) -> web.Response:
    registry: Optional[SessionRegistry] = request.app.get(REGISTRY_KEY)
    return web.json_response(
        {
            "status": "ok",
            "rooms": registry.room_count() if registry else 0,
            "sessions": request.app[TRANSPORT_KEY].session_count(),
        }
    )


def create_app(
    transport: PollingTransport,
    registry: Optional[SessionRegistry] = None,
) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        transport: Polling transport backing /signaling
        registry: Optional registry whose room count /health reports
    """
    app = web.Application()
    app[TRANSPORT_KEY] = transport
    if registry is not None:
        app[REGISTRY_KEY] = registry

    app.router.add_post("/signaling", post_signaling)
    app.router.add_get("/signaling", get_signaling)
    app.router.add_delete("/signaling", delete_signaling)
    app.router.add_get("/health", health)
    return app


class HTTPServer:
    """Runs the signaling app on its own host and port."""

    def __init__(
        self,
        transport: PollingTransport,
        host: str,
        port: int,
        registry: Optional[SessionRegistry] = None,
    ):
        self.transport = transport
        self.registry = registry
        self.host = host
        self.port = port
        self._runner: Optional[web.AppRunner] = None

    async def start(self):
        """Start serving HTTP requests."""
        self._runner = web.AppRunner(create_app(self.transport, self.registry))
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(f"HTTP signaling server started on http://{self.host}:{self.port}")

    async def stop(self):
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("HTTP signaling server stopped")
