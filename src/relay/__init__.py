"""
Relay Server Package

This package provides the signaling relay for CameraConnect: the session
registry pairing camera and viewer connections, the WebSocket relay
that forwards negotiation messages, and the HTTP polling fallback.
"""

from .room_state import (
    SessionRegistry,
    RoomRepository,
    Room,
    Role,
    Participant,
    Delivery,
)
from .message_log import (
    PollingTransport,
    MessageLogRepository,
    InvalidMessageTypeError,
    SessionNotFoundError,
    MESSAGE_TYPES,
    SESSION_TTL,
)
from .websocket_server import WebSocketServer
from .http_server import HTTPServer, create_app

__all__ = [
    "SessionRegistry",
    "RoomRepository",
    "Room",
    "Role",
    "Participant",
    "Delivery",
    "PollingTransport",
    "MessageLogRepository",
    "InvalidMessageTypeError",
    "SessionNotFoundError",
    "MESSAGE_TYPES",
    "SESSION_TTL",
    "WebSocketServer",
    "HTTPServer",
    "create_app",
]
