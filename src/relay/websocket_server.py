"""
WebSocket Relay Server

Handles persistent WebSocket connections from peers, feeds their
requests into the session registry and delivers the resulting notices
and relayed negotiation messages.
"""

import json
import logging
import uuid
from typing import Any, Dict, Iterable

import websockets

from .room_state import Delivery, Role, SessionRegistry
from .schemas import (
    NEGOTIATION_PAYLOAD_KEYS,
    create_error_response,
    create_negotiation_message,
    create_registered_response,
)

logger = logging.getLogger(__name__)


class WebSocketServer:
    """
    WebSocket server brokering negotiation between paired peers.

    Each accepted socket gets a connection id. Inbound messages are JSON
    envelopes of the form {"type": ..., "data": {...}}.
    """

    def __init__(self, registry: SessionRegistry, host: str, port: int):
        """
        Initialize the WebSocket server.

        Args:
            registry: The session registry instance
            host: Host address to bind to
            port: Port to listen on
        """
        self.registry = registry
        self.host = host
        self.port = port
        self.server = None
        # connection id -> websocket
        self.connections: Dict[str, Any] = {}

    async def start(self):
        """Start the WebSocket server."""
        self.server = await websockets.serve(
            self.handle_client, self.host, self.port
        )
        logger.info(f"WebSocket relay started on ws://{self.host}:{self.port}")

    async def stop(self):
        """Stop the WebSocket server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            logger.info("WebSocket relay stopped")

    async def handle_client(self, websocket):
        """
        Handle a client connection for its whole lifetime.

        Args:
            websocket: The WebSocket connection
        """
        connection_id = str(uuid.uuid4())
        self.connections[connection_id] = websocket
        logger.info(f"New connection: {connection_id}")

        try:
            async for message in websocket:
                await self.process_message(connection_id, message)
        except websockets.exceptions.ConnectionClosed:
            logger.info(f"Connection {connection_id} closed")
        except Exception as e:
            logger.error(f"Error handling connection {connection_id}: {e}")
        finally:
            await self.handle_disconnect(connection_id)

    async def handle_disconnect(self, connection_id: str):
        """Drop a connection and notify whoever shared its room."""
        self.connections.pop(connection_id, None)
        logger.info(f"Connection {connection_id} disconnected")
        await self.deliver(self.registry.unregister(connection_id))

    async def process_message(self, connection_id: str, message: str):
        """
        Process an incoming message from a client.

        Args:
            connection_id: Id of the sending connection
            message: The message string (JSON)
        """
        try:
            envelope = json.loads(message)
            if not isinstance(envelope, dict):
                raise ValueError("Message must be a JSON object")
            message_type = envelope.get("type")
            if not isinstance(message_type, str):
                raise ValueError("Message type must be a string")
            data = envelope.get("data") or {}
            if not isinstance(data, dict):
                raise ValueError("Message data must be an object")

            if message_type == "register":
                await self.handle_register(connection_id, data)
            elif message_type == "join":
                await self.handle_join(connection_id, data)
            elif message_type == "transition-to-viewer":
                await self.handle_transition(connection_id)
            elif message_type in NEGOTIATION_PAYLOAD_KEYS:
                await self.handle_negotiation(connection_id, message_type, data)
            elif message_type == "reconnect-request":
                await self.handle_reconnect_request(connection_id, data)
            else:
                logger.warning(f"Unknown message type: {message_type}")
                await self.send_error(
                    connection_id, f"Unknown message type: {message_type}"
                )

        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON received: {e}")
            await self.send_error(connection_id, "Invalid JSON format")
        except (TypeError, ValueError) as e:
            logger.error(f"Rejected message from {connection_id}: {e}")
            await self.send_error(connection_id, str(e))

    async def handle_register(self, connection_id: str, data: dict):
        room_id, role_name = _required_strings(data, "room_id", "role")
        role = Role.parse(role_name)
        deliveries = self.registry.register(room_id, role, connection_id)
        await self.send_to(
            connection_id,
            create_registered_response(connection_id, room_id, role.value),
        )
        await self.deliver(deliveries)

    async def handle_join(self, connection_id: str, data: dict):
        (room_id,) = _required_strings(data, "room_id")
        deliveries = self.registry.join(room_id, connection_id)
        participant = self.registry.get_participant(connection_id)
        await self.send_to(
            connection_id,
            create_registered_response(
                connection_id, room_id, participant.role.value
            ),
        )
        await self.deliver(deliveries)

    async def handle_transition(self, connection_id: str):
        await self.deliver(self.registry.transition_to_responder(connection_id))

    async def handle_negotiation(
        self, connection_id: str, message_type: str, data: dict
    ):
        payload_key = NEGOTIATION_PAYLOAD_KEYS[message_type]
        (room_id,) = _required_strings(data, "room_id")
        if payload_key not in data:
            raise ValueError(f"Missing room_id or {payload_key}")
        target_id = data.get("target_id")
        if target_id is not None and not isinstance(target_id, str):
            raise ValueError("target_id must be a string")
        self._require_member(connection_id, room_id)

        logger.debug(
            f"Connection {connection_id} sending {message_type} "
            f"in room {room_id}"
        )
        outbound = create_negotiation_message(
            message_type, data[payload_key], connection_id
        )
        await self.deliver(
            self.registry.relay(room_id, connection_id, outbound, target_id)
        )

    async def handle_reconnect_request(self, connection_id: str, data: dict):
        room_id, role_name = _required_strings(data, "room_id", "role")
        self._require_member(connection_id, room_id)
        await self.deliver(
            self.registry.request_reconnect(
                room_id, Role.parse(role_name), connection_id
            )
        )

    def _require_member(self, connection_id: str, room_id: str):
        participant = self.registry.get_participant(connection_id)
        if participant is None or participant.room_id != room_id:
            raise ValueError(f"Not registered in room {room_id}")

    async def deliver(self, deliveries: Iterable[Delivery]):
        for delivery in deliveries:
            await self.send_to(delivery.target_id, delivery.message)

    async def send_to(self, connection_id: str, message: dict) -> bool:
        """
        Send an envelope to one connection.

        Returns:
            False if the connection is gone
        """
        websocket = self.connections.get(connection_id)
        if websocket is None:
            logger.debug(
                f"Dropping {message.get('type')} for unknown "
                f"connection {connection_id}"
            )
            return False
        try:
            await websocket.send(json.dumps(message))
            return True
        except websockets.exceptions.ConnectionClosed:
            return False

    async def send_error(self, connection_id: str, error_message: str):
        await self.send_to(connection_id, create_error_response(error_message))


def _required_strings(data: dict, *keys: str) -> tuple:
    """
    Raises:
        ValueError: If any key is missing, empty or not a string
    """
    values = tuple(data.get(key) for key in keys)
    if not all(isinstance(value, str) and value for value in values):
        raise ValueError(f"Missing {' or '.join(keys)}")
    return values
