"""
Relay Signaling Client

This module provides the client side of the persistent WebSocket relay.
It registers the peer in a room under a role, sends offers, answers and
candidates, and turns every pushed envelope into a typed
SignalingMessage for the negotiation controller.

Architecture:
    - Uses WebSocket for real-time bidirectional communication
    - Supports dependency injection for the network layer (for testability)
    - Async/await pattern for non-blocking I/O operations
"""

import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets

from .schemas import (
    LOBBY,
    VIEWER,
    AnswerRequest,
    BaseRequest,
    CandidateRequest,
    OfferRequest,
    ReconnectRequest,
    RegisterRequest,
    Registered,
    RelayError,
    RouteNotice,
    SignalingMessage,
    TransitionRequest,
    parse_message,
)

logger = logging.getLogger(__name__)

MessageHandler = Callable[[SignalingMessage], Optional[Awaitable[None]]]


class RelaySignalingClient:
    """
    Signaling over a persistent WebSocket connection to the relay.

    Attributes:
        relay_url: WebSocket URL of the relay (e.g., ws://localhost:3001)
        room_id: Room shared with the other peer
        role: Wire name of our role; becomes "viewer" after a lobby handoff
        connection_id: Id the relay assigned to us, once registered
        websocket: Active WebSocket connection (None if not connected)
    """

    def __init__(
        self,
        relay_url: str,
        room_id: str,
        role: str,
        websocket_factory: Optional[Callable] = None,
    ):
        """
        Initialize the relay client.

        Args:
            relay_url: WebSocket URL of the relay
            room_id: Room to register in
            role: Role to register as (camera, viewer or homePage)
            websocket_factory: Optional factory for creating WebSocket
                             connections (for dependency injection/testing)
        """
        self.relay_url = relay_url
        self.room_id = room_id
        self.role = role
        self.connection_id: Optional[str] = None
        self.websocket = None
        self._websocket_factory = websocket_factory or websockets.connect
        self._message_handler: Optional[MessageHandler] = None
        self._connected = False

        logger.info(f"RelaySignalingClient initialized for relay: {relay_url}")

    async def connect(self) -> None:
        """
        Establish the WebSocket connection and register in the room.

        Raises:
            ConnectionError: If connection fails
        """
        try:
            logger.info(f"Connecting to {self.relay_url}...")
            self.websocket = await self._websocket_factory(self.relay_url)
            self._connected = True
            logger.info("Successfully connected to relay")
        except Exception as e:
            logger.error(f"Failed to connect to relay: {e}")
            raise ConnectionError(f"Could not connect to {self.relay_url}: {e}")

        await self.register()

    async def disconnect(self) -> None:
        """Close the WebSocket connection."""
        if self.websocket:
            if hasattr(self.websocket, "close"):
                await self.websocket.close()
            self.websocket = None
            self._connected = False
            logger.info("Disconnected from relay")

    close = disconnect

    @property
    def is_connected(self) -> bool:
        """Check if currently connected to the relay."""
        return self._connected and self.websocket is not None

    async def _send(self, request: BaseRequest) -> None:
        if not self.is_connected:
            raise ConnectionError("Not connected to the relay")
        await self.websocket.send(request.to_json())

    async def register(self) -> None:
        """Occupy our role slot in the room."""
        logger.info(f"Registering as {self.role} in room {self.room_id}")
        await self._send(RegisterRequest(self.room_id, self.role))

    async def transition(self) -> None:
        """Hand our lobby connection over to the viewer slot."""
        logger.info(f"Transitioning from {self.role} to {VIEWER}")
        await self._send(TransitionRequest(self.room_id))
        self.role = VIEWER

    async def send_offer(
        self, description: Dict[str, Any], target_id: Optional[str] = None
    ) -> None:
        await self._send(OfferRequest(self.room_id, description, target_id))

    async def send_answer(
        self, description: Dict[str, Any], target_id: Optional[str] = None
    ) -> None:
        await self._send(AnswerRequest(self.room_id, description, target_id))

    async def send_candidate(
        self, candidate: Dict[str, Any], target_id: Optional[str] = None
    ) -> None:
        await self._send(CandidateRequest(self.room_id, candidate, target_id))

    async def request_reconnect(self) -> None:
        """Ask the relay to tell our counterpart to rebuild its transport."""
        logger.info(f"Requesting reconnection as {self.role} in room {self.room_id}")
        await self._send(ReconnectRequest(self.room_id, self.role))

    def set_message_handler(self, handler: MessageHandler) -> None:
        """
        Register a callback for typed incoming messages.

        Args:
            handler: Callback (plain or async) receiving a SignalingMessage
        """
        self._message_handler = handler

    async def dispatch(self, raw: str) -> None:
        """Parse one envelope from the relay and hand it on."""
        try:
            message = parse_message(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring malformed relay message: {e}")
            return

        if isinstance(message, Registered):
            self.connection_id = message.connection_id
            self.role = message.role
            logger.info(
                f"Registered as {message.role} with id {message.connection_id}"
            )
        elif isinstance(message, RelayError):
            logger.error(f"Relay rejected a message: {message.message}")
        elif isinstance(message, RouteNotice) and self.role == LOBBY:
            await self.transition()

        if self._message_handler:
            result = self._message_handler(message)
            if inspect.isawaitable(result):
                await result

    async def handle_messages(self) -> None:
        """
        Listen for incoming messages until the connection closes.

        Every message is parsed and dispatched to the message handler if
        one is registered.
        """
        if not self.is_connected:
            raise ConnectionError("Not connected to the relay")

        logger.info("Starting relay message loop")

        try:
            async for raw in self.websocket:
                logger.debug(f"Received message: {raw}")
                await self.dispatch(raw)
        except websockets.exceptions.ConnectionClosed:
            logger.warning("Connection closed by relay")
            self._connected = False

    def _set_test_mode(self, mock_websocket: object = None) -> None:
        """
        Set the client in test mode with a mock connection.

        Args:
            mock_websocket: Required mock websocket object with send/recv

        Raises:
            ValueError: If mock_websocket is not provided
        """
        if mock_websocket is None:
            raise ValueError("_set_test_mode requires a mock_websocket object")
        self._connected = True
        self.websocket = mock_websocket
