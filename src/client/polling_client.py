"""
Polling Signaling Client

Signaling over the relay's HTTP endpoint for environments without a
persistent socket. Offers, answers and candidates are posted to the
session log; the other side's messages are picked up by polling each
relevant type once per interval with its own cursor.
"""

import asyncio
import inspect
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

from .schemas import (
    CAMERA,
    Answer,
    Candidate,
    Offer,
    ReconnectNotice,
    SignalingMessage,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1.0  # seconds between polling rounds

MessageHandler = Callable[[SignalingMessage], Optional[Awaitable[None]]]


class PollingSignalingClient:
    """
    Signaling over HTTP request/response.

    Each posted entry is wrapped as {"sender": client_id, "payload": ...}
    so a client can skip the candidates it posted itself.

    Attributes:
        base_url: Root URL of the HTTP signaling server
        session_id: Session shared with the other peer
        role: Wire name of our role; the camera polls answers, everyone
              else polls offers
        client_id: Random id identifying our posts in the shared logs
        cursors: Last consumed index per message type
    """

    def __init__(
        self,
        base_url: str,
        session_id: str,
        role: str,
        poll_interval: float = POLL_INTERVAL,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session_id = session_id
        self.role = role
        self.poll_interval = poll_interval
        self.client_id = uuid.uuid4().hex
        self.cursors: Dict[str, int] = {"offer": 0, "answer": 0, "candidate": 0}
        self._session = session
        self._owns_session = session is None
        self._message_handler: Optional[MessageHandler] = None
        self._running = False

        logger.info(f"PollingSignalingClient initialized for {self.base_url}")

    @property
    def signaling_url(self) -> str:
        return f"{self.base_url}/signaling"

    @property
    def watched_types(self) -> List[str]:
        first = "answer" if self.role == CAMERA else "offer"
        return [first, "candidate"]

    async def connect(self) -> None:
        """Open the HTTP session; the first poll happens in handle_messages()."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
        self._running = True

    async def close(self) -> None:
        """Stop polling and delete the session's logs on the server."""
        self._running = False
        if self._session is None:
            return
        try:
            await self.clear()
        except aiohttp.ClientError as e:
            logger.error(f"Error cleaning up session: {e}")
        if self._owns_session:
            await self._session.close()
            self._session = None

    disconnect = close

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._message_handler = handler

    async def post(self, message_type: str, payload: Any) -> None:
        """
        Append one of our messages to the session log.

        Raises:
            aiohttp.ClientResponseError: If the server rejects the post
        """
        body = {
            "sessionId": self.session_id,
            "type": message_type,
            "data": {"sender": self.client_id, "payload": payload},
        }
        async with self._session.post(self.signaling_url, json=body) as response:
            response.raise_for_status()

    async def poll(self, message_type: str) -> List[Any]:
        """
        Fetch entries of one type past our cursor, skipping our own.

        The cursor only ever moves forward.
        """
        params = {
            "sessionId": self.session_id,
            "type": message_type,
            "lastIndex": str(self.cursors[message_type]),
        }
        async with self._session.get(self.signaling_url, params=params) as response:
            response.raise_for_status()
            result = await response.json()

        cursor = result.get("lastIndex", self.cursors[message_type])
        self.cursors[message_type] = max(self.cursors[message_type], cursor)

        payloads = []
        for entry in result.get("messages", []):
            if isinstance(entry, dict) and "payload" in entry:
                if entry.get("sender") == self.client_id:
                    continue
                payloads.append(entry)
            else:
                payloads.append({"sender": None, "payload": entry})
        return payloads

    async def clear(self) -> bool:
        """
        Delete the session on the server.

        Returns:
            False if the server had no logs for it
        """
        params = {"sessionId": self.session_id}
        async with self._session.delete(self.signaling_url, params=params) as response:
            if response.status == 404:
                return False
            response.raise_for_status()
            return True

    async def send_offer(
        self, description: Dict[str, Any], target_id: Optional[str] = None
    ) -> None:
        await self.post("offer", description)

    async def send_answer(
        self, description: Dict[str, Any], target_id: Optional[str] = None
    ) -> None:
        await self.post("answer", description)

    async def send_candidate(
        self, candidate: Dict[str, Any], target_id: Optional[str] = None
    ) -> None:
        await self.post("candidate", candidate)

    async def request_reconnect(self) -> None:
        """
        Restart negotiation without a relay to forward the request.

        The camera re-offers itself; the viewer keeps polling and picks up
        that fresh offer.
        """
        if self.role != CAMERA:
            logger.info("Waiting for the camera to re-offer")
            return
        await self._dispatch(ReconnectNotice(peer_id=self.client_id, role=self.role))

    async def poll_once(self) -> None:
        """Run one polling round over every watched type."""
        for message_type in self.watched_types:
            for entry in await self.poll(message_type):
                await self._dispatch(self._to_message(message_type, entry))

    async def handle_messages(self) -> None:
        """Poll until closed; network errors are logged and retried."""
        if not self._running:
            await self.connect()

        logger.info(f"Polling {self.watched_types} for session {self.session_id}")
        while self._running:
            try:
                await self.poll_once()
            except aiohttp.ClientError as e:
                logger.error(f"Error polling signaling messages: {e}")
            await asyncio.sleep(self.poll_interval)

    @staticmethod
    def _to_message(message_type: str, entry: Dict[str, Any]) -> SignalingMessage:
        sender, payload = entry.get("sender"), entry.get("payload")
        if message_type == "offer":
            return Offer(description=payload, sender_id=sender)
        if message_type == "answer":
            return Answer(description=payload, sender_id=sender)
        return Candidate(candidate=payload, sender_id=sender)

    async def _dispatch(self, message: SignalingMessage) -> None:
        if self._message_handler:
            result = self._message_handler(message)
            if inspect.isawaitable(result):
                await result
