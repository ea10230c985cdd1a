"""
Negotiation Controller

Drives one peer connection through the offer/answer/candidate exchange
to a working transport and recovers it after mid-session failures.

State machine:

    idle -> offer-sent | offer-received -> answered -> stable
    stable -> renegotiating -> stable
    any -> failed   (recovered through a reconnect request, re-enters idle)
    any -> closed   (explicit teardown, terminal)

The controller talks to the relay only through a signaling client
(RelaySignalingClient or PollingSignalingClient) and to the network only
through the peer connection built by peer_factory.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Optional

from .peer import (
    candidate_from_dict,
    candidate_to_dict,
    create_peer_connection,
    description_from_dict,
    description_to_dict,
)
from .retry import RetryPolicy
from .schemas import (
    LOBBY,
    Answer,
    Candidate,
    DisconnectNotice,
    JoinNotice,
    Offer,
    ReconnectNotice,
    SignalingMessage,
)

logger = logging.getLogger(__name__)

DATA_CHANNEL_LABEL = "photo"


class NegotiationState(Enum):
    IDLE = "idle"
    OFFER_SENT = "offer-sent"
    OFFER_RECEIVED = "offer-received"
    ANSWERED = "answered"
    STABLE = "stable"
    RENEGOTIATING = "renegotiating"
    FAILED = "failed"
    CLOSED = "closed"


STATUS_LABELS = {
    NegotiationState.IDLE: "Waiting for peer",
    NegotiationState.OFFER_SENT: "Connecting…",
    NegotiationState.OFFER_RECEIVED: "Connecting…",
    NegotiationState.ANSWERED: "Connecting…",
    NegotiationState.STABLE: "Connected",
    NegotiationState.RENEGOTIATING: "Connected",
    NegotiationState.FAILED: "Disconnected",
    NegotiationState.CLOSED: "Disconnected",
}


class NegotiationError(Exception):
    """Creating or applying a session description failed."""


class NegotiationController:
    """
    Owns the lifecycle of one peer connection.

    Attributes:
        signaling: Signaling client used to reach the other peer
        initiator: True for the producing side, which creates the data
                   channel up front and offers when a peer joins
        state: Current NegotiationState
        peer_id: Connection id of the other peer once known
        pc: Current peer connection (None before start and after close)
        channel: Data channel created locally or announced by the peer
    """

    def __init__(
        self,
        signaling,
        initiator: bool,
        peer_factory: Callable[[], Any] = create_peer_connection,
        retry_policy: Optional[RetryPolicy] = None,
        channel_label: str = DATA_CHANNEL_LABEL,
        on_state_change: Optional[Callable[[NegotiationState], None]] = None,
        on_channel: Optional[Callable[[Any], None]] = None,
        on_track: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.signaling = signaling
        self.initiator = initiator
        self.retry_policy = retry_policy or RetryPolicy()
        self.channel_label = channel_label
        self.state = NegotiationState.IDLE
        self.peer_id: Optional[str] = None
        self.pc = None
        self.channel = None
        self.reconnect_task: Optional[asyncio.Task] = None
        self._peer_factory = peer_factory
        self._on_state_change = on_state_change
        self._on_channel = on_channel
        self._on_track = on_track
        self._on_error = on_error

        signaling.set_message_handler(self.handle_message)

    @property
    def status_label(self) -> str:
        """Short connection status for display."""
        return STATUS_LABELS[self.state]

    async def start(self, offer: bool = False):
        """
        Create the transport.

        Args:
            offer: Offer right away instead of waiting for a join notice
                   (used over the polling transport, which has none)
        """
        self._create_transport()
        if offer:
            await self.send_offer()

    async def close(self):
        """Tear the connection down for good."""
        self._cancel_reconnect()
        pc, self.pc, self.channel = self.pc, None, None
        self._set_state(NegotiationState.CLOSED)
        if pc is not None:
            await pc.close()

    async def send_offer(self, renegotiate: bool = False):
        """Create an offer for the current transport and send it."""
        if self.pc is None:
            self._create_transport()
        self._ensure_channel()

        try:
            offer = await self.pc.createOffer()
            await self.pc.setLocalDescription(offer)
            await self.signaling.send_offer(
                description_to_dict(self.pc.localDescription), self.peer_id
            )
        except Exception as e:
            await self._fail(NegotiationError(f"Could not create offer: {e}"))
            return

        self._set_state(
            NegotiationState.RENEGOTIATING if renegotiate else NegotiationState.OFFER_SENT
        )

    async def replace_track(self, track) -> None:
        """
        Swap the outgoing track of the same kind, or add it.

        A fresh offer goes out when a new sender was added or when the
        signaling state was not stable at the time of the swap.
        """
        if self.pc is None:
            self._create_transport()

        sender = next(
            (
                s
                for s in self.pc.getSenders()
                if s.track is not None and s.track.kind == track.kind
            ),
            None,
        )
        if sender is not None:
            logger.info(f"Replacing {track.kind} track")
            result = sender.replaceTrack(track)
            if inspect.isawaitable(result):
                await result
            added = False
        else:
            logger.info(f"Adding new {track.kind} track")
            self.pc.addTrack(track)
            added = True

        if self.state is NegotiationState.IDLE:
            return
        if added or self.pc.signalingState != "stable":
            await self.send_offer(
                renegotiate=self.state
                in (NegotiationState.STABLE, NegotiationState.RENEGOTIATING)
            )

    async def handle_message(self, message: SignalingMessage):
        """Apply one message from the signaling client."""
        if self.state is NegotiationState.CLOSED:
            return

        if isinstance(message, JoinNotice):
            await self._on_peer_joined(message)
        elif isinstance(message, Offer):
            await self._on_offer(message)
        elif isinstance(message, Answer):
            await self._on_answer(message)
        elif isinstance(message, Candidate):
            await self._on_remote_candidate(message)
        elif isinstance(message, ReconnectNotice):
            await self._on_reconnect_requested(message)
        elif isinstance(message, DisconnectNotice):
            await self._on_peer_left(message)
        else:
            logger.debug(f"Ignoring {type(message).__name__}")

    async def _on_peer_joined(self, message: JoinNotice):
        logger.info(f"Peer {message.peer_id} joined as {message.role}")
        self.peer_id = message.peer_id
        if self.state is not NegotiationState.IDLE or self.pc is None:
            await self._reset_transport()
        if self.initiator:
            await self.send_offer()

    async def _on_offer(self, message: Offer):
        if self.state is NegotiationState.OFFER_SENT:
            if self.initiator:
                logger.warning("Ignoring colliding offer while our own is pending")
                return
            await self._reset_transport()
        elif self.pc is None or self.state is NegotiationState.FAILED:
            await self._reset_transport()

        if message.sender_id:
            self.peer_id = message.sender_id

        renegotiate = self.state in (
            NegotiationState.STABLE,
            NegotiationState.RENEGOTIATING,
        )
        self._set_state(
            NegotiationState.RENEGOTIATING if renegotiate else NegotiationState.OFFER_RECEIVED
        )

        try:
            await self.pc.setRemoteDescription(description_from_dict(message.description))
            answer = await self.pc.createAnswer()
            await self.pc.setLocalDescription(answer)
            await self.signaling.send_answer(
                description_to_dict(self.pc.localDescription), self.peer_id
            )
        except Exception as e:
            await self._fail(NegotiationError(f"Error handling remote offer: {e}"))
            return

        self._settle()

    async def _on_answer(self, message: Answer):
        if self.state not in (
            NegotiationState.OFFER_SENT,
            NegotiationState.RENEGOTIATING,
        ):
            logger.debug(f"Ignoring answer in state {self.state.value}")
            return
        if message.sender_id and not self.peer_id:
            self.peer_id = message.sender_id

        try:
            await self.pc.setRemoteDescription(description_from_dict(message.description))
        except Exception as e:
            await self._fail(NegotiationError(f"Error handling remote answer: {e}"))
            return

        self._settle()

    async def _on_remote_candidate(self, message: Candidate):
        if self.pc is None:
            return
        try:
            candidate = candidate_from_dict(message.candidate)
            if candidate is not None:
                await self.pc.addIceCandidate(candidate)
        except Exception as e:
            logger.warning(f"Error adding received ICE candidate: {e}")

    async def _on_reconnect_requested(self, message: ReconnectNotice):
        logger.info(f"Peer {message.peer_id} ({message.role}) requested reconnection")
        self._cancel_reconnect()
        self.peer_id = message.peer_id
        await self._reset_transport()
        await self.send_offer()

    async def _on_peer_left(self, message: DisconnectNotice):
        if message.role == LOBBY:
            return
        logger.info(f"Peer with role {message.role} disconnected")
        self._cancel_reconnect()
        self.peer_id = None
        await self._reset_transport()

    async def _on_local_candidate(self, candidate):
        if candidate is None:
            return
        try:
            await self.signaling.send_candidate(candidate_to_dict(candidate), self.peer_id)
        except Exception as e:
            logger.warning(f"Could not forward local ICE candidate: {e}")

    async def _on_connection_state_change(self, pc):
        if pc is not self.pc:
            return
        connection_state = pc.connectionState
        logger.info(f"Connection state changed: {connection_state}")

        if connection_state == "connected":
            self._settle()
        elif connection_state in ("disconnected", "failed"):
            await self._fail()

    def _settle(self):
        if self.pc is not None and self.pc.connectionState == "connected":
            self.retry_policy.reset()
            self._set_state(NegotiationState.STABLE)
        elif self.state is not NegotiationState.STABLE:
            self._set_state(NegotiationState.ANSWERED)

    def _create_transport(self):
        pc = self._peer_factory()
        self.pc = pc
        self.channel = None

        async def on_connection_state_change():
            await self._on_connection_state_change(pc)

        async def on_ice_candidate(candidate):
            if pc is self.pc:
                await self._on_local_candidate(candidate)

        def on_data_channel(channel):
            if pc is self.pc:
                self._announce_channel(channel)

        def on_track(track):
            if pc is self.pc and self._on_track:
                self._on_track(track)

        pc.on("connectionstatechange", on_connection_state_change)
        pc.on("icecandidate", on_ice_candidate)
        pc.on("datachannel", on_data_channel)
        pc.on("track", on_track)

        if self.initiator:
            self._ensure_channel()
        self._set_state(NegotiationState.IDLE)

    async def _reset_transport(self):
        old, self.pc = self.pc, None
        if old is not None:
            await old.close()
        self._create_transport()

    def _ensure_channel(self):
        if self.channel is None:
            self._announce_channel(self.pc.createDataChannel(self.channel_label))

    def _announce_channel(self, channel):
        logger.info(f"Data channel '{channel.label}' available")
        self.channel = channel
        if self._on_channel:
            self._on_channel(channel)

    async def _fail(self, error: Optional[Exception] = None):
        if error is not None:
            logger.error(str(error))
            if self._on_error:
                self._on_error(error)
        self._set_state(NegotiationState.FAILED)
        self._schedule_reconnect()

    def _schedule_reconnect(self):
        if self.reconnect_task is not None and not self.reconnect_task.done():
            return
        delay = self.retry_policy.next_delay()
        if delay is None:
            logger.error("Reconnect attempts exhausted; staying disconnected")
            return
        logger.info(f"Requesting reconnection in {delay:.1f}s")
        self.reconnect_task = asyncio.create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float):
        await asyncio.sleep(delay)
        if self.state is not NegotiationState.FAILED:
            return

        await self._reset_transport()
        try:
            await self.signaling.request_reconnect()
        except Exception as e:
            logger.error(f"Reconnect request failed: {e}")
            self.reconnect_task = None
            await self._fail()

    def _cancel_reconnect(self):
        task, self.reconnect_task = self.reconnect_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    def _set_state(self, state: NegotiationState):
        if state is self.state:
            return
        logger.info(f"Negotiation state: {self.state.value} -> {state.value}")
        self.state = state
        if self._on_state_change:
            self._on_state_change(state)
