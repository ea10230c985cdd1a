"""
Client Package

This package provides the peer side of CameraConnect: signaling clients
for the WebSocket relay and the HTTP polling fallback, the negotiation
controller that brings up the peer connection, and the chunked transfer
protocol that moves files over its data channel.

Schemas are organized in the `schemas` subpackage.
"""

from .relay_client import RelaySignalingClient
from .polling_client import PollingSignalingClient, POLL_INTERVAL
from .negotiation import (
    NegotiationController,
    NegotiationState,
    NegotiationError,
    STATUS_LABELS,
)
from .retry import RetryPolicy, RECONNECT_DELAY
from .session import generate_session_id
from .transfer import (
    FileSender,
    FileReceiver,
    ReceivedFile,
    TransferMetadata,
    DEFAULT_CHUNK_SIZE,
    META_PREFIX,
    END_MARKER,
)
from .schemas import (
    # Roles
    CAMERA,
    VIEWER,
    LOBBY,
    # Base classes
    BaseRequest,
    BaseNotice,
    # Requests
    RegisterRequest,
    JoinRequest,
    TransitionRequest,
    OfferRequest,
    AnswerRequest,
    CandidateRequest,
    ReconnectRequest,
    # Notices
    Offer,
    Answer,
    Candidate,
    JoinNotice,
    ReconnectNotice,
    DisconnectNotice,
    RouteNotice,
    Registered,
    RelayError,
    parse_message,
)

__all__ = [
    # Signaling
    "RelaySignalingClient",
    "PollingSignalingClient",
    "POLL_INTERVAL",
    # Negotiation
    "NegotiationController",
    "NegotiationState",
    "NegotiationError",
    "STATUS_LABELS",
    "RetryPolicy",
    "RECONNECT_DELAY",
    "generate_session_id",
    # Transfer
    "FileSender",
    "FileReceiver",
    "ReceivedFile",
    "TransferMetadata",
    "DEFAULT_CHUNK_SIZE",
    "META_PREFIX",
    "END_MARKER",
    # Schemas
    "CAMERA",
    "VIEWER",
    "LOBBY",
    "BaseRequest",
    "BaseNotice",
    "RegisterRequest",
    "JoinRequest",
    "TransitionRequest",
    "OfferRequest",
    "AnswerRequest",
    "CandidateRequest",
    "ReconnectRequest",
    "Offer",
    "Answer",
    "Candidate",
    "JoinNotice",
    "ReconnectNotice",
    "DisconnectNotice",
    "RouteNotice",
    "Registered",
    "RelayError",
    "parse_message",
]
