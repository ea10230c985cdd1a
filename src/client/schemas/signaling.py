"""
Signaling Schema Definitions

This module defines the negotiation messages exchanged with the relay.
Inbound messages form a tagged union: each kind is its own dataclass and
parse_message() picks the right one from the envelope type.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .base import BaseNotice, BaseRequest

# Wire names of the room roles
CAMERA = "camera"
VIEWER = "viewer"
LOBBY = "homePage"


# Requests (client -> relay)


@dataclass
class RegisterRequest(BaseRequest):
    """
    Request to occupy a role slot in a room.

    Attributes:
        room_id: Room to register in
        role: Wire name of the role (camera, viewer or homePage)
    """

    room_id: str
    role: str

    @property
    def _message_type(self) -> str:
        return "register"


@dataclass
class JoinRequest(BaseRequest):
    """Request to join a room in the first free role slot."""

    room_id: str

    @property
    def _message_type(self) -> str:
        return "join"


@dataclass
class TransitionRequest(BaseRequest):
    """Request to hand a lobby connection over to the viewer slot."""

    room_id: str

    @property
    def _message_type(self) -> str:
        return "transition-to-viewer"


@dataclass
class OfferRequest(BaseRequest):
    """
    Offer to relay.

    Attributes:
        room_id: Room to relay in
        description: Session description ({"type", "sdp"})
        target_id: Optional connection id; broadcast to the room if None
    """

    room_id: str
    description: Dict[str, Any]
    target_id: Optional[str] = None

    @property
    def _message_type(self) -> str:
        return "offer"


@dataclass
class AnswerRequest(BaseRequest):
    """Answer to relay, usually addressed to the offer's sender."""

    room_id: str
    description: Dict[str, Any]
    target_id: Optional[str] = None

    @property
    def _message_type(self) -> str:
        return "answer"


@dataclass
class CandidateRequest(BaseRequest):
    """Connectivity candidate to relay."""

    room_id: str
    candidate: Dict[str, Any]
    target_id: Optional[str] = None

    @property
    def _message_type(self) -> str:
        return "ice-candidate"


@dataclass
class ReconnectRequest(BaseRequest):
    """Ask the counterpart of role to rebuild its transport."""

    room_id: str
    role: str

    @property
    def _message_type(self) -> str:
        return "reconnect-request"


# Notices and relayed messages (relay -> client)


@dataclass
class Offer(BaseNotice):
    description: Dict[str, Any]
    sender_id: Optional[str] = None

    message_type = "offer"


@dataclass
class Answer(BaseNotice):
    description: Dict[str, Any]
    sender_id: Optional[str] = None

    message_type = "answer"


@dataclass
class Candidate(BaseNotice):
    candidate: Dict[str, Any]
    sender_id: Optional[str] = None

    message_type = "ice-candidate"


@dataclass
class JoinNotice(BaseNotice):
    """The counterpart is present in the room."""

    peer_id: str
    role: str

    message_type = "peer-joined"


@dataclass
class ReconnectNotice(BaseNotice):
    """The counterpart lost its transport and asks for a fresh one."""

    peer_id: str
    role: str

    message_type = "reconnect-request"


@dataclass
class DisconnectNotice(BaseNotice):
    """The holder of role left the room."""

    role: str

    message_type = "peer-disconnected"


@dataclass
class RouteNotice(BaseNotice):
    """A camera is available; a lobby connection should become a viewer."""

    room_id: str

    message_type = "route-to-viewer"


@dataclass
class Registered(BaseNotice):
    """Acknowledgement of register/join carrying our connection id."""

    connection_id: str
    room_id: str
    role: str

    message_type = "registered"


@dataclass
class RelayError(BaseNotice):
    """The relay rejected one of our messages."""

    message: Optional[str] = None
    success: Optional[bool] = False

    message_type = "error"


SignalingMessage = Union[
    Offer,
    Answer,
    Candidate,
    JoinNotice,
    ReconnectNotice,
    DisconnectNotice,
    RouteNotice,
    Registered,
    RelayError,
]

NOTICE_TYPES = {
    cls.message_type: cls
    for cls in (
        Offer,
        Answer,
        Candidate,
        JoinNotice,
        ReconnectNotice,
        DisconnectNotice,
        RouteNotice,
        Registered,
        RelayError,
    )
}


def parse_message(envelope: Dict[str, Any]) -> SignalingMessage:
    """
    Turn a relay envelope into its typed message.

    Args:
        envelope: {"type": ..., "data": {...}}

    Returns:
        The matching SignalingMessage variant

    Raises:
        ValueError: If the type is unknown
    """
    message_type = envelope.get("type")
    notice_cls = NOTICE_TYPES.get(message_type)
    if notice_cls is None:
        raise ValueError(f"Unknown message type: {message_type}")
    return notice_cls.from_dict({"data": envelope.get("data") or {}})
