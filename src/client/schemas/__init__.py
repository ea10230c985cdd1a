"""
Schemas Package

This package contains the signaling message schemas for client-relay
communication. Requests are serialized with BaseRequest; everything the
relay pushes is parsed into one BaseNotice variant by parse_message().
"""

from .base import BaseRequest, BaseNotice
from .signaling import (
    CAMERA,
    VIEWER,
    LOBBY,
    RegisterRequest,
    JoinRequest,
    TransitionRequest,
    OfferRequest,
    AnswerRequest,
    CandidateRequest,
    ReconnectRequest,
    Offer,
    Answer,
    Candidate,
    JoinNotice,
    ReconnectNotice,
    DisconnectNotice,
    RouteNotice,
    Registered,
    RelayError,
    SignalingMessage,
    parse_message,
)

__all__ = [
    # Roles
    "CAMERA",
    "VIEWER",
    "LOBBY",
    # Base classes
    "BaseRequest",
    "BaseNotice",
    # Requests
    "RegisterRequest",
    "JoinRequest",
    "TransitionRequest",
    "OfferRequest",
    "AnswerRequest",
    "CandidateRequest",
    "ReconnectRequest",
    # Notices
    "Offer",
    "Answer",
    "Candidate",
    "JoinNotice",
    "ReconnectNotice",
    "DisconnectNotice",
    "RouteNotice",
    "Registered",
    "RelayError",
    "SignalingMessage",
    "parse_message",
]
