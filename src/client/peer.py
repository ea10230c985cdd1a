"""
Peer Connection Adapter

Builds aiortc peer connections and converts session descriptions and
candidates between aiortc objects and the JSON dictionaries carried by
the signaling messages.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from aiortc import (
    RTCConfiguration,
    RTCIceCandidate,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp

logger = logging.getLogger(__name__)

DEFAULT_ICE_SERVERS = ("stun:stun.l.google.com:19302",)


def create_peer_connection(
    ice_servers: Iterable[str] = DEFAULT_ICE_SERVERS,
) -> RTCPeerConnection:
    """Create a peer connection using the given STUN/TURN urls."""
    configuration = RTCConfiguration(
        iceServers=[RTCIceServer(urls=url) for url in ice_servers]
    )
    return RTCPeerConnection(configuration=configuration)


def description_to_dict(description: RTCSessionDescription) -> Dict[str, str]:
    return {"type": description.type, "sdp": description.sdp}


def description_from_dict(data: Dict[str, Any]) -> RTCSessionDescription:
    """
    Raises:
        ValueError: If the dictionary is not a session description
    """
    if not isinstance(data, dict) or "sdp" not in data or "type" not in data:
        raise ValueError("Session description needs 'type' and 'sdp'")
    return RTCSessionDescription(sdp=data["sdp"], type=data["type"])


def candidate_to_dict(candidate: RTCIceCandidate) -> Dict[str, Any]:
    return {
        "candidate": "candidate:" + candidate_to_sdp(candidate),
        "sdpMid": candidate.sdpMid,
        "sdpMLineIndex": candidate.sdpMLineIndex,
    }


def candidate_from_dict(data: Dict[str, Any]) -> Optional[RTCIceCandidate]:
    """
    Parse a browser-style candidate dictionary.

    Returns:
        The candidate, or None for the empty end-of-candidates marker
    """
    line = (data or {}).get("candidate") or ""
    if not line:
        return None
    if line.startswith("candidate:"):
        line = line[len("candidate:"):]
    candidate = candidate_from_sdp(line)
    candidate.sdpMid = data.get("sdpMid")
    candidate.sdpMLineIndex = data.get("sdpMLineIndex")
    return candidate
