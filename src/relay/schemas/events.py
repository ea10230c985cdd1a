"""
Event Schema Definitions

Contains functions for creating the notices the relay pushes to
connected peers: pairing, lobby routing, reconnect and disconnect.
"""

from typing import Dict, Any


def create_join_notice(peer_id: str, role: str) -> Dict[str, Any]:
    """
    Create a peer-joined notice.

    Args:
        peer_id: Connection id of the peer that is now present
        role: Wire name of that peer's role

    Returns:
        dict: Notice envelope
    """
    return {
        "type": "peer-joined",
        "data": {
            "peer_id": peer_id,
            "role": role,
        },
    }


def create_route_notice(room_id: str) -> Dict[str, Any]:
    """
    Create a route-to-viewer notice for a lobby connection.

    Args:
        room_id: Room whose camera is now available

    Returns:
        dict: Notice envelope
    """
    return {
        "type": "route-to-viewer",
        "data": {"room_id": room_id},
    }


def create_reconnect_notice(peer_id: str, role: str) -> Dict[str, Any]:
    """
    Create a reconnect-request notice.

    Args:
        peer_id: Connection id of the requester
        role: Wire name of the requester's role

    Returns:
        dict: Notice envelope
    """
    return {
        "type": "reconnect-request",
        "data": {
            "peer_id": peer_id,
            "role": role,
        },
    }


def create_disconnect_notice(role: str) -> Dict[str, Any]:
    """
    Create a peer-disconnected notice.

    Args:
        role: Wire name of the role that was vacated

    Returns:
        dict: Notice envelope
    """
    return {
        "type": "peer-disconnected",
        "data": {"role": role},
    }
