"""
Negotiation Message Schema Definitions

Contains functions for creating the relayed negotiation envelopes. The
session description and candidate payloads are opaque to the relay.
"""

from typing import Dict, Any

# Inbound type -> key holding the opaque payload
NEGOTIATION_PAYLOAD_KEYS = {
    "offer": "description",
    "answer": "description",
    "ice-candidate": "candidate",
}


def create_negotiation_message(
    message_type: str,
    payload: Any,
    sender_id: str,
) -> Dict[str, Any]:
    """
    Create a relayed offer, answer or ice-candidate message.

    Args:
        message_type: One of NEGOTIATION_PAYLOAD_KEYS
        payload: Opaque description or candidate
        sender_id: Connection id of the sender

    Returns:
        dict: Message envelope
    """
    return {
        "type": message_type,
        "data": {
            NEGOTIATION_PAYLOAD_KEYS[message_type]: payload,
            "sender_id": sender_id,
        },
    }
