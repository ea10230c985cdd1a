"""
Schemas for the Relay

This module contains the builders for every envelope the relay sends:
notices, relayed negotiation messages and responses.
"""

from .events import (
    create_join_notice,
    create_route_notice,
    create_reconnect_notice,
    create_disconnect_notice,
)
from .messages import (
    NEGOTIATION_PAYLOAD_KEYS,
    create_negotiation_message,
)
from .responses import (
    create_error_response,
    create_registered_response,
)

__all__ = [
    "create_join_notice",
    "create_route_notice",
    "create_reconnect_notice",
    "create_disconnect_notice",
    "NEGOTIATION_PAYLOAD_KEYS",
    "create_negotiation_message",
    "create_error_response",
    "create_registered_response",
]
