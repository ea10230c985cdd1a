"""
Response Schema Definitions

Contains functions for creating standardized response structures.
"""

from typing import Dict, Any


def create_error_response(
    error_message: str,
    error_type: str = "error",
) -> Dict[str, Any]:
    """
    Create a generic error response.

    Args:
        error_message: Error message text
        error_type: Type of error response

    Returns:
        dict: Error response
    """
    return {
        "type": error_type,
        "data": {
            "success": False,
            "message": error_message,
        },
    }


def create_registered_response(
    connection_id: str,
    room_id: str,
    role: str,
) -> Dict[str, Any]:
    """
    Create the acknowledgement sent after register or join.

    Args:
        connection_id: Id the relay assigned to the connection
        room_id: Room the connection registered in
        role: Wire name of the role it now holds

    Returns:
        dict: Registration acknowledgement
    """
    return {
        "type": "registered",
        "data": {
            "connection_id": connection_id,
            "room_id": room_id,
            "role": role,
        },
    }
