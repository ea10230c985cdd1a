"""Session id generation."""

import secrets
import string

SESSION_ID_LENGTH = 10
SESSION_ID_ALPHABET = string.ascii_letters + string.digits


def generate_session_id(length: int = SESSION_ID_LENGTH) -> str:
    """Random alphanumeric id shared by both peers of a session."""
    return "".join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(length))
