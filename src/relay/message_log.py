"""
Polling Signaling Store

Append-only per-session, per-type message logs backing the HTTP polling
transport. Clients read a log with a cursor (the number of entries they
have already consumed) and get back only newer entries.
"""

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

MESSAGE_TYPES = ("offer", "answer", "candidate")
SESSION_TTL = 3600  # seconds an idle session is kept before expiry


class InvalidMessageTypeError(ValueError):
    """Raised for a message type outside MESSAGE_TYPES."""


class SessionNotFoundError(KeyError):
    """Raised when clearing a session that has no logs."""


class MessageLogRepository:
    """
    In-memory store of append-only logs keyed by (session id, type).

    Also remembers when each session was last touched so idle sessions
    can be expired.
    """

    def __init__(self, clock=time.monotonic):
        self._logs: Dict[str, Dict[str, List[Any]]] = {}
        self._touched: Dict[str, float] = {}
        self._clock = clock

    def append(self, session_id: str, message_type: str, payload: Any) -> int:
        """Append a payload and return the new length of the log."""
        log = self._logs.setdefault(session_id, {}).setdefault(message_type, [])
        log.append(payload)
        self.touch(session_id)
        return len(log)

    def read(
        self, session_id: str, message_type: str, after: int
    ) -> Optional[List[Any]]:
        """Entries past index after, or None if the log does not exist."""
        session = self._logs.get(session_id)
        if session is None or message_type not in session:
            return None
        self.touch(session_id)
        return list(session[message_type][after:])

    def has_session(self, session_id: str) -> bool:
        return session_id in self._logs

    def delete_session(self, session_id: str) -> bool:
        self._touched.pop(session_id, None)
        return self._logs.pop(session_id, None) is not None

    def session_count(self) -> int:
        return len(self._logs)

    def touch(self, session_id: str):
        if session_id in self._logs:
            self._touched[session_id] = self._clock()

    def idle_sessions(self, ttl: float) -> List[str]:
        now = self._clock()
        return [
            session_id
            for session_id, touched in self._touched.items()
            if now - touched > ttl
        ]


class PollingTransport:
    """
    Relay semantics over request/response.

    Offers, answers and candidates are posted into per-session logs and
    picked up by the other side through repeated polls.
    """

    def __init__(self, repository: Optional[MessageLogRepository] = None):
        """
        Initialize the transport.

        Args:
            repository: Log store to use. A fresh in-memory store is
                        created when omitted.
        """
        self.repository = repository or MessageLogRepository()
        self._lock = threading.Lock()

    @staticmethod
    def validate_type(message_type: str):
        if message_type not in MESSAGE_TYPES:
            raise InvalidMessageTypeError(
                f"Invalid message type: {message_type}"
            )

    def post(self, session_id: str, message_type: str, payload: Any) -> int:
        """
        Append payload to the (session, type) log, creating it if absent.

        Returns:
            Length of the log after the append

        Raises:
            InvalidMessageTypeError: If message_type is not supported
        """
        self.validate_type(message_type)
        with self._lock:
            length = self.repository.append(session_id, message_type, payload)
        logger.debug(
            f"Posted {message_type} #{length} to session {session_id}"
        )
        return length

    def poll(
        self, session_id: str, message_type: str, last_index: int = 0
    ) -> Tuple[List[Any], int]:
        """
        Return everything appended after last_index plus the new cursor.

        An unknown session or an empty log yields no messages and the
        unchanged cursor.

        Raises:
            InvalidMessageTypeError: If message_type is not supported
            ValueError: If last_index is negative
        """
        self.validate_type(message_type)
        if last_index < 0:
            raise ValueError("lastIndex must not be negative")

        with self._lock:
            messages = self.repository.read(session_id, message_type, last_index)

        if not messages:
            return [], last_index
        return messages, last_index + len(messages)

    def clear(self, session_id: str):
        """
        Delete every log of a session.

        Raises:
            SessionNotFoundError: If the session had no logs
        """
        with self._lock:
            deleted = self.repository.delete_session(session_id)
        if not deleted:
            raise SessionNotFoundError(session_id)
        logger.info(f"Cleared signaling session {session_id}")

    def session_count(self) -> int:
        return self.repository.session_count()

    def expire_idle_sessions(self, ttl: float = SESSION_TTL) -> List[str]:
        """Delete sessions nobody posted to or polled for ttl seconds."""
        with self._lock:
            expired = self.repository.idle_sessions(ttl)
            for session_id in expired:
                self.repository.delete_session(session_id)
        for session_id in expired:
            logger.info(f"Expired idle signaling session {session_id}")
        return expired
