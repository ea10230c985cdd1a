"""
Room State Management for the Relay

This module holds the authoritative in-memory membership of signaling
rooms. A room pairs at most one connection per role and is removed as
soon as its last role slot is vacated.

The registry never talks to sockets itself. Every operation returns the
list of deliveries (target connection id + message envelope) that the
transport layer must send, so the fan-out logic can be tested without
any network.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, NamedTuple, Optional

from .schemas import (
    create_disconnect_notice,
    create_join_notice,
    create_reconnect_notice,
    create_route_notice,
)

logger = logging.getLogger(__name__)


class Role(Enum):
    """Function of a participant inside a room."""

    INITIATOR = "camera"
    RESPONDER = "viewer"
    TRANSITIONAL = "homePage"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """
        Resolve a role from its wire name or enum name.

        Raises:
            ValueError: If the value names no role
        """
        for role in cls:
            if value in (role.value, role.name, role.name.lower()):
                return role
        raise ValueError(f"Unknown role: {value}")

    @property
    def counterpart(self) -> Optional["Role"]:
        """The role this one negotiates with, if any."""
        if self is Role.INITIATOR:
            return Role.RESPONDER
        if self is Role.RESPONDER:
            return Role.INITIATOR
        return None


class Delivery(NamedTuple):
    """A message the transport must send to one connection."""

    target_id: str
    message: dict


@dataclass
class Room:
    """
    A signaling room.

    Attributes:
        room_id: Opaque session identifier shared by both peers
        slots: Role -> connection id of the current holder
        created_at: ISO 8601 timestamp when the room was created
    """

    room_id: str
    slots: Dict[Role, str] = field(default_factory=dict)
    created_at: str = ""

    def __post_init__(self):
        if not self.created_at:
            self.created_at = datetime.now(timezone.utc).isoformat()

    def holder(self, role: Role) -> Optional[str]:
        return self.slots.get(role)

    def role_of(self, connection_id: str) -> Optional[Role]:
        for role, holder in self.slots.items():
            if holder == connection_id:
                return role
        return None

    def connections(self) -> List[str]:
        return list(self.slots.values())

    def is_empty(self) -> bool:
        return not self.slots

    def to_dict(self) -> Dict:
        """Convert room to dictionary for serialization."""
        return {
            "room_id": self.room_id,
            "roles": {role.value: cid for role, cid in self.slots.items()},
            "created_at": self.created_at,
        }


@dataclass
class Participant:
    """Where a single connection currently sits."""

    connection_id: str
    room_id: str
    role: Role


class RoomRepository:
    """
    In-memory store for rooms and participants.

    The registry owns all mutation; the repository only stores. A
    different backend can be injected as long as it offers the same
    methods.
    """

    def __init__(self):
        self._rooms: Dict[str, Room] = {}
        self._participants: Dict[str, Participant] = {}

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def put_room(self, room: Room):
        self._rooms[room.room_id] = room

    def delete_room(self, room_id: str) -> bool:
        return self._rooms.pop(room_id, None) is not None

    def list_rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def get_participant(self, connection_id: str) -> Optional[Participant]:
        return self._participants.get(connection_id)

    def put_participant(self, participant: Participant):
        self._participants[participant.connection_id] = participant

    def delete_participant(self, connection_id: str):
        self._participants.pop(connection_id, None)

    def clear(self):
        self._rooms.clear()
        self._participants.clear()


class SessionRegistry:
    """
    Authoritative membership and message fan-out per room.

    All public methods take the registry lock, so operations on the same
    room are applied one at a time even when called from several threads.
    """

    def __init__(self, repository: Optional[RoomRepository] = None):
        """
        Initialize the registry.

        Args:
            repository: Room store to use. A fresh in-memory store is
                        created when omitted.
        """
        self.repository = repository or RoomRepository()
        self._lock = threading.RLock()

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.repository.get_room(room_id)

    def get_participant(self, connection_id: str) -> Optional[Participant]:
        return self.repository.get_participant(connection_id)

    def room_count(self) -> int:
        return len(self.repository.list_rooms())

    def list_rooms(self) -> List[Dict]:
        return [room.to_dict() for room in self.repository.list_rooms()]

    def register(
        self, room_id: str, role: Role, connection_id: str
    ) -> List[Delivery]:
        """
        Put a connection into the role slot of a room.

        Creates the room if needed and overwrites any previous holder of
        the slot. The orphaned holder is not notified here; it learns
        about the change through its own disconnect.

        Args:
            room_id: Room to register in
            role: Role slot to occupy
            connection_id: The registering connection

        Returns:
            Notices to deliver (join notices and lobby routing)
        """
        with self._lock:
            deliveries: List[Delivery] = []

            previous = self.repository.get_participant(connection_id)
            if previous and (
                previous.room_id != room_id or previous.role is not role
            ):
                deliveries.extend(self._vacate(previous))

            room = self.repository.get_room(room_id)
            if room is None:
                room = Room(room_id=room_id)
                self.repository.put_room(room)
                logger.info(f"Created room {room_id}")

            replaced = room.holder(role)
            if replaced and replaced != connection_id:
                logger.info(
                    f"Connection {connection_id} replaces {replaced} as "
                    f"{role.value} in room {room_id}"
                )
                self.repository.delete_participant(replaced)

            room.slots[role] = connection_id
            self.repository.put_participant(
                Participant(connection_id, room_id, role)
            )
            logger.info(
                f"Connection {connection_id} registered as {role.value} "
                f"in room {room_id}"
            )

            deliveries.extend(self._pairing_notices(room, role, connection_id))
            return deliveries

    def join(self, room_id: str, connection_id: str) -> List[Delivery]:
        """
        Register without an explicit role.

        The connection takes the first free slot, initiator first. If
        both are held, it takes over the responder slot.
        """
        with self._lock:
            room = self.repository.get_room(room_id)
            role = Role.RESPONDER
            if room is None or room.holder(Role.INITIATOR) is None:
                role = Role.INITIATOR
            return self.register(room_id, role, connection_id)

    def transition_to_responder(self, connection_id: str) -> List[Delivery]:
        """
        Hand a lobby connection over to the responder slot.

        Only a participant currently holding the transitional role may
        do this, and it can only happen once since the participant is a
        responder afterwards.
        """
        with self._lock:
            participant = self.repository.get_participant(connection_id)
            if participant is None or participant.role is not Role.TRANSITIONAL:
                logger.warning(
                    f"Ignoring transition request from {connection_id}: "
                    f"not a transitional participant"
                )
                return []

            room = self.repository.get_room(participant.room_id)
            if room is None:
                return []

            room.slots.pop(Role.TRANSITIONAL, None)
            replaced = room.holder(Role.RESPONDER)
            if replaced and replaced != connection_id:
                self.repository.delete_participant(replaced)
            room.slots[Role.RESPONDER] = connection_id
            participant.role = Role.RESPONDER
            logger.info(
                f"Connection {connection_id} transitioned to "
                f"{Role.RESPONDER.value} in room {room.room_id}"
            )

            return self._pairing_notices(room, Role.RESPONDER, connection_id)

    def relay(
        self,
        room_id: str,
        sender_id: str,
        message: dict,
        target_id: Optional[str] = None,
    ) -> List[Delivery]:
        """
        Forward a negotiation message inside a room.

        Goes to target_id when given, otherwise to every other connection
        in the room. A missing room or a target that is no longer in the
        room drops the message.
        """
        with self._lock:
            room = self.repository.get_room(room_id)
            if room is None:
                logger.debug(
                    f"Dropping {message.get('type')} for missing room {room_id}"
                )
                return []

            members = room.connections()
            if target_id:
                if target_id not in members:
                    logger.debug(
                        f"Dropping {message.get('type')} for departed "
                        f"target {target_id} in room {room_id}"
                    )
                    return []
                return [Delivery(target_id, message)]

            return [
                Delivery(cid, message) for cid in members if cid != sender_id
            ]

    def request_reconnect(
        self, room_id: str, role: Role, requester_id: str
    ) -> List[Delivery]:
        """Ask the counterpart of role to rebuild its transport."""
        with self._lock:
            room = self.repository.get_room(room_id)
            counterpart = role.counterpart
            if room is None or counterpart is None:
                return []

            target = room.holder(counterpart)
            if target is None:
                return []

            logger.info(
                f"Reconnect requested by {requester_id} ({role.value}) "
                f"in room {room_id}"
            )
            return [Delivery(target, create_reconnect_notice(requester_id, role.value))]

    def unregister(self, connection_id: str) -> List[Delivery]:
        """
        Remove a connection after it disconnected.

        Clears its role slot, tells whoever is left which role went away
        and deletes the room once it holds nobody.
        """
        with self._lock:
            participant = self.repository.get_participant(connection_id)
            if participant is None:
                return []
            return self._vacate(participant)

    def _vacate(self, participant: Participant) -> List[Delivery]:
        self.repository.delete_participant(participant.connection_id)

        room = self.repository.get_room(participant.room_id)
        if room is None or room.holder(participant.role) != participant.connection_id:
            return []

        del room.slots[participant.role]
        logger.info(
            f"Connection {participant.connection_id} left "
            f"{participant.role.value} slot of room {room.room_id}"
        )

        if room.is_empty():
            self.repository.delete_room(room.room_id)
            logger.info(f"Room {room.room_id} deleted - no participants left")
            return []

        notice = create_disconnect_notice(participant.role.value)
        return [Delivery(cid, notice) for cid in room.connections()]

    def _pairing_notices(
        self, room: Room, role: Role, connection_id: str
    ) -> List[Delivery]:
        deliveries: List[Delivery] = []

        counterpart = role.counterpart
        if counterpart is not None:
            other = room.holder(counterpart)
            if other:
                deliveries.append(
                    Delivery(other, create_join_notice(connection_id, role.value))
                )
                deliveries.append(
                    Delivery(
                        connection_id, create_join_notice(other, counterpart.value)
                    )
                )

        lobby = room.holder(Role.TRANSITIONAL)
        if lobby and room.holder(Role.INITIATOR) and role in (
            Role.INITIATOR,
            Role.TRANSITIONAL,
        ):
            logger.info(f"Routing lobby {lobby} to viewer for room {room.room_id}")
            deliveries.append(Delivery(lobby, create_route_notice(room.room_id)))

        return deliveries
