import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from quizhub.errors import MemberInOtherRoom


@dataclass(frozen=True)
class Member:
    identity: str
    display_name: str

    def to_dict(self):
        return {'id': self.identity, 'display_name': self.display_name}


class RoomRegistry:
    """Live rooms and the members connected to each of them.

    A room exists while it has at least one member. Member maps keep insertion
    order so snapshots list members in the order they first joined.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._rooms: Dict[str, Dict[str, Member]] = {}
        self._member_rooms: Dict[str, str] = {}

    def join(self, room_key: str, identity: str, display_name: str) -> Tuple[Member, ...]:
        """Add (or rename) a member and return the room's membership snapshot.

        Raises MemberInOtherRoom when the identity already sits in another room.
        """
        with self._lock:
            current = self._member_rooms.get(identity)
            if current is not None and current != room_key:
                raise MemberInOtherRoom(f'{identity} is already in room {current}')
            members = self._rooms.setdefault(room_key, {})
            members[identity] = Member(identity, display_name)
            self._member_rooms[identity] = room_key
            return tuple(members.values())

    def leave(self, identity: str) -> Optional[Tuple[str, Tuple[Member, ...]]]:
        """Remove a member from its room.

        Returns (room_key, remaining members), or None if the identity is not
        tracked. A room left empty is dropped.
        """
        with self._lock:
            room_key = self._member_rooms.pop(identity, None)
            if room_key is None:
                return None
            members = self._rooms.get(room_key, {})
            members.pop(identity, None)
            if not members:
                self._rooms.pop(room_key, None)
            return room_key, tuple(members.values())

    def members_of(self, room_key: str) -> Tuple[Member, ...]:
        with self._lock:
            return tuple(self._rooms.get(room_key, {}).values())

    def member(self, room_key: str, identity: str) -> Optional[Member]:
        with self._lock:
            return self._rooms.get(room_key, {}).get(identity)

    def is_member(self, room_key: str, identity: str) -> bool:
        return self.member(room_key, identity) is not None

    def room_of(self, identity: str) -> Optional[str]:
        with self._lock:
            return self._member_rooms.get(identity)

    def display_names(self, room_key: str) -> Dict[str, str]:
        with self._lock:
            return {m.identity: m.display_name for m in self._rooms.get(room_key, {}).values()}

    def room_keys(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._rooms)

    def __contains__(self, room_key: str) -> bool:
        with self._lock:
            return room_key in self._rooms
