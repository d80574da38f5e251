import threading
from typing import Dict, Optional, Set, Tuple

from quizhub.errors import UnknownMember


class _RoomScores:
    def __init__(self):
        self.lock = threading.Lock()
        self.scores: Dict[str, int] = {}
        # (identity, question_id) pairs already answered this game
        self.claims: Set[Tuple[str, str]] = set()


class ScoreBoard:
    """Per-room, per-member score counters.

    Each room has its own lock, so increments in one room never wait on
    another. An entry exists only while its member is registered in the room.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._rooms: Dict[str, _RoomScores] = {}

    def _room(self, room_key: str, create: bool = False) -> Optional[_RoomScores]:
        with self._lock:
            room = self._rooms.get(room_key)
            if room is None and create:
                room = self._rooms[room_key] = _RoomScores()
            return room

    def initialize(self, room_key: str, identity: str) -> None:
        room = self._room(room_key, create=True)
        with room.lock:
            room.scores[identity] = 0

    def contains(self, room_key: str, identity: str) -> bool:
        room = self._room(room_key)
        if room is None:
            return False
        with room.lock:
            return identity in room.scores

    def increment(self, room_key: str, identity: str) -> int:
        room = self._room(room_key)
        if room is None:
            raise UnknownMember(f'no score entry for {identity} in {room_key}')
        with room.lock:
            if identity not in room.scores:
                raise UnknownMember(f'no score entry for {identity} in {room_key}')
            room.scores[identity] += 1
            return room.scores[identity]

    def remove(self, room_key: str, identity: str) -> None:
        room = self._room(room_key)
        if room is None:
            return
        with room.lock:
            room.scores.pop(identity, None)
            room.claims = {c for c in room.claims if c[0] != identity}

    def snapshot(self, room_key: str) -> Dict[str, int]:
        room = self._room(room_key)
        if room is None:
            return {}
        with room.lock:
            return dict(room.scores)

    def reset_all(self, room_key: str) -> None:
        """Zero every entry of the room and forget answered questions."""
        room = self._room(room_key)
        if room is None:
            return
        with room.lock:
            for identity in room.scores:
                room.scores[identity] = 0
            room.claims.clear()

    def claim(self, room_key: str, identity: str, question_id) -> bool:
        """Record that a member answered a question; False if already recorded."""
        room = self._room(room_key)
        if room is None:
            return False
        key = (identity, str(question_id))
        with room.lock:
            if key in room.claims:
                return False
            room.claims.add(key)
            return True

    def release(self, room_key: str, identity: str, question_id) -> None:
        room = self._room(room_key)
        if room is None:
            return
        with room.lock:
            room.claims.discard((identity, str(question_id)))

    def discard_room(self, room_key: str) -> None:
        with self._lock:
            self._rooms.pop(room_key, None)
