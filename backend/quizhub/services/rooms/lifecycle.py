import enum
import itertools
import threading
from typing import Dict, Optional

from quizhub.errors import InvalidTransition


class RoomState(str, enum.Enum):
    WAITING = 'waiting'
    IN_PROGRESS = 'in_progress'
    FINISHED = 'finished'


class RoomLifecycle:
    """Per-room state machine: waiting -> in_progress -> finished (-> waiting).

    Every successful start gives the room a fresh game number, unique for the
    life of the process, so callers can detect that a game ended or restarted
    while they were busy elsewhere.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._states: Dict[str, RoomState] = {}
        self._games: Dict[str, int] = {}
        self._counter = itertools.count(1)

    def ensure(self, room_key: str) -> RoomState:
        with self._lock:
            return self._states.setdefault(room_key, RoomState.WAITING)

    def state_of(self, room_key: str) -> Optional[RoomState]:
        with self._lock:
            return self._states.get(room_key)

    def game_number(self, room_key: str) -> int:
        with self._lock:
            return self._games.get(room_key, 0)

    def start(self, room_key: str) -> int:
        with self._lock:
            state = self._states.get(room_key, RoomState.WAITING)
            if state is not RoomState.WAITING:
                raise InvalidTransition(f'cannot start room {room_key} while {state.value}')
            self._states[room_key] = RoomState.IN_PROGRESS
            self._games[room_key] = next(self._counter)
            return self._games[room_key]

    def finish(self, room_key: str) -> bool:
        """Move to finished. Returns False when the room was already finished."""
        with self._lock:
            state = self._states.get(room_key, RoomState.WAITING)
            if state is RoomState.FINISHED:
                return False
            if state is not RoomState.IN_PROGRESS:
                raise InvalidTransition(f'cannot finish room {room_key} while {state.value}')
            self._states[room_key] = RoomState.FINISHED
            return True

    def reset(self, room_key: str) -> None:
        with self._lock:
            state = self._states.get(room_key, RoomState.WAITING)
            if state is not RoomState.FINISHED:
                raise InvalidTransition(f'cannot reset room {room_key} while {state.value}')
            self._states[room_key] = RoomState.WAITING

    def can_accept_answer(self, room_key: str) -> bool:
        with self._lock:
            return self._states.get(room_key) is RoomState.IN_PROGRESS

    def discard(self, room_key: str) -> None:
        with self._lock:
            self._states.pop(room_key, None)
            self._games.pop(room_key, None)
