"""Room coordination: membership, live scores, lifecycle and fan-out.

Nothing in this package knows about Flask or Socket.IO; the gateway talks to
the outside world through a transport object and two collaborators.
"""

from .gateway import SessionGateway
from .lifecycle import RoomLifecycle, RoomState
from .locks import KeyedLocks
from .registry import Member, RoomRegistry
from .scoreboard import ScoreBoard

__all__ = [
    'KeyedLocks',
    'Member',
    'RoomLifecycle',
    'RoomRegistry',
    'RoomState',
    'ScoreBoard',
    'SessionGateway',
]
