"""Recoverable errors raised by the room coordination layer.

None of these is fatal: the gateway turns each one into a message for the
single member whose request triggered it.
"""


class QuizError(Exception):
    code = 'quiz_error'

    def __init__(self, message: str = ''):
        super().__init__(message or self.code)
        self.message = message or self.code


class UnknownMember(QuizError):
    """Score operation on a (room, member) pair with no entry."""
    code = 'unknown_member'


class InvalidTransition(QuizError):
    """Lifecycle operation not legal from the room's current state."""
    code = 'invalid_transition'


class RoomNotFound(QuizError):
    code = 'room_not_found'


class MemberInOtherRoom(QuizError):
    """Identity tried to join a second room without leaving the first."""
    code = 'member_in_other_room'


class CollaboratorUnavailable(QuizError):
    """Question store or score store failed or could not be reached."""
    code = 'collaborator_unavailable'
