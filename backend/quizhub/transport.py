from flask_socketio import SocketIO


def room_channel(room_key: str) -> str:
    return f"room:{room_key}"


class SocketIOTransport:
    """Delivers gateway events over Flask-SocketIO.

    Member identities are Socket.IO session ids on a single namespace.
    """

    def __init__(self, socketio: SocketIO, namespace: str = '/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def to_room(self, room_key: str, event: str, payload) -> None:
        self.socketio.emit(event, payload, to=room_channel(room_key), namespace=self.namespace)

    def to_member(self, identity: str, event: str, payload) -> None:
        self.socketio.emit(event, payload, to=identity, namespace=self.namespace)

    def enter_room(self, identity: str, room_key: str) -> None:
        self.socketio.server.enter_room(identity, room_channel(room_key), namespace=self.namespace)

    def exit_room(self, identity: str, room_key: str) -> None:
        self.socketio.server.leave_room(identity, room_channel(room_key), namespace=self.namespace)
