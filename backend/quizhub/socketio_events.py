from flask import current_app, request
from quizhub import socketio


def _gateway():
    return current_app.extensions['quizhub']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect(auth=None):
    _gateway().dispatch('connect', _get_sid())


def handle_disconnect(reason=None):
    _gateway().dispatch('disconnect', _get_sid())


def _relay(event: str):
    def handler(data=None):
        # Older clients send the bare room key instead of an object
        if isinstance(data, str):
            data = {'room_key': data}
        _gateway().dispatch(event, _get_sid(), data)
    handler.__name__ = f"handle_{event.replace('-', '_')}"
    return handler


def register_socketio_handlers(events, namespace: str = '/ws') -> None:
    """Register Socket.IO event handlers on the given namespace.

    Every room event goes through the gateway's single dispatch entry point.
    """
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    for event in events:
        if event in ('connect', 'disconnect'):
            continue
        socketio.on_event(event, _relay(event), namespace=namespace)
