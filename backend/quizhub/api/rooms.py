from flask import Blueprint, current_app, jsonify

rooms = Blueprint('rooms', __name__)


@rooms.route('/<string:room_key>/state', methods=['GET'])
def get_room_state(room_key):
    """
    Returns membership, scores and lifecycle state of a live room.
    """
    state = current_app.extensions['quizhub'].room_state(room_key)
    if state is None:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify(state), 200
