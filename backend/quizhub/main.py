from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the quizhub server!'})

@main.route('/health')
def health():
    gateway = current_app.extensions['quizhub']
    return jsonify({'status': 'ok', 'rooms': len(gateway.registry.room_keys())})
