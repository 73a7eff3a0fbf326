from datetime import datetime, timezone

from flask import Blueprint, jsonify

from rockpaperbeer.services import get_services

main = Blueprint('main', __name__)
debug = Blueprint('debug', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Rock Paper Beer server'})


@main.route('/health')
def health():
    return jsonify({'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat()})


@debug.route('/rooms', methods=['GET'])
def list_rooms():
    rooms = get_services().store.all()
    return jsonify({'rooms': [r.to_dict() for r in rooms], 'count': len(rooms)})


@debug.route('/rooms', methods=['DELETE'])
def clear_rooms():
    services = get_services()
    services.supervisor.cancel_all()
    services.store.clear()
    return jsonify({'message': 'All rooms cleared'})


@debug.route('/rooms/<room_id>', methods=['DELETE'])
def delete_room(room_id):
    services = get_services()
    services.supervisor.cancel(room_id)
    if not services.store.delete(room_id):
        return jsonify({'error': 'Room not found'}), 404
    return jsonify({'message': 'Room deleted', 'roomId': room_id})
