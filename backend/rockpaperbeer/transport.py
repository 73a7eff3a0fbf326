from flask import request
from flask_socketio import join_room, leave_room

from rockpaperbeer import socketio


class SocketTransport:
    """The only place that knows connections are Socket.IO sids.

    Room services address players by id and rooms by room id; this maps both
    onto sids and Socket.IO rooms in one namespace.
    """

    def __init__(self, namespace: str = '/'):
        self.namespace = namespace

    def current_player_id(self) -> str:
        # request.sid exists in Socket.IO handler context
        return request.sid  # type: ignore[attr-defined]

    def join(self, player_id: str, room_id: str) -> None:
        join_room(room_id, sid=player_id, namespace=self.namespace)

    def leave(self, player_id: str, room_id: str) -> None:
        leave_room(room_id, sid=player_id, namespace=self.namespace)

    def send(self, player_id: str, event: str, payload: dict) -> None:
        socketio.emit(event, payload, to=player_id, namespace=self.namespace)

    def broadcast(self, room_id: str, event: str, payload: dict) -> None:
        socketio.emit(event, payload, to=room_id, namespace=self.namespace)
