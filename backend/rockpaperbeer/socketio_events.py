from functools import wraps

from rockpaperbeer import socketio
from rockpaperbeer.errors import GameError, RoomNotFound
from rockpaperbeer.schemas import (
    CreateRoomPayload,
    GetRoomPayload,
    JoinRoomPayload,
    LeaveRoomPayload,
    StartRoundPayload,
    SubmitMovePayload,
    parse_payload,
)
from rockpaperbeer.services.games import rooms


def action(verb: str):
    """Run a client action; failures reach only the player who sent it."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(self, player_id, data=None):
            try:
                return fn(self, player_id, data)
            except GameError as exc:
                self.logger.info(f"[action-error] action={fn.__name__} player={player_id} error={exc.message}")
                self.transport.send(player_id, 'error', {'message': exc.message})
            except Exception:
                self.logger.exception(f"[action-error] action={fn.__name__} player={player_id}")
                self.transport.send(player_id, 'error', {'message': f'Failed to {verb}'})
            return None
        return wrapper
    return decorator


class SessionCoordinator:
    """Turns client actions into room transitions and broadcasts.

    Every write goes through ``store.update`` so each action is applied to
    the latest snapshot exactly once; nothing is broadcast unless the
    transition succeeded.
    """

    def __init__(self, app, store, supervisor, transport):
        self.store = store
        self.supervisor = supervisor
        self.transport = transport
        self.logger = app.logger

    @action('create room')
    def create_room(self, player_id, data):
        payload = parse_payload(CreateRoomPayload, data)
        room = self.store.create(lambda: rooms.create_room(player_id, payload.playerName, payload.avatar))
        self.transport.join(player_id, room.id)
        self.transport.send(player_id, 'roomCreated', {'room': room.to_dict()})
        self.transport.send(player_id, 'roomUpdated', {'room': room.to_dict()})
        self.logger.info(f"[room-create] room={room.id} code={room.code} by={payload.playerName}")
        return room

    @action('get room')
    def get_room(self, player_id, data):
        payload = parse_payload(GetRoomPayload, data)
        room = self.store.require(payload.roomId)
        self.transport.send(player_id, 'roomData', {'room': room.to_dict()})
        return room

    @action('join room')
    def join_room(self, player_id, data):
        payload = parse_payload(JoinRoomPayload, data)
        if payload.roomCode:
            found = self.store.get_by_code(payload.roomCode)
            if found is None:
                raise RoomNotFound('Room not found with that code')
            room_id = found.id
        else:
            room_id = payload.roomId

        room = self.store.update(
            room_id, lambda r: rooms.join_room(r, player_id, payload.playerName, payload.avatar)
        )
        self.transport.join(player_id, room.id)
        self.transport.broadcast(room.id, 'roomUpdated', {'room': room.to_dict()})
        self.logger.info(f"[room-join] room={room.id} code={room.code} player={payload.playerName}")
        return room

    @action('start round')
    def start_round(self, player_id, data):
        payload = parse_payload(StartRoundPayload, data)

        def _start(room):
            rooms.ensure_can_start(room)
            return rooms.start_round(room)

        room = self.store.update(payload.roomId, _start)
        self.supervisor.arm(room.id, room.current_round)
        self.transport.broadcast(
            room.id, 'roundStarted', {'room': room.to_dict(), 'timeoutMs': self.supervisor.timeout_ms}
        )
        self.transport.broadcast(room.id, 'roomUpdated', {'room': room.to_dict()})
        self.logger.info(f"[round-start] room={room.id} round={room.current_round}")
        return room

    @action('submit move')
    def submit_move(self, player_id, data):
        payload = parse_payload(SubmitMovePayload, data)
        room = self.store.update(payload.roomId, lambda r: rooms.submit_move(r, player_id, payload.move))
        finished = rooms.current_round(room).is_finished
        if finished:
            self.supervisor.cancel(room.id)
        self.logger.info(f"[move] room={room.id} player={player_id} round={room.current_round}")
        self.transport.broadcast(room.id, 'moveSubmitted', {'room': room.to_dict()})
        if finished:
            self.transport.broadcast(room.id, 'roundFinished', {'room': room.to_dict()})
            self.logger.info(f"[round-finish] room={room.id} round={room.current_round}")
        return room

    @action('leave room')
    def leave_room(self, player_id, data):
        payload = parse_payload(LeaveRoomPayload, data)
        room = self.store.update(payload.roomId, lambda r: rooms.leave_room(r, player_id))
        self.supervisor.cancel(room.id)
        self.transport.leave(player_id, room.id)
        self.transport.send(player_id, 'roomLeft', {'roomId': room.id})
        if room.is_empty:
            self.logger.info(f"[room-delete] room={room.id} last player left")
        else:
            self.transport.broadcast(room.id, 'playerLeft', {'playerId': player_id, 'room': room.to_dict()})
        return room

    def disconnect(self, player_id):
        """Remove a dropped connection's player from every room it was in."""
        try:
            affected = self.store.remove_player(player_id)
        except Exception:
            self.logger.exception(f"[disconnect] player={player_id} cleanup failed")
            return []
        for room in affected:
            self.supervisor.cancel(room.id)
            if room.is_empty:
                self.logger.info(f"[room-delete] room={room.id} last player disconnected")
                continue
            self.transport.broadcast(room.id, 'playerDisconnected', {'playerId': player_id, 'room': room.to_dict()})
        self.logger.info(f"[disconnect] player={player_id} rooms={[r.id for r in affected]}")
        return affected


def register_socketio_handlers(coordinator: SessionCoordinator, namespace: str = '/') -> None:
    """Bind the client actions to Socket.IO events on ``namespace``."""
    transport = coordinator.transport

    def handle_connect(auth=None):
        player_id = transport.current_player_id()
        transport.send(player_id, 'connected', {'playerId': player_id})

    def handle_disconnect(reason=None):
        coordinator.disconnect(transport.current_player_id())

    def bind(event, method):
        def handler(data=None):
            method(transport.current_player_id(), data)
        handler.__name__ = f'handle_{event}'
        socketio.on_event(event, handler, namespace=namespace)

    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    bind('createRoom', coordinator.create_room)
    bind('getRoom', coordinator.get_room)
    bind('joinRoom', coordinator.join_room)
    bind('startRound', coordinator.start_round)
    bind('submitMove', coordinator.submit_move)
    bind('leaveRoom', coordinator.leave_room)
