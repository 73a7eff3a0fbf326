import threading
from typing import Optional

from rockpaperbeer import socketio
from rockpaperbeer.errors import RoomNotFound
from . import rooms
from .rules import random_move


class TimeoutSupervisor:
    """Per-room move deadline that forces random moves for silent players.

    - At most one deadline per room; arming again replaces the previous one
    - A deadline belongs to the round it was armed for and never touches a
      later round
    - Each arm hands out a fresh token. Firing and cancelling both consume
      the token under one lock, so only one of them ever takes effect
    - In TESTING mode no sleeper is spawned unless ENABLE_SCHEDULER_IN_TESTS
      is set; tests call ``expire`` themselves
    """

    def __init__(self, app, store, transport, timeout_ms: int, spawn: bool = True, rng=None):
        self.app = app
        self.store = store
        self.transport = transport
        self.timeout_ms = int(timeout_ms)
        self.spawn = spawn
        self._rng = rng
        self._lock = threading.Lock()
        self._armed: dict[str, tuple] = {}  # room id -> (token, round number)
        self._generation = 0

    def arm(self, room_id: str, round_number: int) -> int:
        with self._lock:
            self._generation += 1
            token = self._generation
            replaced = self._armed.get(room_id, (None,))[0]
            self._armed[room_id] = (token, round_number)
        self.app.logger.info(
            f"[timer-set] room={room_id} round={round_number} token={token} "
            f"duration={self.timeout_ms}ms replaced={replaced}"
        )
        if self.spawn:
            socketio.start_background_task(self._sleeper, room_id, token)
        return token

    def cancel(self, room_id: str) -> bool:
        with self._lock:
            armed = self._armed.pop(room_id, None)
        token = armed[0] if armed else None
        if token is not None:
            self.app.logger.info(f"[timer-cancel] room={room_id} token={token}")
        return token is not None

    def cancel_all(self) -> int:
        with self._lock:
            count = len(self._armed)
            self._armed.clear()
        return count

    def armed_token(self, room_id: str) -> Optional[int]:
        with self._lock:
            armed = self._armed.get(room_id)
        return armed[0] if armed else None

    def _claim(self, room_id: str, token: int) -> Optional[int]:
        """Consume ``token`` and return the round it was armed for."""
        with self._lock:
            armed = self._armed.get(room_id)
            if armed is None or armed[0] != token:
                return None
            del self._armed[room_id]
            return armed[1]

    def _sleeper(self, room_id: str, token: int) -> None:
        delay = self.timeout_ms / 1000.0
        hb = int(self.app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)
        if hb > 0:
            slept = 0.0
            while slept < delay:
                step = min(hb, delay - slept)
                socketio.sleep(step)
                slept += step
                if self.armed_token(room_id) != token:
                    break
                self.app.logger.info(
                    f"[timer-heartbeat] room={room_id} token={token} remaining={max(0.0, delay - slept):.1f}s"
                )
        else:
            socketio.sleep(delay)
        self.expire(room_id, token)

    def expire(self, room_id: str, token: int) -> list:
        """Fire the deadline identified by ``token``.

        Returns the ids of players who got a forced move. A stale or
        cancelled token does nothing.
        """
        round_number = self._claim(room_id, token)
        if round_number is None:
            self.app.logger.info(f"[timer-abort] room={room_id} token={token} cancelled or replaced")
            return []
        self.app.logger.info(f"[timer-fire] room={room_id} round={round_number} token={token}")
        with self.app.app_context():
            try:
                return self._force_moves(room_id, round_number)
            except Exception:
                # The token is already consumed, so this deadline cannot fire again.
                self.app.logger.exception(f"[timer-error] room={room_id} token={token}")
                return []

    def _force_moves(self, room_id: str, round_number: int) -> list:
        room = self.store.get(room_id)
        if room is None:
            self.app.logger.info(f"[timer-abort] room={room_id} no longer exists")
            return []
        if room.current_round != round_number:
            self.app.logger.info(
                f"[timer-abort] room={room_id} round={round_number} superseded by round={room.current_round}"
            )
            return []

        forced = []
        for player in rooms.pending_players(room):
            move = random_move(self._rng)
            applied = []

            def _force(current, player_id=player.id, move=move):
                if current.current_round != round_number:
                    return current
                if player_id not in {p.id for p in rooms.pending_players(current)}:
                    return current
                applied.append(player_id)
                return rooms.submit_move(current, player_id, move)

            try:
                updated = self.store.update(room_id, _force)
            except RoomNotFound:
                break
            if not applied:
                continue

            forced.append(player.id)
            self.app.logger.info(f"[move] room={room_id} player={player.id} forced={move.value}")
            self.transport.broadcast(
                room_id, 'moveSubmitted', {'room': updated.to_dict(), 'timeout': True, 'playerId': player.id}
            )
            if rooms.current_round(updated).is_finished:
                self.app.logger.info(f"[round-finish] room={room_id} round={updated.current_round} after timeout")
                self.transport.broadcast(room_id, 'roundFinished', {'room': updated.to_dict()})
        return forced


class RoomSweeper:
    """Background loop evicting idle and empty rooms."""

    def __init__(self, app, store, supervisor, interval_sec: int):
        self.app = app
        self.store = store
        self.supervisor = supervisor
        self.interval_sec = int(interval_sec)
        self._stopped = threading.Event()

    def start(self) -> bool:
        if self.interval_sec <= 0:
            return False
        socketio.start_background_task(self._loop)
        return True

    def stop(self) -> None:
        self._stopped.set()

    def _loop(self) -> None:
        while not self._stopped.is_set():
            socketio.sleep(self.interval_sec)
            if self._stopped.is_set():
                break
            try:
                self.sweep_once()
            except Exception:
                self.app.logger.exception('[sweep] failed')

    def sweep_once(self, now=None) -> list:
        with self.app.app_context():
            evicted = self.store.sweep(now=now)
        for room_id in evicted:
            self.supervisor.cancel(room_id)
        if evicted:
            self.app.logger.info(f"[sweep] evicted rooms={evicted}")
        return evicted
