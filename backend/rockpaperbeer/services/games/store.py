"""Room stores: keyed storage of room snapshots.

All writes go through ``update(room_id, transition)``, which loads the
current snapshot, applies a pure transition and stores the result as one
atomic step. A transition that returns the snapshot it was given is a
no-op; one that leaves the room without players deletes it.
"""
import logging
import threading
from datetime import timedelta
from typing import Callable, Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from rockpaperbeer import db
from rockpaperbeer.errors import PlayerNotInRoom, RoomNotFound, StoreConflict
from rockpaperbeer.models import RoomRecord, encode_room
from . import rooms
from .rooms import Room

logger = logging.getLogger(__name__)

Transition = Callable[[Room], Room]


def normalize_code(code: str) -> str:
    return (code or '').strip().upper()


class RoomStore:
    """Operations shared by every backend.

    Subclasses provide ``get``, ``get_by_code``, ``update``, ``delete``,
    ``all``, ``clear``, ``_insert`` and ``_delete_if``.
    """

    def __init__(self, ttl_sec: int = 86400):
        self.ttl = timedelta(seconds=ttl_sec)

    def create(self, factory: Callable[[], Room], attempts: int = 10) -> Room:
        """Store a room built by ``factory``, rebuilding it on a code clash."""
        for _ in range(attempts):
            room = factory()
            if self._insert(room):
                return room
            logger.warning(f"[room-code] collision on {room.code}, regenerating")
        raise StoreConflict('Could not allocate a room code')

    def require(self, room_id: str) -> Room:
        room = self.get(room_id)
        if room is None:
            raise RoomNotFound()
        return room

    def rooms_with_player(self, player_id: str) -> list:
        return [r for r in self.all() if r.has_player(player_id)]

    def remove_player(self, player_id: str) -> list:
        """Remove a player from every room holding them.

        Returns the resulting snapshots, including rooms that were deleted
        because they became empty.
        """
        affected = []
        for room in self.rooms_with_player(player_id):
            try:
                affected.append(self.update(room.id, lambda r: rooms.leave_room(r, player_id)))
            except (RoomNotFound, PlayerNotInRoom):
                # Changed between the scan and the update.
                continue
        return affected

    def sweep(self, now=None) -> list:
        """Evict empty rooms and rooms idle for longer than the TTL."""
        cutoff = (now or rooms.utcnow()) - self.ttl

        def _stale(room):
            return room.is_empty or room.updated_at < cutoff

        evicted = [r.id for r in self.all() if _stale(r) and self._delete_if(r.id, _stale)]
        if evicted:
            logger.info(f"[sweep] evicted {len(evicted)} room(s)")
        return evicted

    # ---- backend hooks ----

    def get(self, room_id: str) -> Optional[Room]:
        raise NotImplementedError

    def get_by_code(self, code: str) -> Optional[Room]:
        raise NotImplementedError

    def update(self, room_id: str, transition: Transition) -> Room:
        raise NotImplementedError

    def delete(self, room_id: str) -> bool:
        raise NotImplementedError

    def all(self) -> list:
        raise NotImplementedError

    def clear(self) -> int:
        raise NotImplementedError

    def _insert(self, room: Room) -> bool:
        raise NotImplementedError

    def _delete_if(self, room_id: str, predicate: Callable[[Room], bool]) -> bool:
        raise NotImplementedError


class InMemoryRoomStore(RoomStore):
    """Process-local store guarded by one re-entrant lock."""

    def __init__(self, ttl_sec: int = 86400):
        super().__init__(ttl_sec)
        self._lock = threading.RLock()
        self._rooms: dict[str, Room] = {}
        self._codes: dict[str, str] = {}

    def get(self, room_id):
        with self._lock:
            return self._rooms.get(room_id)

    def get_by_code(self, code):
        with self._lock:
            room_id = self._codes.get(normalize_code(code))
            return self._rooms.get(room_id) if room_id else None

    def update(self, room_id, transition):
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                raise RoomNotFound()
            updated = transition(room)
            if updated is room:
                return room
            if updated.is_empty:
                self._drop(room_id)
            else:
                self._rooms[room_id] = updated
            return updated

    def delete(self, room_id):
        with self._lock:
            return self._drop(room_id)

    def all(self):
        with self._lock:
            return list(self._rooms.values())

    def clear(self):
        with self._lock:
            count = len(self._rooms)
            self._rooms.clear()
            self._codes.clear()
            return count

    def _insert(self, room):
        with self._lock:
            if room.code in self._codes or room.id in self._rooms:
                return False
            self._rooms[room.id] = room
            self._codes[room.code] = room.id
            return True

    def _delete_if(self, room_id, predicate):
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None or not predicate(room):
                return False
            return self._drop(room_id)

    def _drop(self, room_id):
        room = self._rooms.pop(room_id, None)
        if room is None:
            return False
        if self._codes.get(room.code) == room_id:
            del self._codes[room.code]
        return True


class SqlRoomStore(RoomStore):
    """Store backed by the ``room`` table, shareable between processes.

    Updates are optimistic: the row is rewritten only if its ``version`` is
    still the one that was read, otherwise the transition is re-run on a
    fresh snapshot.
    """

    def __init__(self, ttl_sec: int = 86400, attempts: int = 5):
        super().__init__(ttl_sec)
        self.attempts = attempts

    def get(self, room_id):
        record = db.session.get(RoomRecord, room_id, populate_existing=True)
        return record.to_room() if record else None

    def get_by_code(self, code):
        record = RoomRecord.query.filter_by(code=normalize_code(code)).first()
        return record.to_room() if record else None

    def update(self, room_id, transition):
        for attempt in range(1, self.attempts + 1):
            try:
                record = self._load(room_id)
                if record is None:
                    raise RoomNotFound()
                room = record.to_room()
                version = record.version
                updated = transition(room)
            except Exception:
                db.session.rollback()
                raise
            if updated is room:
                db.session.rollback()
                return room

            guard = sa.and_(RoomRecord.id == room_id, RoomRecord.version == version)
            if updated.is_empty:
                stmt = sa.delete(RoomRecord).where(guard)
            else:
                stmt = sa.update(RoomRecord).where(guard).values(
                    payload=encode_room(updated),
                    version=version + 1,
                    updated_at=updated.updated_at,
                )
            result = db.session.execute(stmt.execution_options(synchronize_session=False))
            if result.rowcount == 1:
                db.session.commit()
                return updated
            db.session.rollback()
            logger.info(f"[cas-retry] room={room_id} attempt={attempt} version={version}")
        raise StoreConflict()

    def delete(self, room_id):
        count = RoomRecord.query.filter_by(id=room_id).delete()
        db.session.commit()
        return count > 0

    def all(self):
        return [record.to_room() for record in RoomRecord.query.all()]

    def clear(self):
        count = RoomRecord.query.delete()
        db.session.commit()
        return count

    def _insert(self, room):
        if RoomRecord.query.filter_by(code=room.code).first():
            return False
        db.session.add(RoomRecord.from_room(room))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            return False
        return True

    def _delete_if(self, room_id, predicate):
        record = self._load(room_id)
        if record is None or not predicate(record.to_room()):
            db.session.rollback()
            return False
        result = db.session.execute(
            sa.delete(RoomRecord)
            .where(RoomRecord.id == room_id, RoomRecord.version == record.version)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount == 1

    def _load(self, room_id):
        return db.session.execute(
            sa.select(RoomRecord)
            .where(RoomRecord.id == room_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()


def build_room_store(config) -> RoomStore:
    kind = (config.get('ROOM_STORE') or 'memory').lower()
    ttl = int(config.get('ROOM_TTL_SEC', 86400))
    if kind == 'memory':
        return InMemoryRoomStore(ttl_sec=ttl)
    if kind == 'sql':
        return SqlRoomStore(ttl_sec=ttl, attempts=int(config.get('STORE_UPDATE_ATTEMPTS', 5)))
    raise ValueError(f"Unknown ROOM_STORE {kind!r}")
