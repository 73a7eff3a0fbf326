import json

from rockpaperbeer import db
from rockpaperbeer.services.games.rooms import Room


class RoomRecord(db.Model):
    """A room snapshot persisted by the SQL room store.

    The whole snapshot lives in ``payload``; ``version`` is bumped on every
    write and used for compare-and-swap updates.
    """
    __tablename__ = 'room'
    id = db.Column(db.String(36), primary_key=True)
    code = db.Column(db.String(8), unique=True, nullable=False, index=True)
    payload = db.Column(db.Text, nullable=False)  # JSON-encoded room snapshot
    version = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    @classmethod
    def from_room(cls, room: Room) -> 'RoomRecord':
        return cls(
            id=room.id,
            code=room.code,
            payload=encode_room(room),
            version=1,
            updated_at=room.updated_at,
        )

    def to_room(self) -> Room:
        return Room.from_dict(json.loads(self.payload))


def encode_room(room: Room) -> str:
    return json.dumps(room.to_dict(conceal_moves=False))
