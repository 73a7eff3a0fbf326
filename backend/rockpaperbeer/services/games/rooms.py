"""Room snapshots and the pure transitions between them.

A ``Room`` is never changed in place. Every transition takes a snapshot and
returns a new one (or raises a ``GameError``); storing the result is the
room store's job.

Phases: ``waiting --start_round--> round --both moves--> reveal``, and
``reveal --start_round--> round`` for every following round.
"""
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from rockpaperbeer.errors import (
    AlreadyInRoom,
    NoCurrentRound,
    NotEnoughPlayers,
    PlayerNotInRoom,
    RoomFull,
    RoundAlreadyFinished,
    WrongPhase,
)
from .rules import Move, RoundResult, Winner, decide_winner

MAX_PLAYERS = 2
CODE_LENGTH = 8


class GamePhase(str, Enum):
    WAITING = 'waiting'
    ROUND = 'round'
    REVEAL = 'reveal'


class RoundState(str, Enum):
    WAITING = 'waiting'
    FINISHED = 'finished'


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    avatar: Optional[str] = None
    is_ready: bool = False

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'avatar': self.avatar,
            'isReady': self.is_ready,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            name=data['name'],
            avatar=data.get('avatar'),
            is_ready=bool(data.get('isReady', False)),
        )


@dataclass(frozen=True)
class Round:
    round_number: int
    moves: dict = field(default_factory=dict)  # player id -> Move, copied on write
    state: RoundState = RoundState.WAITING
    result: Optional[RoundResult] = None

    @property
    def is_finished(self) -> bool:
        return self.state == RoundState.FINISHED

    def to_dict(self, conceal_moves=True):
        # Only who has moved is public until the round is decided.
        hide = conceal_moves and not self.is_finished
        return {
            'roundNumber': self.round_number,
            'moves': {pid: (None if hide else move.value) for pid, move in self.moves.items()},
            'state': self.state.value,
            'result': self.result.to_dict() if self.result else None,
        }

    @classmethod
    def from_dict(cls, data):
        result = data.get('result')
        return cls(
            round_number=int(data['roundNumber']),
            moves={pid: Move(m) for pid, m in (data.get('moves') or {}).items()},
            state=RoundState(data['state']),
            result=RoundResult.from_dict(result) if result else None,
        )


@dataclass(frozen=True)
class Room:
    id: str
    code: str
    players: tuple = ()
    game_phase: GamePhase = GamePhase.WAITING
    current_round: int = 0
    rounds: tuple = ()
    created_at: datetime = None
    updated_at: datetime = None

    @property
    def is_empty(self) -> bool:
        return not self.players

    def has_player(self, player_id: str) -> bool:
        return any(p.id == player_id for p in self.players)

    def to_dict(self, conceal_moves=True):
        return {
            'id': self.id,
            'code': self.code,
            'players': [p.to_dict() for p in self.players],
            'gamePhase': self.game_phase.value,
            'currentRound': self.current_round,
            'rounds': [r.to_dict(conceal_moves=conceal_moves) for r in self.rounds],
            'createdAt': self.created_at.isoformat(),
            'updatedAt': self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            code=data['code'],
            players=tuple(Player.from_dict(p) for p in data.get('players') or []),
            game_phase=GamePhase(data['gamePhase']),
            current_round=int(data.get('currentRound') or 0),
            rounds=tuple(Round.from_dict(r) for r in data.get('rounds') or []),
            created_at=datetime.fromisoformat(data['createdAt']),
            updated_at=datetime.fromisoformat(data['updatedAt']),
        )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def short_code(room_id: str) -> str:
    return room_id.replace('-', '')[:CODE_LENGTH].upper()


def _touch(room: Room, **changes) -> Room:
    # updated_at must strictly advance, even when the clock does not.
    now = utcnow()
    if room.updated_at is not None and now <= room.updated_at:
        now = room.updated_at + timedelta(microseconds=1)
    return replace(room, updated_at=now, **changes)


def current_round(room: Room) -> Optional[Round]:
    return room.rounds[-1] if room.rounds else None


def create_room(creator_id: str, name: str, avatar: Optional[str] = None) -> Room:
    room_id = str(uuid.uuid4())
    now = utcnow()
    return Room(
        id=room_id,
        code=short_code(room_id),
        players=(Player(id=creator_id, name=name, avatar=avatar),),
        game_phase=GamePhase.WAITING,
        current_round=0,
        rounds=(),
        created_at=now,
        updated_at=now,
    )


def join_room(room: Room, player_id: str, name: str, avatar: Optional[str] = None) -> Room:
    if len(room.players) >= MAX_PLAYERS:
        raise RoomFull()
    if room.has_player(player_id):
        raise AlreadyInRoom()
    player = Player(id=player_id, name=name, avatar=avatar)
    return _touch(room, players=room.players + (player,))


def remove_player(room: Room, player_id: str) -> Room:
    """Drop a player. An empty result must be deleted by the caller."""
    return _touch(room, players=tuple(p for p in room.players if p.id != player_id))


def leave_room(room: Room, player_id: str) -> Room:
    if not room.has_player(player_id):
        raise PlayerNotInRoom()
    return remove_player(room, player_id)


def ensure_can_start(room: Room) -> None:
    if len(room.players) < MAX_PLAYERS:
        raise NotEnoughPlayers()


def start_round(room: Room) -> Room:
    number = room.current_round + 1
    return _touch(
        room,
        current_round=number,
        rounds=room.rounds + (Round(round_number=number),),
        game_phase=GamePhase.ROUND,
        players=tuple(replace(p, is_ready=False) for p in room.players),
    )


def submit_move(room: Room, player_id: str, move) -> Room:
    """Record a move; decide the round once both players have moved.

    A second submission from the same player before the round is decided
    replaces the first.
    """
    if room.game_phase != GamePhase.ROUND:
        raise WrongPhase()
    rnd = current_round(room)
    if rnd is None:
        raise NoCurrentRound()
    if rnd.state != RoundState.WAITING:
        raise RoundAlreadyFinished()
    if not room.has_player(player_id):
        raise PlayerNotInRoom()

    moves = {**rnd.moves, player_id: Move(move)}
    phase = room.game_phase
    updated = replace(rnd, moves=moves)

    if len(room.players) == MAX_PLAYERS and all(p.id in moves for p in room.players):
        first, second = room.players
        updated = replace(
            updated,
            state=RoundState.FINISHED,
            result=decide_winner(moves[first.id], moves[second.id]),
        )
        phase = GamePhase.REVEAL

    return _touch(room, rounds=room.rounds[:-1] + (updated,), game_phase=phase)


def pending_players(room: Room) -> list:
    """Players who still owe a move in the current round."""
    rnd = current_round(room)
    if room.game_phase != GamePhase.ROUND or rnd is None or rnd.is_finished:
        return []
    return [p for p in room.players if p.id not in rnd.moves]


def result_for(room: Room, player_id: str, round_number: Optional[int] = None) -> Optional[dict]:
    """Translate a positional round result into the given player's view.

    Library helper for clients and tools consuming room snapshots; the server
    broadcasts the positional result and never calls this itself. Returns
    ``{winner: me|opponent|draw, myMove, opponentMove}`` or ``None`` when the
    round is undecided or the player was not in it.
    """
    if round_number is None:
        rnd = current_round(room)
    elif 0 < round_number <= len(room.rounds):
        rnd = room.rounds[round_number - 1]
    else:
        rnd = None
    if rnd is None or rnd.result is None:
        return None

    index = next((i for i, p in enumerate(room.players) if p.id == player_id), None)
    if index is None:
        return None

    res = rnd.result
    mine, theirs = (res.player1_move, res.player2_move) if index == 0 else (res.player2_move, res.player1_move)
    if res.winner == Winner.DRAW:
        outcome = 'draw'
    elif (res.winner == Winner.PLAYER1) == (index == 0):
        outcome = 'me'
    else:
        outcome = 'opponent'
    return {'winner': outcome, 'myMove': mine.value, 'opponentMove': theirs.value}
