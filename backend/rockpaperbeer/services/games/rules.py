import random
from dataclasses import dataclass
from enum import Enum


class Move(str, Enum):
    ROCK = 'rock'
    PAPER = 'paper'
    BEER = 'beer'


class Winner(str, Enum):
    PLAYER1 = 'player1'
    PLAYER2 = 'player2'
    DRAW = 'draw'


# Each move beats exactly one other move.
BEATS = {
    Move.ROCK: Move.BEER,
    Move.BEER: Move.PAPER,
    Move.PAPER: Move.ROCK,
}


@dataclass(frozen=True)
class RoundResult:
    """Outcome of a finished round.

    ``player1``/``player2`` are positions in the room's player list at the
    time the round was decided, not player ids.
    """

    winner: Winner
    player1_move: Move
    player2_move: Move

    def to_dict(self):
        return {
            'winner': self.winner.value,
            'player1Move': self.player1_move.value,
            'player2Move': self.player2_move.value,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            winner=Winner(data['winner']),
            player1_move=Move(data['player1Move']),
            player2_move=Move(data['player2Move']),
        )


def beats(move: Move, against: Move) -> bool:
    return BEATS[move] == against


def decide_winner(move_a: Move, move_b: Move) -> RoundResult:
    """Decide a round; ``move_a`` is always reported as player1."""
    if move_a == move_b:
        return RoundResult(Winner.DRAW, move_a, move_b)
    if beats(move_a, move_b):
        return RoundResult(Winner.PLAYER1, move_a, move_b)
    return RoundResult(Winner.PLAYER2, move_a, move_b)


def random_move(rng=None) -> Move:
    return (rng or random).choice(list(Move))
