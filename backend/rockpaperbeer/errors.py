"""Domain errors raised by the room services.

Every error carries the message sent back to the client in ``error``
events. Handlers catch ``GameError`` at the action boundary; anything else
is treated as an internal failure.
"""


class GameError(Exception):
    """Base class for all errors a client may see."""

    message = 'Something went wrong'

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(GameError):
    message = 'Invalid payload'


class NotFoundError(GameError):
    message = 'Not found'


class CapacityError(GameError):
    message = 'Room is full'


class PhaseError(GameError):
    message = 'Action not allowed right now'


class InternalError(GameError):
    message = 'Internal error'


# ---- Not found ----

class RoomNotFound(NotFoundError):
    message = 'Room not found'


class PlayerNotInRoom(NotFoundError):
    message = 'You are not a player in this room'


# ---- Capacity ----

class RoomFull(CapacityError):
    message = 'Room is full'


class AlreadyInRoom(CapacityError):
    message = 'You are already in this room'


# ---- Phase ----

class NotEnoughPlayers(PhaseError):
    message = 'Not enough players to start a round'


class WrongPhase(PhaseError):
    message = 'Cannot submit move - not in round phase'


class NoCurrentRound(PhaseError):
    message = 'No current round found'


class RoundAlreadyFinished(PhaseError):
    message = 'Round has already finished'


# ---- Internal ----

class StoreConflict(InternalError):
    """The room kept changing underneath a compare-and-swap update."""

    message = 'Room is busy, try again'
