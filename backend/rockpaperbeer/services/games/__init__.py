"""Room domain services: rules, room transitions, storage and timers.

``rules`` and ``rooms`` are pure; ``store`` and ``scheduler`` hold the
shared state and are used by the socket handlers and HTTP routes, keeping
transport concerns out of the game mechanics.
"""
