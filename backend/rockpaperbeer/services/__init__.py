from dataclasses import dataclass

from flask import current_app


@dataclass
class GameServices:
    """Per-app room services, created by ``create_app``."""
    store: object
    supervisor: object
    sweeper: object
    coordinator: object


def get_services(app=None) -> GameServices:
    return (app or current_app).extensions['rockpaperbeer']
