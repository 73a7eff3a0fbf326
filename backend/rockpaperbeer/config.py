import os


def _flag(name, default='0'):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Room store backend: 'memory' (single process) or 'sql' (shared database)
    ROOM_STORE = os.environ.get('ROOM_STORE', 'memory')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///rockpaperbeer.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Compare-and-swap retries before an update gives up (sql store only)
    STORE_UPDATE_ATTEMPTS = int(os.environ.get('STORE_UPDATE_ATTEMPTS', '5'))
    # Time a player has to move before one is picked for them (ms)
    MOVE_TIMEOUT_MS = int(os.environ.get('MOVE_TIMEOUT_MS', '15000'))
    # Rooms idle for longer than this are evicted (seconds)
    ROOM_TTL_SEC = int(os.environ.get('ROOM_TTL_SEC', str(24 * 60 * 60)))
    # Sweeper period (seconds). 0 disables the background sweeper.
    ROOM_SWEEP_INTERVAL_SEC = int(os.environ.get('ROOM_SWEEP_INTERVAL_SEC', '300'))
    # Optional: heartbeat interval for move timer logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS',
            'http://localhost:5173,http://localhost:5174,http://localhost:5175,http://localhost:5176',
        ).split(',') if o.strip()
    ]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    # Development-only /debug/rooms endpoints
    ENABLE_DEBUG_ROUTES = _flag('ENABLE_DEBUG_ROUTES')
