from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from rockpaperbeer.config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from rockpaperbeer.routes import main, debug
    flask_app.register_blueprint(main)
    if flask_app.config.get('ENABLE_DEBUG_ROUTES'):
        flask_app.register_blueprint(debug, url_prefix='/debug')

    # Handlers bind to the socketio instance initialized above
    _init_game_services(flask_app)

    from rockpaperbeer.services import get_services

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the room table (sql store)."""
        db.drop_all()
        db.create_all()
        click.echo('Database has been reset!')

    @click.command('rooms-sweep')
    def rooms_sweep_command():
        """Evicts idle and empty rooms from the configured store."""
        evicted = get_services(flask_app).sweeper.sweep_once()
        click.echo(f'Evicted {len(evicted)} room(s)')

    @click.command('rooms-clear')
    def rooms_clear_command():
        """Deletes every room from the configured store."""
        count = get_services(flask_app).store.clear()
        click.echo(f'Cleared {count} room(s)')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(rooms_sweep_command)
    flask_app.cli.add_command(rooms_clear_command)

    return flask_app


def _init_game_services(flask_app):
    import rockpaperbeer.models  # noqa: F401  registers the room table
    from rockpaperbeer.services import GameServices
    from rockpaperbeer.services.games.scheduler import RoomSweeper, TimeoutSupervisor
    from rockpaperbeer.services.games.store import build_room_store
    from rockpaperbeer.socketio_events import SessionCoordinator, register_socketio_handlers
    from rockpaperbeer.transport import SocketTransport

    cfg = flask_app.config
    testing = bool(cfg.get('TESTING'))
    store = build_room_store(cfg)
    transport = SocketTransport(cfg.get('SOCKETIO_NAMESPACE', '/'))
    supervisor = TimeoutSupervisor(
        flask_app,
        store,
        transport,
        timeout_ms=cfg.get('MOVE_TIMEOUT_MS', 15000),
        spawn=not testing or bool(cfg.get('ENABLE_SCHEDULER_IN_TESTS')),
    )
    sweeper = RoomSweeper(flask_app, store, supervisor, cfg.get('ROOM_SWEEP_INTERVAL_SEC', 300))
    coordinator = SessionCoordinator(flask_app, store, supervisor, transport)
    register_socketio_handlers(coordinator, namespace=transport.namespace)

    flask_app.extensions['rockpaperbeer'] = GameServices(
        store=store, supervisor=supervisor, sweeper=sweeper, coordinator=coordinator
    )
    if not testing:
        sweeper.start()


def shutdown_game_services(flask_app):
    """Stop timers and the sweeper, then drop every room."""
    from rockpaperbeer.services import get_services

    services = get_services(flask_app)
    services.sweeper.stop()
    services.supervisor.cancel_all()
    with flask_app.app_context():
        services.store.clear()
