import threading

import click
from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from timersync.config import Config

socketio = SocketIO(async_mode=None)


def create_app(config_class=Config, scheduler=None, clock=None):
    """Build the Flask app and its timer service.

    `scheduler` and `clock` default to Socket.IO background ticks and wall
    time; tests inject manual ones to drive the countdown deterministically.
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from timersync.services.timers import Broadcaster, SocketIOTickScheduler, TimerService
    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/')
    lock = threading.RLock()
    if scheduler is None:
        scheduler = SocketIOTickScheduler(socketio, lock, interval=flask_app.config.get('TICK_INTERVAL_SEC', 1.0))
    service_kwargs = {}
    if clock is not None:
        service_kwargs['clock'] = clock
    flask_app.extensions['timersync'] = TimerService(
        Broadcaster.for_socketio(socketio, namespace),
        scheduler,
        lock=lock,
        default_max_viewers=flask_app.config.get('DEFAULT_MAX_VIEWERS', 4),
        default_max_timers=flask_app.config.get('DEFAULT_MAX_TIMERS', 3),
        **service_kwargs,
    )

    from timersync.routes import main
    flask_app.register_blueprint(main)

    from timersync.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=namespace)

    @click.command('serve')
    @click.option('--host', default='0.0.0.0', help='Interface to bind.')
    @click.option('--port', default=None, type=int, help='Port to listen on.')
    def serve_command(host, port):
        """Runs the Socket.IO server."""
        port = port or flask_app.config['PORT']
        click.echo(f'> Socket.IO server ready on port {port}')
        socketio.run(flask_app, host=host, port=port, allow_unsafe_werkzeug=True)

    flask_app.cli.add_command(serve_command)

    return flask_app
