from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def create_app(config_class=Config, oracle=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # The registry is owned by this app; handlers reach it via current_app
    from arena.services.battle import SessionRegistry, build_oracle
    from arena.socketio_events import broadcast_state, broadcast_session_ended
    registry = SessionRegistry.from_config(
        flask_app.config,
        oracle or build_oracle(flask_app.config),
        notify=broadcast_state,
        on_expire=broadcast_session_ended,
        logger=flask_app.logger,
    )
    flask_app.extensions['battle_sessions'] = registry

    # Import and register blueprints here
    from arena.routes import main
    flask_app.register_blueprint(main)

    from arena.api.battles import battles
    flask_app.register_blueprint(battles, url_prefix='/api/battles')

    from arena.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    if not flask_app.config.get('TESTING') or flask_app.config.get('ENABLE_SWEEPER_IN_TESTS'):
        registry.start_sweeper()

    return flask_app
