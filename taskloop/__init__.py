from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException
import logging
from dotenv import load_dotenv

load_dotenv()

db = SQLAlchemy()
migrate = Migrate()
limiter = Limiter(key_func=get_remote_address)
socketio = SocketIO()

logger = logging.getLogger(__name__)


def create_app(config_name='development'):
    app = Flask(__name__)

    from taskloop.config import get_config
    app.config.from_object(get_config(config_name))

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    CORS(app, origins=app.config['CORS_ORIGINS'])
    socketio.init_app(app, cors_allowed_origins=app.config['CORS_ORIGINS'])

    from taskloop import models  # noqa: F401  (register tables on db.metadata)

    if app.config.get('AUTO_CREATE_TABLES'):
        with app.app_context():
            try:
                db.create_all()
            except Exception as e:
                logger.warning(f"Could not create database tables: {e}")

    from taskloop.routes import register_routes
    register_routes(app)

    from taskloop.socket_events import register_socket_events
    register_socket_events(socketio)

    from taskloop.cli import register_commands
    register_commands(app)

    register_error_handlers(app)

    @app.route('/health', methods=['GET'])
    def health():
        return {'status': 'ok'}, 200

    return app


def register_error_handlers(app):
    """Turn service errors into JSON responses."""
    from taskloop.services.errors import TaskLoopError

    @app.errorhandler(TaskLoopError)
    def handle_taskloop_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        logger.error(f"Unhandled error: {error}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500
