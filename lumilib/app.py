"""LumiLib - Flask Application.

Fat Models, Skinny Controllers: the routes translate JSON requests into
model calls and model errors into JSON responses.
"""
import atexit
import logging

from flask import Flask, jsonify, session
from flask_socketio import join_room
from werkzeug.exceptions import HTTPException

from lumilib.config.config import Config
from lumilib.extensions import socketio
from lumilib.models import LibraryError, close_db, init_db
from lumilib.models.notification import user_room
from lumilib.routes import admin_bp, api_bp, auth_bp
from lumilib.scheduled_tasks import shutdown_scheduler, start_scheduler

logger = logging.getLogger(__name__)


def create_app(config_object=Config, **overrides) -> Flask:
    """Application factory.

    Args:
        config_object: Configuration class loaded with ``from_object``.
        **overrides: Individual settings applied on top (e.g. DATABASE_PATH).
    """
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    socketio.init_app(app)
    app.teardown_appcontext(close_db)

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(admin_bp, url_prefix='/admin')

    register_error_handlers(app)

    with app.app_context():
        init_db()

    if app.config['SCHEDULER_ENABLED']:
        start_scheduler(app)
        atexit.register(shutdown_scheduler)

    logger.info('LumiLib started with store %s', app.config['DATABASE_PATH'])
    return app


def register_error_handlers(app: Flask) -> None:

    @app.errorhandler(LibraryError)
    def library_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({
            'success': False,
            'error': error.name.lower().replace(' ', '_'),
            'message': error.description
        }), error.code

    @app.errorhandler(500)
    def internal_error(error):
        logger.error('Unhandled error: %s', error)
        return jsonify({
            'success': False,
            'error': 'internal_error',
            'message': 'Internal server error'
        }), 500


# --- Socket.IO ---

@socketio.on('connect')
def handle_connect():
    """Join the user's notification room when a logged-in user connects."""
    user_id = session.get('user_id')
    if user_id is None:
        return False
    join_room(user_room(user_id))


if __name__ == '__main__':
    application = create_app()
    socketio.run(application, debug=False, host='0.0.0.0', port=5000)
