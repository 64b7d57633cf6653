"""Flask extensions initialization module.

This module initializes all Flask extensions to prevent circular imports.
Extensions are initialized here and bound in create_app().
"""
from flask_socketio import SocketIO

# Bound to the app in create_app()
socketio: SocketIO = SocketIO(
    cors_allowed_origins="*",
    async_mode='threading'
)
