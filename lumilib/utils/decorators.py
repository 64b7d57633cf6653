"""Authentication and authorization decorators.

This module contains decorators for protecting JSON routes and checking user
roles. The logged-in user is loaded into ``g.user`` for the view.
"""
from functools import wraps
from typing import Callable

from flask import g, jsonify, session

from lumilib.models.user import User


def _load_session_user():
    """Return the active session user, clearing stale sessions."""
    user_id = session.get('user_id')
    if user_id is None:
        return None
    user = User.get_by_id(user_id)
    if not user or not user.is_active:
        session.clear()
        return None
    return user


def login_required(f: Callable) -> Callable:
    """Decorator to require user login for a route.

    Args:
        f: The function to decorate.

    Returns:
        The decorated function that checks authentication.

    Example:
        @api_bp.route('/records')
        @login_required
        def my_records():
            return jsonify(...)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = _load_session_user()
        if not user:
            return jsonify({
                'success': False,
                'error': 'not_authenticated',
                'message': 'Please login to access this resource'
            }), 401
        g.user = user
        return f(*args, **kwargs)
    return decorated_function


def role_required(*roles: str) -> Callable:
    """Decorator to require specific user roles for a route.

    Admin users always have access. Other users must have one of the
    specified roles. Use after :func:`login_required`.

    Args:
        *roles: Variable length argument list of role names (e.g., 'reader').

    Returns:
        A decorator function that checks user roles.
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = _load_session_user()
            if not user:
                return jsonify({
                    'success': False,
                    'error': 'not_authenticated',
                    'message': 'Please login to access this resource'
                }), 401

            if user.is_admin() or user.role in roles:
                g.user = user
                return f(*args, **kwargs)

            return jsonify({
                'success': False,
                'error': 'forbidden',
                'message': 'You do not have permission to access this resource'
            }), 403

        return decorated_function
    return decorator
