"""Authentication routes for the library management system.

This module handles login, logout and the current-user lookup. Credentials
are checked by the User model, which also applies the frozen-account and
maintenance-mode gates.
"""
from typing import Optional

from flask import Blueprint, g, jsonify, request, session

from lumilib.models.system_config import SystemSettings
from lumilib.models.user import User
from lumilib.utils.decorators import login_required

# Create authentication blueprint
auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    """Handle user login.

    JSON payload:
        username: Login name.
        password: Password.
        role: 'reader' (default) or 'admin'.
        remember: Keep the session after the browser closes.

    Returns:
        JSON response with the user and the library announcement.
    """
    data = request.get_json(silent=True) or {}
    username: str = (data.get('username') or '').strip()
    password: str = data.get('password') or ''
    role: str = data.get('role') or 'reader'
    remember: bool = bool(data.get('remember'))

    user: Optional[User] = User.authenticate(username, password, role)

    # Create user session
    session.clear()
    session['user_id'] = user.id
    session['user_role'] = user.role
    session.permanent = remember

    return jsonify({
        'success': True,
        'message': f'Welcome back, {user.name}!',
        'user': user.to_dict(),
        'announcement': SystemSettings.get().announcement
    })


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Handle user logout by clearing the session."""
    session.clear()
    return jsonify({'success': True, 'message': 'You have been logged out successfully'})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    """Return the logged-in user."""
    return jsonify({'success': True, 'user': g.user.to_dict()})
