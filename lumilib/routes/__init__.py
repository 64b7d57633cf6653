"""Routes package initialization.

This module exports all blueprints for registration in the main app.

Blueprint organization:
    - auth_bp: Authentication (login, logout, current user)
    - api_bp: Reader JSON endpoints (catalog, loans, reservations, reviews)
    - admin_bp: Admin dashboard, policy, accounts, catalog and logs
"""
from lumilib.routes.admin_routes import admin_bp
from lumilib.routes.api_routes import api_bp
from lumilib.routes.auth_routes import auth_bp

__all__ = [
    'auth_bp',
    'api_bp',
    'admin_bp',
]
