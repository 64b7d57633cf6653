"""Utilities package for the library management system.

This package contains helper functions, decorators, and utilities
used across the application.
"""
from lumilib.utils.decorators import login_required, role_required

__all__ = [
    'login_required',
    'role_required',
]