"""LumiLib - library lending service.

Readers borrow and reserve books, write reviews and track fines;
administrators manage the catalog, accounts and the lending policy.
"""
from lumilib.app import create_app

__all__ = ['create_app']
