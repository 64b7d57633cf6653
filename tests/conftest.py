"""Shared fixtures: an app on a temporary record store plus entity factories."""
from datetime import datetime

import pytest

from lumilib import create_app
from lumilib.config import TestingConfig
from lumilib.models.admin import Admin

NOW = datetime(2025, 1, 1, 12, 0, 0)


@pytest.fixture
def app(tmp_path):
    return create_app(TestingConfig, DATABASE_PATH=str(tmp_path / 'library.db'))


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


def _bootstrap_admin():
    # Not stored; only used to create the first real admin account
    return Admin(id=0, username='bootstrap', name='Bootstrap', role='admin')


@pytest.fixture
def make_user():
    """Factory creating stored accounts (needs an app context)."""
    counter = iter(range(1, 10000))

    def factory(username=None, password='secret', name=None, role='reader',
                status='active', contact=''):
        n = next(counter)
        username = username or f'{role}{n}'
        return _bootstrap_admin().create_user(
            username=username,
            password=password,
            name=name or username.title(),
            role=role,
            contact=contact,
            status=status
        )
    return factory


@pytest.fixture
def make_book():
    """Factory creating catalog entries (needs an app context)."""
    counter = iter(range(1, 10000))

    def factory(title=None, author='Some Author', category='Computer Science', **fields):
        n = next(counter)
        return _bootstrap_admin().add_book(dict(
            isbn=f'978-0-000-{n:05d}-0',
            title=title or f'Book {n}',
            author=author,
            category=category,
            **fields
        ))
    return factory


@pytest.fixture
def admin(ctx, make_user):
    return make_user(username='admin', password='adminpass', name='Administrator', role='admin')


def login(client, username, password='secret', role='reader'):
    return client.post('/auth/login', json={
        'username': username, 'password': password, 'role': role
    })
