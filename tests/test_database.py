from datetime import timedelta

import pytest

from lumilib.extensions import socketio
from lumilib.models import events
from lumilib.models.borrow import BorrowRecord
from lumilib.models.database import after_commit, transaction
from lumilib.models.notification import Notification
from lumilib.models.reservation import Reservation

from conftest import NOW


@pytest.fixture
def pushed(monkeypatch):
    sent = []

    def fake_emit(event, data, **kwargs):
        sent.append((event, data['id'], kwargs.get('to')))

    monkeypatch.setattr(socketio, 'emit', fake_emit)
    return sent


def test_push_waits_for_commit(admin, pushed):
    with transaction():
        notification = Notification.create(admin.id, 'info', 'Hello', 'Welcome back')
        assert pushed == []

    assert pushed == [('notification', notification.id, f'user_{admin.id}')]


def test_rollback_drops_push(admin, pushed):
    with pytest.raises(RuntimeError):
        with transaction():
            Notification.create(admin.id, 'info', 'Hello', 'Welcome back')
            raise RuntimeError('abort')

    assert pushed == []
    assert Notification.get_by_user(admin.id) == []


def test_failed_return_pushes_nothing(admin, make_user, make_book, pushed):
    borrower, waiting = make_user(), make_user()
    book = make_book()
    record = BorrowRecord.borrow(borrower.id, book.id, now=NOW)
    reservation = Reservation.create(waiting.id, book.id, now=NOW)

    def fail(sender, **extra):
        raise RuntimeError('listener failed')

    with events.book_available.connected_to(fail):
        with pytest.raises(RuntimeError):
            BorrowRecord.return_book(record.id, now=NOW + timedelta(days=1))

    assert pushed == []
    assert BorrowRecord.get_by_id(record.id).status == 'borrowed'
    assert Reservation.get_by_id(reservation.id).status == 'pending'
    assert Notification.get_by_user(waiting.id) == []


def test_callback_outside_transaction_runs_immediately(ctx):
    calls = []
    after_commit(lambda: calls.append('ran'))
    assert calls == ['ran']


def test_failing_callback_does_not_undo_commit(admin):
    def explode():
        raise ValueError('push failed')

    with transaction():
        notification = Notification.create(admin.id, 'info', 'Hello', 'Still stored')
        after_commit(explode)

    assert [n.id for n in Notification.get_by_user(admin.id)] == [notification.id]
