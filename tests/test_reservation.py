from datetime import timedelta

import pytest

from lumilib.models.borrow import BorrowRecord
from lumilib.models.errors import (AlreadyCancelled, DuplicateReservation,
                                   RecordNotFound, UserIneligible)
from lumilib.models.notification import Notification
from lumilib.models.reservation import Reservation

from conftest import NOW


@pytest.fixture
def borrower(admin, make_user):
    return make_user(username='borrower')


@pytest.fixture
def loaned_book(borrower, make_book):
    book = make_book(title='The Three-Body Problem', author='Liu Cixin')
    BorrowRecord.borrow(borrower.id, book.id, now=NOW)
    return book


def test_reserve_borrowed_book(make_user, loaned_book):
    reader = make_user()
    reservation = Reservation.create(reader.id, loaned_book.id, now=NOW)

    assert reservation.status == 'pending'
    assert reservation.notified_time is None
    assert reservation.get_queue_position() == 1
    assert Reservation.get_by_id(reservation.id).to_record() == reservation.to_record()


def test_reserve_available_book(admin, make_user, make_book):
    book = make_book()
    reservation = Reservation.create(make_user().id, book.id, now=NOW)
    assert reservation.status == 'pending'


def test_frozen_user_may_reserve(make_user, loaned_book):
    frozen = make_user(status='frozen')
    assert Reservation.create(frozen.id, loaned_book.id, now=NOW).status == 'pending'


def test_unknown_user_or_book(make_user, loaned_book):
    with pytest.raises(UserIneligible):
        Reservation.create(999, loaned_book.id, now=NOW)
    with pytest.raises(RecordNotFound):
        Reservation.create(make_user().id, 999, now=NOW)


def test_duplicate_pending_reservation(make_user, loaned_book):
    reader = make_user()
    Reservation.create(reader.id, loaned_book.id, now=NOW)

    with pytest.raises(DuplicateReservation):
        Reservation.create(reader.id, loaned_book.id, now=NOW + timedelta(minutes=5))
    assert len(Reservation.get_queue(loaned_book.id)) == 1


def test_reserve_again_after_cancel(make_user, loaned_book):
    reader = make_user()
    first = Reservation.create(reader.id, loaned_book.id, now=NOW)
    Reservation.cancel(first.id)

    second = Reservation.create(reader.id, loaned_book.id, now=NOW + timedelta(hours=1))
    assert second.id != first.id
    assert second.status == 'pending'


def test_cancel_twice(make_user, loaned_book):
    reservation = Reservation.create(make_user().id, loaned_book.id, now=NOW)

    cancelled = Reservation.cancel(reservation.id)
    assert cancelled.status == 'cancelled'
    with pytest.raises(AlreadyCancelled):
        Reservation.cancel(reservation.id)


def test_cancel_unknown_reservation(ctx):
    with pytest.raises(RecordNotFound):
        Reservation.cancel(42)


def test_queue_positions_follow_reservation_time(make_user, loaned_book):
    late = Reservation.create(make_user().id, loaned_book.id, now=NOW + timedelta(hours=2))
    early = Reservation.create(make_user().id, loaned_book.id, now=NOW + timedelta(hours=1))

    assert [r.id for r in Reservation.get_queue(loaned_book.id)] == [early.id, late.id]
    assert Reservation.get_by_id(early.id).get_queue_position() == 1
    assert Reservation.get_by_id(late.id).to_dict()['queue_position'] == 2


def test_return_notifies_oldest_pending_reservation(borrower, make_user, loaned_book):
    first, second = make_user(username='first'), make_user(username='second')
    r1 = Reservation.create(first.id, loaned_book.id, now=NOW + timedelta(days=1))
    r2 = Reservation.create(second.id, loaned_book.id, now=NOW + timedelta(days=2))
    record = BorrowRecord.get_open_record_for_book(loaned_book.id)
    returned_at = NOW + timedelta(days=5)

    BorrowRecord.return_book(record.id, now=returned_at)

    notified = Reservation.get_by_id(r1.id)
    assert notified.status == 'notified'
    assert notified.notified_time == '2025-01-06 12:00:00'
    assert notified.get_queue_position() is None
    assert Reservation.get_by_id(r2.id).status == 'pending'
    assert Reservation.get_by_id(r2.id).get_queue_position() == 1

    messages = Notification.get_by_user(first.id)
    assert len(messages) == 1
    assert 'The Three-Body Problem' in messages[0].message
    assert Notification.get_by_user(second.id) == []


def test_cancelled_reservations_are_skipped(borrower, make_user, loaned_book):
    first, second = make_user(), make_user()
    r1 = Reservation.create(first.id, loaned_book.id, now=NOW + timedelta(days=1))
    r2 = Reservation.create(second.id, loaned_book.id, now=NOW + timedelta(days=2))
    Reservation.cancel(r1.id)
    record = BorrowRecord.get_open_record_for_book(loaned_book.id)

    BorrowRecord.return_book(record.id, now=NOW + timedelta(days=3))

    assert Reservation.get_by_id(r1.id).status == 'cancelled'
    assert Reservation.get_by_id(r2.id).status == 'notified'


def test_return_without_queue_notifies_nobody(borrower, loaned_book):
    record = BorrowRecord.get_open_record_for_book(loaned_book.id)
    BorrowRecord.return_book(record.id, now=NOW + timedelta(days=3))

    assert Notification.get_by_user(borrower.id) == []
    assert Reservation.get_all() == []


def test_notified_reservation_can_be_cancelled(make_user, loaned_book):
    reader = make_user()
    reservation = Reservation.create(reader.id, loaned_book.id, now=NOW)
    record = BorrowRecord.get_open_record_for_book(loaned_book.id)
    BorrowRecord.return_book(record.id, now=NOW + timedelta(days=1))

    assert Reservation.cancel(reservation.id).status == 'cancelled'


def test_book_back_from_maintenance_notifies_queue(admin, make_user, make_book):
    book = make_book()
    admin.set_book_status(book.id, 'maintenance')
    reader = make_user()
    reservation = Reservation.create(reader.id, book.id, now=NOW)

    admin.set_book_status(book.id, 'available')

    assert Reservation.get_by_id(reservation.id).status == 'notified'
    assert Notification.get_unread_count(reader.id) == 1


def test_user_reservations_filter_by_status(make_user, loaned_book, make_book):
    reader = make_user()
    kept = Reservation.create(reader.id, loaned_book.id, now=NOW)
    dropped = Reservation.create(reader.id, make_book().id, now=NOW + timedelta(hours=1))
    Reservation.cancel(dropped.id)

    assert [r.id for r in Reservation.get_user_reservations(reader.id)] == [dropped.id, kept.id]
    assert [r.id for r in Reservation.get_user_reservations(reader.id, 'pending')] == [kept.id]
