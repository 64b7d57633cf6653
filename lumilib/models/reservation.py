"""
Reservation model for the book reservation queue.

Readers reserve books (usually ones that are out on loan). When a book
becomes available again the oldest pending reservation for it is moved to
'notified' and the reader gets a notification (FIFO). The queue listens for
``events.book_available`` rather than being called by the loan ledger.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from lumilib.models import events
from lumilib.models.database import (format_timestamp, load_collection,
                                     next_id, parse_timestamp,
                                     save_collection, transaction)
from lumilib.models.errors import (AlreadyCancelled, DuplicateReservation,
                                   RecordNotFound, UserIneligible)
from lumilib.models.system_log import SystemLog

logger = logging.getLogger(__name__)


class Reservation:
    """Represents a book reservation in the queue.

    Attributes:
        id (int): Unique reservation identifier.
        user_id (int): ID of user who made the reservation.
        book_id (int): ID of reserved book.
        reservation_time (str): When the reservation was made.
        status (str): 'pending', 'notified' or 'cancelled'.
        notified_time (str): When the user was told the book is available.
    """

    def __init__(self, id: int, user_id: int, book_id: int,
                 reservation_time: str, status: str = 'pending',
                 notified_time: Optional[str] = None) -> None:
        """Initialize a Reservation instance."""
        self.id = int(id)
        self.user_id = int(user_id)
        self.book_id = int(book_id)
        self.reservation_time = reservation_time
        self.status = status
        self.notified_time = notified_time

    @staticmethod
    def create(user_id: int, book_id: int,
               now: Optional[datetime] = None) -> 'Reservation':
        """Create a new reservation for a book.

        Books in any status can be reserved, including available ones.

        Args:
            user_id: ID of user making the reservation.
            book_id: ID of book to reserve.
            now: Reservation instant (defaults to the current time).

        Returns:
            The pending Reservation.

        Raises:
            UserIneligible: Unknown user.
            RecordNotFound: Unknown book.
            DuplicateReservation: The user already waits for this book.
        """
        from lumilib.models.book import Book
        from lumilib.models.user import User

        now = now or datetime.now()

        with transaction():
            user = User.get_by_id(user_id)
            if not user:
                raise UserIneligible(f'User {user_id} does not exist')
            book = Book.get_by_id(book_id)
            if not book:
                raise RecordNotFound(f'Book {book_id} not found')

            rows = load_collection('reservations')
            if any(r['user_id'] == user_id and r['book_id'] == book_id
                   and r['status'] == 'pending' for r in rows):
                raise DuplicateReservation()

            reservation = Reservation(
                id=next_id(rows),
                user_id=user_id,
                book_id=book_id,
                reservation_time=format_timestamp(now),
                status='pending'
            )
            rows.append(reservation.to_record())
            save_collection('reservations', rows)

            position = len(Reservation.get_queue(book_id))
            SystemLog.add(
                'Book Reservation',
                f'{user.name} reserved "{book.title}" (Position: {position})',
                'info',
                user_id
            )

        return reservation

    @staticmethod
    def get_by_id(reservation_id: int) -> Optional['Reservation']:
        """Get reservation by ID."""
        for row in load_collection('reservations'):
            if row['id'] == reservation_id:
                return Reservation(**row)
        return None

    @staticmethod
    def get_all() -> List['Reservation']:
        """Get all reservations, newest first."""
        rows = load_collection('reservations')
        rows.sort(key=lambda r: (parse_timestamp(r['reservation_time']), r['id']), reverse=True)
        return [Reservation(**row) for row in rows]

    @staticmethod
    def get_user_reservations(user_id: int, status: Optional[str] = None) -> List['Reservation']:
        """Get all reservations for a user.

        Args:
            user_id: User ID.
            status: Filter by status (optional).

        Returns:
            List of Reservation objects, newest first.
        """
        return [
            r for r in Reservation.get_all()
            if r.user_id == user_id and (status is None or r.status == status)
        ]

    @staticmethod
    def get_queue(book_id: int) -> List['Reservation']:
        """Pending reservations for a book, oldest first."""
        queue = [
            Reservation(**row) for row in load_collection('reservations')
            if row['book_id'] == book_id and row['status'] == 'pending'
        ]
        queue.sort(key=lambda r: (r.reserved_at, r.id))
        return queue

    @staticmethod
    def get_next_in_queue(book_id: int) -> Optional['Reservation']:
        """Get the oldest pending reservation for a book."""
        queue = Reservation.get_queue(book_id)
        return queue[0] if queue else None

    @staticmethod
    def notify_next(book_id: int, now: Optional[datetime] = None) -> Optional['Reservation']:
        """Move the oldest pending reservation of a book to 'notified'.

        Returns:
            The notified reservation, or None when nobody is waiting.
        """
        from lumilib.models.book import Book
        from lumilib.models.notification import Notification

        now = now or datetime.now()

        with transaction():
            reservation = Reservation.get_next_in_queue(book_id)
            if reservation is None:
                return None

            rows = load_collection('reservations')
            row = next(r for r in rows if r['id'] == reservation.id)
            row['status'] = reservation.status = 'notified'
            row['notified_time'] = reservation.notified_time = format_timestamp(now)
            save_collection('reservations', rows)

            book = Book.get_by_id(book_id)
            title = book.title if book else f'Book {book_id}'
            Notification.create(
                reservation.user_id,
                'success',
                'Reserved Book Available',
                f'Your reserved book "{title}" is now available.'
            )

        logger.info('Reservation %s notified for book %s', reservation.id, book_id)
        return reservation

    @staticmethod
    def cancel(reservation_id: int) -> 'Reservation':
        """Cancel a reservation.

        Pending and notified reservations can be cancelled; cancelling
        twice is an error.

        Raises:
            RecordNotFound: Unknown reservation.
            AlreadyCancelled: The reservation is already cancelled.
        """
        with transaction():
            rows = load_collection('reservations')
            row = next((r for r in rows if r['id'] == reservation_id), None)
            if row is None:
                raise RecordNotFound(f'Reservation {reservation_id} not found')
            if row['status'] == 'cancelled':
                raise AlreadyCancelled()

            row['status'] = 'cancelled'
            save_collection('reservations', rows)

            SystemLog.add(
                'Reservation Cancelled',
                f'Reservation {reservation_id} for book {row["book_id"]} cancelled',
                'info',
                row['user_id']
            )
        return Reservation(**row)

    @staticmethod
    def cancel_pending_for_user(user_id: int) -> int:
        """Cancel every pending reservation of a user.

        Returns:
            Number of cancelled reservations.
        """
        with transaction():
            rows = load_collection('reservations')
            count = 0
            for row in rows:
                if row['user_id'] == user_id and row['status'] == 'pending':
                    row['status'] = 'cancelled'
                    count += 1
            if count:
                save_collection('reservations', rows)
        return count

    @property
    def reserved_at(self) -> datetime:
        return parse_timestamp(self.reservation_time)

    def get_queue_position(self) -> Optional[int]:
        """1-based position among pending reservations, None otherwise."""
        if self.status != 'pending':
            return None
        ids = [r.id for r in Reservation.get_queue(self.book_id)]
        return ids.index(self.id) + 1

    def to_record(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'book_id': self.book_id,
            'reservation_time': self.reservation_time,
            'status': self.status,
            'notified_time': self.notified_time
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert reservation to dictionary."""
        data = self.to_record()
        data['queue_position'] = self.get_queue_position()
        return data


@events.book_available.connect
def _notify_on_book_available(book_id, now=None, **extra):
    Reservation.notify_next(book_id, now=now)
