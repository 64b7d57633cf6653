"""Loan ledger: borrow records and the borrow/return state machine.

The ledger owns BorrowRecord identity and is the single source of truth for
whether a book is out on loan. Every borrow and return updates the record
and the catalog's cached book status in one transaction.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from flask import current_app

from lumilib.models import events
from lumilib.models.book import Book
from lumilib.models.database import (format_timestamp, load_collection,
                                     next_id, parse_timestamp,
                                     save_collection, transaction)
from lumilib.models.errors import (AlreadyReturned, BookUnavailable,
                                   LimitExceeded, RecordNotFound,
                                   UserIneligible)
from lumilib.models.fine import SECONDS_PER_DAY, calculate_fine, total_fine
from lumilib.models.system_config import SystemSettings
from lumilib.models.system_log import SystemLog

logger = logging.getLogger(__name__)

# Display order of effective statuses on per-user views
STATUS_ORDER = {'overdue': 0, 'borrowed': 1, 'returned': 2}


def effective_status(record: 'BorrowRecord', now: datetime) -> str:
    """Status of a loan after applying the live overdue rule.

    Every non-returned loan past its due date is 'overdue', whatever the
    stored status says. All overdue checks go through this function.
    """
    if record.status == 'returned':
        return 'returned'
    return 'overdue' if now > record.due_at else 'borrowed'


class BorrowRecord:
    """A single loan of one book to one user.

    Attributes:
        id: Unique record identifier.
        user_id: Borrower.
        book_id: Borrowed book.
        borrow_date: When the loan started.
        due_date: ``borrow_date`` plus the loan period.
        return_date: When the book came back, None while open.
        status: Stored status ('borrowed', 'overdue' or 'returned').
        fine: Settled fine; only authoritative once returned.
    """

    def __init__(self, id, user_id, book_id, borrow_date, due_date,
                 return_date=None, status='borrowed', fine=0.0):
        self.id = int(id)
        self.user_id = int(user_id)
        self.book_id = int(book_id)
        self.borrow_date = borrow_date
        self.due_date = due_date
        self.return_date = return_date
        self.status = status
        self.fine = float(fine) if fine else 0.0

    @property
    def due_at(self) -> datetime:
        return parse_timestamp(self.due_date)

    @property
    def is_open(self) -> bool:
        return self.status != 'returned'

    def effective_status(self, now: Optional[datetime] = None) -> str:
        return effective_status(self, now or datetime.now())

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        return self.effective_status(now) == 'overdue'

    def current_fine(self, now: Optional[datetime] = None,
                     settings: Optional[SystemSettings] = None) -> float:
        """Fine owed on this loan at ``now`` (frozen once returned)."""
        settings = settings or SystemSettings.get()
        return calculate_fine(self, now or datetime.now(), settings.daily_fine_rate)

    def days_left(self, now: datetime) -> int:
        """Started days until the due date (negative once overdue)."""
        return math.ceil((self.due_at - now).total_seconds() / SECONDS_PER_DAY)

    # ==================== QUERIES ====================

    @staticmethod
    def get_by_id(record_id: int) -> Optional['BorrowRecord']:
        """Get borrow record by ID"""
        for row in load_collection('records'):
            if row['id'] == record_id:
                return BorrowRecord(**row)
        return None

    @staticmethod
    def get_all() -> List['BorrowRecord']:
        """Get all records, newest loan first"""
        rows = load_collection('records')
        rows.sort(key=lambda r: (r['borrow_date'], r['id']), reverse=True)
        return [BorrowRecord(**row) for row in rows]

    @staticmethod
    def get_user_records(user_id: int) -> List['BorrowRecord']:
        """Get all records of a user, newest loan first"""
        return [r for r in BorrowRecord.get_all() if r.user_id == user_id]

    @staticmethod
    def get_open_records(user_id: Optional[int] = None) -> List['BorrowRecord']:
        """Get records whose book has not come back yet."""
        return [
            r for r in BorrowRecord.get_all()
            if r.is_open and (user_id is None or r.user_id == user_id)
        ]

    @staticmethod
    def get_open_record_for_book(book_id: int) -> Optional['BorrowRecord']:
        return next((r for r in BorrowRecord.get_open_records() if r.book_id == book_id), None)

    @staticmethod
    def get_overdue_records(now: Optional[datetime] = None,
                            user_id: Optional[int] = None) -> List['BorrowRecord']:
        """Get overdue loans, most overdue first."""
        now = now or datetime.now()
        overdue = [r for r in BorrowRecord.get_open_records(user_id) if r.is_overdue(now)]
        overdue.sort(key=lambda r: r.due_at)
        return overdue

    @staticmethod
    def get_due_soon(now: Optional[datetime] = None, user_id: Optional[int] = None,
                     days: Optional[int] = None) -> List['BorrowRecord']:
        """Get loans not yet overdue and due within ``days`` (defaults to DUE_SOON_DAYS)."""
        now = now or datetime.now()
        if days is None:
            days = current_app.config['DUE_SOON_DAYS']
        return [
            r for r in BorrowRecord.get_open_records(user_id)
            if r.effective_status(now) == 'borrowed' and r.days_left(now) <= days
        ]

    @staticmethod
    def count_open(user_id: int) -> int:
        return len(BorrowRecord.get_open_records(user_id))

    @staticmethod
    def get_sorted_user_records(user_id: int,
                                now: Optional[datetime] = None) -> List['BorrowRecord']:
        """User's records ordered overdue, borrowed, returned."""
        now = now or datetime.now()
        return sorted(
            BorrowRecord.get_user_records(user_id),
            key=lambda r: STATUS_ORDER[r.effective_status(now)]
        )

    @staticmethod
    def get_user_summary(user_id: int, now: Optional[datetime] = None,
                         settings: Optional[SystemSettings] = None) -> Dict[str, Any]:
        """Reader dashboard figures: open loans, due soon and total fine."""
        now = now or datetime.now()
        settings = settings or SystemSettings.get()
        records = BorrowRecord.get_user_records(user_id)
        return {
            'open_loans': sum(1 for r in records if r.is_open),
            'max_borrow_limit': settings.max_borrow_limit,
            'due_soon': len(BorrowRecord.get_due_soon(now, user_id)),
            'overdue': sum(1 for r in records if r.is_overdue(now)),
            'total_fine': total_fine(records, now, settings.daily_fine_rate)
        }

    # ==================== CORE LOGIC ====================

    @staticmethod
    def borrow(user_id: int, book_id: int, settings: Optional[SystemSettings] = None,
               now: Optional[datetime] = None) -> 'BorrowRecord':
        """Lend a book to a user.

        Admission check, in order: the user exists and is active, the book
        exists and is available, and the user holds fewer open loans than
        the borrow limit.

        Args:
            user_id: Borrower.
            book_id: Book to lend.
            settings: Lending policy (defaults to the persisted settings).
            now: Borrow instant (defaults to the current time).

        Returns:
            The new record.

        Raises:
            UserIneligible: Unknown or frozen user.
            RecordNotFound: Unknown book.
            BookUnavailable: The book is not 'available'.
            LimitExceeded: The user is at the borrow limit.
        """
        now = now or datetime.now()

        with transaction():
            settings = settings or SystemSettings.get()

            users = load_collection('users')
            user = next((u for u in users if u['id'] == user_id), None)
            if user is None:
                raise UserIneligible(f'User {user_id} does not exist')
            if user['status'] != 'active':
                raise UserIneligible('Frozen accounts cannot borrow books')

            books = load_collection('books')
            book = next((b for b in books if b['id'] == book_id), None)
            if book is None:
                raise RecordNotFound(f'Book {book_id} not found')
            if book['status'] != 'available':
                raise BookUnavailable(f'"{book["title"]}" is {book["status"]}; reserve it instead')

            records = load_collection('records')
            open_count = sum(
                1 for r in records
                if r['user_id'] == user_id and r['status'] != 'returned'
            )
            if open_count >= settings.max_borrow_limit:
                raise LimitExceeded(
                    f'Borrow limit reached ({settings.max_borrow_limit} books)'
                )

            due = now + timedelta(days=current_app.config['LOAN_PERIOD_DAYS'])
            record = BorrowRecord(
                id=next_id(records),
                user_id=user_id,
                book_id=book_id,
                borrow_date=format_timestamp(now),
                due_date=format_timestamp(due),
                return_date=None,
                status='borrowed',
                fine=0.0
            )
            records.append(record.to_record())
            Book.mark(books, book_id, 'borrowed')

            save_collection('records', records)
            save_collection('books', books)

            SystemLog.add(
                'Book Borrowed',
                f'{user["name"]} borrowed "{book["title"]}" (Due: {record.due_date})',
                'info',
                user_id
            )
            events.loan_created.send(record)

        logger.info('Record %s: user %s borrowed book %s', record.id, user_id, book_id)
        return record

    @staticmethod
    def return_book(record_id: int, settings: Optional[SystemSettings] = None,
                    now: Optional[datetime] = None) -> 'BorrowRecord':
        """Settle a loan and put the book back on the shelf.

        The fine is computed once, at ``now``, and frozen on the record.
        Listeners of :data:`events.book_available` (the reservation queue)
        run inside the same transaction.

        Raises:
            RecordNotFound: Unknown record.
            AlreadyReturned: The loan was already settled.
        """
        now = now or datetime.now()

        with transaction():
            settings = settings or SystemSettings.get()

            records = load_collection('records')
            row = next((r for r in records if r['id'] == record_id), None)
            if row is None:
                raise RecordNotFound(f'Borrow record {record_id} not found')
            if row['status'] == 'returned':
                raise AlreadyReturned(
                    f'Record {record_id} was already returned on {row["return_date"]}'
                )

            record = BorrowRecord(**row)
            record.fine = calculate_fine(record, now, settings.daily_fine_rate)
            record.return_date = format_timestamp(now)
            record.status = 'returned'
            row.update(record.to_record())

            books = load_collection('books')
            Book.mark(books, record.book_id, 'available')

            save_collection('records', records)
            save_collection('books', books)

            details = f'User {record.user_id} returned book {record.book_id}'
            if record.fine > 0:
                details += f' (Fine: {record.fine:.2f})'
            SystemLog.add('Book Returned', details, 'info', record.user_id)

            events.loan_returned.send(record)
            events.book_available.send(record.book_id, now=now)

        logger.info('Record %s returned with fine %.2f', record.id, record.fine)
        return record

    @staticmethod
    def sync_overdue_statuses(now: Optional[datetime] = None) -> List['BorrowRecord']:
        """Persist 'overdue' on stored 'borrowed' records past their due date.

        Returns:
            The records that changed.
        """
        now = now or datetime.now()
        changed = []
        with transaction():
            records = load_collection('records')
            for row in records:
                record = BorrowRecord(**row)
                if row['status'] == 'borrowed' and record.is_overdue(now):
                    row['status'] = record.status = 'overdue'
                    changed.append(record)
            if changed:
                save_collection('records', records)
        return changed

    def get_book(self) -> Optional[Book]:
        """Get the book object"""
        return Book.get_by_id(self.book_id)

    def to_record(self) -> Dict[str, Any]:
        """Stored representation."""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'book_id': self.book_id,
            'borrow_date': self.borrow_date,
            'due_date': self.due_date,
            'return_date': self.return_date,
            'status': self.status,
            'fine': self.fine
        }

    def to_dict(self, now: Optional[datetime] = None,
                settings: Optional[SystemSettings] = None,
                book: Optional[Book] = None) -> Dict[str, Any]:
        """API representation with the effective status and current fine."""
        now = now or datetime.now()
        data = self.to_record()
        data['status'] = self.effective_status(now)
        data['fine'] = self.current_fine(now, settings)
        data['book_title'] = book.title if book else None
        return data
