"""Admin model.

Inherits from User and adds policy, account and catalog management plus the
dashboard aggregates.
"""
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from werkzeug.security import generate_password_hash

from lumilib.models.book import Book
from lumilib.models.database import (format_timestamp, load_collection,
                                     next_id, save_collection, transaction)
from lumilib.models.errors import (RecordNotFound, UserHasOpenLoans,
                                   UsernameExists, ValidationError)
from lumilib.models.system_config import SystemSettings
from lumilib.models.system_log import SystemLog
from lumilib.models.user import ROLES, USER_STATUSES, User, get_user_by_role


class Admin(User):

    def save_system_settings(self, data: Dict[str, Any]) -> SystemSettings:
        """Validate and store a new lending policy.

        Args:
            data: Dictionary containing settings values; missing keys keep
                their current value.

        Returns:
            The stored settings.
        """
        settings = SystemSettings.from_dict(data)
        with transaction():
            SystemSettings.update(settings)

            details = ", ".join([f"{k}: {v}" for k, v in settings.to_dict().items()])
            SystemLog.add(
                'Settings Update',
                f'Admin {self.name} updated settings: {details}',
                'admin',
                self.id
            )
        return settings

    # ==================== ACCOUNTS ====================

    def create_user(self, username: str, password: str, name: str,
                    role: str = 'reader', contact: str = '',
                    status: str = 'active') -> User:
        """Create an account.

        Raises:
            UsernameExists: The username is taken.
            ValidationError: Missing fields or unknown role/status.
        """
        if not username or not password or not name:
            raise ValidationError('Username, password and name are required')
        if role not in ROLES:
            raise ValidationError(f'Unknown role "{role}"')
        if status not in USER_STATUSES:
            raise ValidationError(f'Unknown status "{status}"')

        with transaction():
            rows = load_collection('users')
            if any(r['username'] == username for r in rows):
                raise UsernameExists(f'Username "{username}" already exists')

            user = get_user_by_role({
                'id': next_id(rows),
                'username': username,
                'name': name,
                'role': role,
                'status': status,
                'contact': contact,
                'credential': generate_password_hash(password),
                'joined_date': datetime.now().strftime('%Y-%m-%d')
            })
            rows.append(user.to_record())
            save_collection('users', rows)

            SystemLog.add(
                'User Created',
                f'Admin {self.name} created {role} account "{username}"',
                'admin',
                self.id
            )
        return user

    def update_user(self, user_id: int, name: Optional[str] = None,
                    contact: Optional[str] = None,
                    status: Optional[str] = None) -> User:
        """Edit an account's name, contact or status (freeze/unfreeze).

        The role cannot be changed.

        Raises:
            RecordNotFound: Unknown user.
            ValidationError: Unknown status or empty name.
        """
        if status is not None and status not in USER_STATUSES:
            raise ValidationError(f'Unknown status "{status}"')
        if name is not None and not name.strip():
            raise ValidationError('Name cannot be empty')

        with transaction():
            rows = load_collection('users')
            row = next((r for r in rows if r['id'] == user_id), None)
            if row is None:
                raise RecordNotFound(f'User {user_id} not found')
            if name is not None:
                row['name'] = name.strip()
            if contact is not None:
                row['contact'] = contact.strip()
            if status is not None:
                row['status'] = status
            save_collection('users', rows)

            SystemLog.add(
                'User Updated',
                f'Admin {self.name} updated account "{row["username"]}" '
                f'(status: {row["status"]})',
                'admin',
                self.id
            )
        return get_user_by_role(row)

    def delete_user(self, user_id: int) -> None:
        """Delete an account that holds no books.

        Pending reservations of the user are cancelled. Reviews stay and
        show as written by an unknown user.

        Raises:
            RecordNotFound: Unknown user.
            UserHasOpenLoans: The user still has books on loan.
        """
        from lumilib.models.borrow import BorrowRecord
        from lumilib.models.reservation import Reservation

        with transaction():
            rows = load_collection('users')
            row = next((r for r in rows if r['id'] == user_id), None)
            if row is None:
                raise RecordNotFound(f'User {user_id} not found')
            if BorrowRecord.count_open(user_id):
                raise UserHasOpenLoans(f'"{row["username"]}" still has books on loan')

            Reservation.cancel_pending_for_user(user_id)
            save_collection('users', [r for r in rows if r['id'] != user_id])

            SystemLog.add(
                'User Deleted',
                f'Admin {self.name} deleted account "{row["username"]}"',
                'admin',
                self.id
            )

    def get_users_overview(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """All accounts with their open-loan count and current total fine."""
        from lumilib.models.borrow import BorrowRecord

        now = now or datetime.now()
        settings = SystemSettings.get()
        overview = []
        for user in User.get_all_users():
            summary = BorrowRecord.get_user_summary(user.id, now, settings)
            data = user.to_dict()
            data['open_loans'] = summary['open_loans']
            data['total_fine'] = summary['total_fine']
            overview.append(data)
        return overview

    # ==================== CATALOG ====================

    def add_book(self, data: Dict[str, Any]) -> Book:
        book = Book.create(
            isbn=data.get('isbn', ''),
            title=data.get('title', ''),
            author=data.get('author', ''),
            publisher=data.get('publisher', ''),
            category=data.get('category', ''),
            location=data.get('location', ''),
            description=data.get('description', ''),
            publish_date=data.get('publish_date', '')
        )
        SystemLog.add('Book Added', f'Admin {self.name} added "{book.title}"', 'admin', self.id)
        return book

    def set_book_status(self, book_id: int, status: str) -> Book:
        with transaction():
            book = Book.set_status(book_id, status)
            SystemLog.add(
                'Book Status Changed',
                f'Admin {self.name} set "{book.title}" to {status}',
                'admin',
                self.id
            )
        return book

    # ==================== LOGS & STATS ====================

    def clear_system_logs(self, days: int) -> int:
        """Clear old system logs.

        Args:
            days: Number of days to keep (delete older than this).

        Returns:
            Number of deleted entries.
        """
        deleted = SystemLog.clear_old_logs(days)
        SystemLog.add(
            'Clear Logs',
            f'Admin {self.name} cleared logs older than {days} days',
            'admin',
            self.id
        )
        return deleted

    def get_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Get dashboard statistics for admin.

        Overdue figures use the live overdue rule and fines come from the
        fine calculator, the same as the reader views.
        """
        from lumilib.models.borrow import BorrowRecord
        from lumilib.models.fine import total_fine

        now = now or datetime.now()
        settings = SystemSettings.get()
        records = BorrowRecord.get_all()
        books = Book.get_all()
        today = now.strftime('%Y-%m-%d')
        overdue = [r for r in records if r.is_overdue(now)]

        return {
            'total_books': len(books),
            'total_users': User.get_total_users(),
            'open_loans': sum(1 for r in records if r.is_open),
            'overdue_count': len(overdue),
            'borrowed_today': sum(1 for r in records if r.borrow_date.startswith(today)),
            'returned_today': sum(
                1 for r in records if r.return_date and r.return_date.startswith(today)
            ),
            'books_by_category': dict(Counter(b.category for b in books)),
            'total_fines': total_fine(records, now, settings.daily_fine_rate),
            'overdue_records': [r.to_dict(now, settings) for r in overdue],
            'generated_at': format_timestamp(now)
        }
