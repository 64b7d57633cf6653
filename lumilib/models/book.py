"""Book model module.

This module defines the Book model for the library catalog. A book's
``status`` is a cached projection of the loan ledger: it is ``borrowed``
exactly when one open BorrowRecord references the book, and only the ledger
moves a book into or out of that state.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from lumilib.models import events
from lumilib.models.database import (load_collection, next_id,
                                     save_collection, transaction)
from lumilib.models.errors import RecordNotFound, ValidationError

BOOK_STATUSES = ('available', 'borrowed', 'maintenance', 'lost')


class Book:
    """Represents a book in the library catalog.

    Attributes:
        id (int): Unique identifier for the book.
        isbn (str): ISBN number.
        title (str): Book title.
        author (str): Book author name.
        publisher (str): Publisher name.
        publish_date (str): Publication date.
        category (str): Book category/genre.
        status (str): One of 'available', 'borrowed', 'maintenance', 'lost'.
        location (str): Physical shelf location.
        description (str): Book description/summary.
    """

    def __init__(self, id: int, isbn: str, title: str, author: str,
                 publisher: str = '', category: str = '', status: str = 'available',
                 location: str = '', description: str = '',
                 publish_date: str = '') -> None:
        self.id = int(id)
        self.isbn = isbn
        self.title = title
        self.author = author
        self.publisher = publisher
        self.publish_date = publish_date
        self.category = category
        self.status = status
        self.location = location
        self.description = description

    @staticmethod
    def get_by_id(book_id: int) -> Optional['Book']:
        """Retrieve a book by its ID.

        Args:
            book_id: The unique identifier of the book.

        Returns:
            Book instance if found, None otherwise.
        """
        for row in load_collection('books'):
            if row['id'] == book_id:
                return Book(**row)
        return None

    @staticmethod
    def get_all() -> List['Book']:
        """Retrieve all books ordered by ID."""
        rows = sorted(load_collection('books'), key=lambda r: r['id'])
        return [Book(**row) for row in rows]

    @staticmethod
    def search(query: str = '', category: str = '') -> List['Book']:
        """Search for books by title or author.

        Args:
            query: Case-insensitive text matched against title and author.
            category: Exact category filter.

        Returns:
            List of matching Book instances.

        Example:
            >>> books = Book.search(query='cormen', category='Computer Science')
        """
        term = (query or '').strip().lower()
        results = []
        for book in Book.get_all():
            if category and book.category != category:
                continue
            if term and term not in book.title.lower() and term not in book.author.lower():
                continue
            results.append(book)
        return results

    @staticmethod
    def get_all_categories() -> List[str]:
        """Get the sorted list of distinct categories."""
        return sorted({book.category for book in Book.get_all() if book.category})

    @staticmethod
    def get_total_count() -> int:
        return len(load_collection('books'))

    @staticmethod
    def create(isbn: str, title: str, author: str, publisher: str = '',
               category: str = '', location: str = '', description: str = '',
               publish_date: str = '') -> 'Book':
        """Add a new book to the catalog with status 'available'.

        Raises:
            ValidationError: Title or author is missing.
        """
        if not title or not author:
            raise ValidationError('Title and author are required')

        with transaction():
            rows = load_collection('books')
            book = Book(
                id=next_id(rows), isbn=isbn or '', title=title, author=author,
                publisher=publisher, category=category, status='available',
                location=location, description=description,
                publish_date=publish_date
            )
            rows.append(book.to_dict())
            save_collection('books', rows)
        return book

    @staticmethod
    def set_status(book_id: int, status: str) -> 'Book':
        """Change a book's shelf status (admin).

        Only 'available', 'maintenance' and 'lost' can be set by hand, and
        never while the book is on loan. A book brought back to 'available'
        is announced on :data:`events.book_available`.

        Raises:
            RecordNotFound: Unknown book.
            ValidationError: Illegal target status or the book is on loan.
        """
        if status not in BOOK_STATUSES or status == 'borrowed':
            raise ValidationError(f'Status cannot be set to "{status}"')

        with transaction():
            rows = load_collection('books')
            row = next((r for r in rows if r['id'] == book_id), None)
            if row is None:
                raise RecordNotFound(f'Book {book_id} not found')
            if row['status'] == 'borrowed':
                raise ValidationError('Book is on loan; return it first')

            previous = row['status']
            row['status'] = status
            save_collection('books', rows)

            if status == 'available' and previous != 'available':
                events.book_available.send(book_id, now=datetime.now())
        return Book(**row)

    @staticmethod
    def mark(rows: List[Dict[str, Any]], book_id: int, status: str) -> None:
        """Set ``status`` on the book in an already loaded collection."""
        for row in rows:
            if row['id'] == book_id:
                row['status'] = status
                return
        raise RecordNotFound(f'Book {book_id} not found')

    def to_dict(self) -> Dict[str, Any]:
        """Convert book to dictionary."""
        return {
            'id': self.id,
            'isbn': self.isbn,
            'title': self.title,
            'author': self.author,
            'publisher': self.publisher,
            'publish_date': self.publish_date,
            'category': self.category,
            'status': self.status,
            'location': self.location,
            'description': self.description
        }
