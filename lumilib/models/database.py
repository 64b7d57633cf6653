"""Record store initialization and connection management.

The library keeps every entity collection (books, users, loan records,
reservations, ...) as one JSON document in a small SQLite table keyed by the
collection name. This module provides the connection management, the
get/set-by-collection helpers, the transaction guard used by every mutating
operation, and the demo data loaded into an empty store.
"""
import json
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterable, Iterator, Optional

from flask import current_app, g

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'
DATE_FORMAT = '%Y-%m-%d'

# Single writer for the whole process; re-entrant so nested operations
# (return -> reservation notification) join the outer transaction.
_write_lock = threading.RLock()

logger = logging.getLogger(__name__)


def get_db() -> sqlite3.Connection:
    """Get database connection from Flask application context.

    Returns:
        SQLite database connection with Row factory enabled.
    """
    if 'db' not in g:
        path = current_app.config['DATABASE_PATH']
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        g.db = sqlite3.connect(path, detect_types=sqlite3.PARSE_DECLTYPES)
        g.db.row_factory = sqlite3.Row
    return g.db


def close_db(e=None):
    """Close database connection"""
    db = g.pop('db', None)
    if db is not None:
        db.close()


def load_collection(name: str, default: Any = None) -> Any:
    """Return the decoded JSON document stored under ``name``.

    Args:
        name: Collection name, e.g. ``'books'``.
        default: Value returned when the collection was never written.
            Defaults to an empty list.

    Returns:
        The stored list (or object for singleton collections).
    """
    row = get_db().execute(
        'SELECT data FROM collections WHERE name = ?', (name,)
    ).fetchone()
    if row is None:
        return [] if default is None else default
    return json.loads(row['data'])


def save_collection(name: str, data: Any) -> None:
    """Replace the document stored under ``name``.

    Must be called inside :func:`transaction`; the write becomes visible to
    other connections when the outermost transaction commits.
    """
    if not g.get('in_transaction'):
        raise RuntimeError(f'save_collection({name!r}) called outside a transaction')
    get_db().execute(
        'INSERT OR REPLACE INTO collections (name, data) VALUES (?, ?)',
        (name, json.dumps(data, ensure_ascii=False))
    )


@contextmanager
def transaction() -> Iterator[sqlite3.Connection]:
    """Run a block as one atomic unit against the record store.

    Acquires the process-wide writer lock and commits on success. Any
    exception rolls back every collection written inside the block, so a
    failed operation performs no partial mutation.
    """
    db = get_db()
    with _write_lock:
        if g.get('in_transaction'):
            yield db
            return
        g.in_transaction = True
        g.after_commit = []
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            g.in_transaction = False
            callbacks = g.pop('after_commit', [])

    for callback in callbacks:
        try:
            callback()
        except Exception:
            logger.exception('after_commit callback %r failed', callback)


def after_commit(callback: Callable[[], Any]) -> None:
    """Run ``callback`` once the current transaction has committed.

    Outside a transaction it runs immediately. Callbacks registered in a
    transaction that rolls back are dropped.
    """
    if g.get('in_transaction'):
        g.after_commit.append(callback)
    else:
        callback()


def next_id(items: Iterable[dict]) -> int:
    """Return the next free integer id for a collection."""
    return max((item['id'] for item in items), default=0) + 1


def format_timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp, accepting date-only values as midnight."""
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        return datetime.strptime(value, DATE_FORMAT)


def init_db():
    """Initialize the record store schema and optionally the demo data."""
    db = get_db()
    db.execute('''
        CREATE TABLE IF NOT EXISTS collections (
            name TEXT PRIMARY KEY,
            data TEXT NOT NULL
        )
    ''')
    db.commit()

    if current_app.config.get('SEED_DEMO_DATA'):
        insert_mock_data()


def insert_mock_data():
    """Insert the demo data set when the store is still empty"""
    from werkzeug.security import generate_password_hash

    if get_db().execute('SELECT COUNT(*) FROM collections').fetchone()[0] > 0:
        return  # Data already exists

    def user(id, username, name, role, status, contact, password, joined):
        return {
            'id': id,
            'username': username,
            'name': name,
            'role': role,
            'status': status,
            'contact': contact,
            'credential': generate_password_hash(password),
            'joined_date': joined,
        }

    users = [
        user(1, 'admin', 'System Administrator', 'admin', 'active',
             'admin@library.edu', '123456', '2022-01-01'),
        user(1001, 'student1', 'Zhang San', 'reader', 'active',
             '13800138000', 'student1', '2023-09-01'),
        user(1002, 'student2', 'Li Si', 'reader', 'active',
             '13900139000', 'student2', '2023-09-05'),
        user(1003, '2023001', 'Wang Xiaoming', 'reader', 'active',
             '13700000001', '123456', '2023-09-10'),
        user(1004, 'prof_chen', 'Professor Chen', 'reader', 'active',
             'chen@univ.edu', '123456', '2020-03-15'),
        user(1005, 'guest', 'Guest User', 'reader', 'frozen',
             'guest@library.edu', '123456', '2023-11-20'),
        user(1006, 'zhaoliu', 'Zhao Liu', 'reader', 'active',
             '15999999999', '123456', '2023-05-20'),
    ]

    books = [
        {
            'id': 2001,
            'isbn': '978-7-302-54321-0',
            'title': 'Database System Concepts',
            'author': 'Abraham Silberschatz',
            'publisher': 'China Machine Press',
            'publish_date': '2021-05-01',
            'category': 'Computer Science',
            'status': 'available',
            'location': 'A-01-02',
            'description': 'The classic textbook on the concepts, principles '
                           'and applications of database systems.',
        },
        {
            'id': 2002,
            'isbn': '978-7-111-12345-6',
            'title': 'Introduction to Algorithms',
            'author': 'Thomas H. Cormen',
            'publisher': 'Higher Education Press',
            'publish_date': '2019-01-01',
            'category': 'Computer Science',
            'status': 'borrowed',
            'location': 'A-02-05',
            'description': 'A thorough introduction to common algorithms and '
                           'the methods used to design and analyse them.',
        },
        {
            'id': 2003,
            'isbn': '978-7-544-25897-5',
            'title': 'One Hundred Years of Solitude',
            'author': 'Gabriel Garcia Marquez',
            'publisher': 'Nanhai Publishing',
            'publish_date': '2011-06-01',
            'category': 'Literature',
            'status': 'available',
            'location': 'B-10-01',
            'description': 'The landmark of magical realism following seven '
                           'generations of the Buendia family.',
        },
        {
            'id': 2004,
            'isbn': '978-7-115-56789-1',
            'title': 'Vue.js Design and Implementation',
            'author': 'Huo Chunyang',
            'publisher': "Posts & Telecom Press",
            'publish_date': '2022-02-01',
            'category': 'Computer Science',
            'status': 'borrowed',
            'location': 'A-03-12',
            'description': 'An in-depth look at the core principles and '
                           'implementation details of Vue.js.',
        },
        {
            'id': 2005,
            'isbn': '978-7-506-36543-7',
            'title': 'The Three-Body Problem',
            'author': 'Liu Cixin',
            'publisher': 'Chongqing Publishing',
            'publish_date': '2008-01-01',
            'category': 'Science Fiction',
            'status': 'borrowed',
            'location': 'C-05-08',
            'description': 'A milestone of Chinese science fiction about first '
                           'contact between humanity and the Trisolarans.',
        },
    ]

    records = [
        {'id': 5001, 'user_id': 1001, 'book_id': 2002,
         'borrow_date': '2025-01-10', 'due_date': '2025-03-10',
         'return_date': None, 'status': 'borrowed', 'fine': 0.0},
        {'id': 5002, 'user_id': 1001, 'book_id': 2003,
         'borrow_date': '2025-01-01', 'due_date': '2025-03-01',
         'return_date': '2025-01-28', 'status': 'returned', 'fine': 0.0},
        {'id': 5003, 'user_id': 1002, 'book_id': 2005,
         'borrow_date': '2024-11-01', 'due_date': '2025-01-01',
         'return_date': None, 'status': 'overdue', 'fine': 15.0},
        {'id': 5004, 'user_id': 1006, 'book_id': 2004,
         'borrow_date': '2024-10-01', 'due_date': '2024-12-01',
         'return_date': None, 'status': 'overdue', 'fine': 45.0},
    ]

    reservations = [
        {'id': 6001, 'user_id': 1001, 'book_id': 2005,
         'reservation_time': '2025-02-05 14:30:00', 'status': 'pending'},
    ]

    reviews = [
        {'id': 7001, 'user_id': 1001, 'book_id': 2003, 'rating': 5,
         'content': 'A stunning read about the rise and fall of a family.',
         'date': '2025-01-29'},
    ]

    settings = {
        'daily_fine_rate': current_app.config['DEFAULT_DAILY_FINE_RATE'],
        'max_borrow_limit': current_app.config['DEFAULT_MAX_BORROW_LIMIT'],
        'announcement': current_app.config['DEFAULT_ANNOUNCEMENT'],
        'maintenance_mode': False,
    }

    with transaction():
        save_collection('users', users)
        save_collection('books', books)
        save_collection('records', records)
        save_collection('reservations', reservations)
        save_collection('reviews', reviews)
        save_collection('settings', settings)
