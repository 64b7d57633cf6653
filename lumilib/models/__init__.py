"""
Models package

Class Hierarchy:
    User (base) - Library readers (user.py)
    └── Admin - Administrators managing policy, accounts and catalog (admin.py)

Lending engine:
    Book - catalog entry with cached availability (book.py)
    BorrowRecord - loan ledger (borrow.py)
    Reservation - FIFO reservation queue (reservation.py)
    calculate_fine - fine calculator (fine.py)
    SystemSettings - global lending policy (system_config.py)
"""
from lumilib.models.database import init_db, get_db, close_db, transaction
from lumilib.models.errors import LibraryError
from lumilib.models.user import User, get_user_by_role
from lumilib.models.admin import Admin
from lumilib.models.book import Book
from lumilib.models.borrow import BorrowRecord, effective_status
from lumilib.models.fine import calculate_fine
from lumilib.models.reservation import Reservation
from lumilib.models.review import Review
from lumilib.models.notification import Notification
from lumilib.models.system_config import SystemSettings
from lumilib.models.system_log import SystemLog

__all__ = [
    'User', 'Admin', 'get_user_by_role',
    'Book', 'BorrowRecord', 'effective_status', 'calculate_fine',
    'Reservation', 'Review', 'Notification',
    'SystemSettings', 'SystemLog', 'LibraryError',
    'init_db', 'get_db', 'close_db', 'transaction'
]
