"""Signals published by the lending engine.

The loan ledger and the catalog announce state changes here instead of
calling the reservation queue directly. Receivers run synchronously inside
the sender's transaction.

Signals:
    book_available: sender is the book id; sent when a book becomes
        ``available`` again (return, or an admin clearing maintenance/lost).
    loan_created: sender is the new BorrowRecord.
    loan_returned: sender is the settled BorrowRecord.
"""
from blinker import Namespace

_signals = Namespace()

book_available = _signals.signal('book-available')
loan_created = _signals.signal('loan-created')
loan_returned = _signals.signal('loan-returned')
