"""Error kinds raised by the lending rules.

Every mutating operation either returns the updated entity or raises exactly
one of these. They are recoverable, user-facing validation failures; the
web layer turns them into JSON responses using ``code`` and ``status_code``.
"""


class LibraryError(Exception):
    """Base class for all library rule violations."""

    code = 'library_error'
    status_code = 400

    def __init__(self, message: str = '') -> None:
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self) -> dict:
        return {'success': False, 'error': self.code, 'message': self.message}


class UserIneligible(LibraryError):
    """User is unknown or frozen."""
    code = 'user_ineligible'
    status_code = 403


class BookUnavailable(LibraryError):
    """Book is not available for borrowing."""
    code = 'book_unavailable'
    status_code = 409


class LimitExceeded(LibraryError):
    """Borrow limit reached."""
    code = 'limit_exceeded'
    status_code = 409


class AlreadyReturned(LibraryError):
    """Loan has already been returned."""
    code = 'already_returned'
    status_code = 409


class DuplicateReservation(LibraryError):
    """You already have a pending reservation for this book."""
    code = 'duplicate_reservation'
    status_code = 409


class AlreadyCancelled(LibraryError):
    """Reservation is already cancelled."""
    code = 'already_cancelled'
    status_code = 409


class RecordNotFound(LibraryError):
    """Record not found."""
    code = 'record_not_found'
    status_code = 404


class UsernameExists(LibraryError):
    """Username already exists."""
    code = 'username_exists'
    status_code = 409


class UserHasOpenLoans(LibraryError):
    """User still has books on loan."""
    code = 'user_has_open_loans'
    status_code = 409


class AuthenticationFailed(LibraryError):
    """Invalid username or password."""
    code = 'authentication_failed'
    status_code = 401


class MaintenanceMode(LibraryError):
    """The library is under maintenance; only administrators can log in."""
    code = 'maintenance_mode'
    status_code = 503


class ValidationError(LibraryError):
    """Invalid input."""
    code = 'validation_error'
    status_code = 400
