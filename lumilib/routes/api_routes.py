"""API endpoints for readers.

This module handles the JSON endpoints used by the reader frontend:
catalog search, borrowing, returning, reservations, reviews,
notifications and profile maintenance.
"""
from datetime import datetime

from flask import Blueprint, g, jsonify, request

from lumilib.models.book import Book
from lumilib.models.borrow import BorrowRecord
from lumilib.models.errors import RecordNotFound
from lumilib.models.notification import Notification
from lumilib.models.reservation import Reservation
from lumilib.models.review import Review
from lumilib.models.system_config import SystemSettings
from lumilib.utils.decorators import login_required

# Create API blueprint
api_bp = Blueprint('api', __name__)


def _forbidden():
    return jsonify({
        'success': False,
        'error': 'forbidden',
        'message': 'This record belongs to another user'
    }), 403


# ==================== Catalog ====================

@api_bp.route('/books', methods=['GET'])
def get_books():
    """List or search books.

    Query params:
        q: Text matched against title and author.
        category: Exact category filter.

    Returns:
        JSON response with book list.
    """
    books = Book.search(request.args.get('q', ''), request.args.get('category', ''))
    return jsonify({
        'success': True,
        'books': [book.to_dict() for book in books]
    })


@api_bp.route('/books/categories', methods=['GET'])
def get_categories():
    return jsonify({'success': True, 'categories': Book.get_all_categories()})


@api_bp.route('/books/<int:book_id>', methods=['GET'])
def get_book(book_id: int):
    """Book detail with reviews, rating stats and reservation queue length."""
    book = Book.get_by_id(book_id)
    if not book:
        raise RecordNotFound(f'Book {book_id} not found')

    return jsonify({
        'success': True,
        'book': book.to_dict(),
        'reviews': [r.to_dict() for r in Review.get_by_book(book_id)],
        'rating_stats': Review.get_rating_stats(book_id),
        'queue_length': len(Reservation.get_queue(book_id))
    })


@api_bp.route('/settings', methods=['GET'])
def get_settings():
    """Public view of the lending policy and announcement."""
    return jsonify({'success': True, 'settings': SystemSettings.get().to_dict()})


# ==================== Loans ====================

@api_bp.route('/borrow/<int:book_id>', methods=['POST'])
@login_required
def borrow_book(book_id: int):
    """Borrow a book for the logged-in user.

    Args:
        book_id: Book identifier.

    Returns:
        JSON response with the new borrow record.
    """
    settings = SystemSettings.get()
    record = BorrowRecord.borrow(g.user.id, book_id, settings)
    return jsonify({
        'success': True,
        'message': f'Book borrowed. Please return it by {record.due_date}',
        'record': record.to_dict(settings=settings, book=record.get_book())
    }), 201


@api_bp.route('/return/<int:record_id>', methods=['POST'])
@login_required
def return_book(record_id: int):
    """Return a borrowed book (own records, or any record for admins)."""
    record = BorrowRecord.get_by_id(record_id)
    if not record:
        raise RecordNotFound(f'Borrow record {record_id} not found')
    if record.user_id != g.user.id and not g.user.is_admin():
        return _forbidden()

    settings = SystemSettings.get()
    record = BorrowRecord.return_book(record_id, settings)
    message = 'Book returned successfully'
    if record.fine > 0:
        message += f'. Overdue fine: {record.fine:.2f}'
    return jsonify({
        'success': True,
        'message': message,
        'record': record.to_dict(settings=settings, book=record.get_book())
    })


@api_bp.route('/records', methods=['GET'])
@login_required
def my_records():
    """The user's loans (overdue first) and dashboard summary."""
    now = datetime.now()
    settings = SystemSettings.get()
    records = BorrowRecord.get_sorted_user_records(g.user.id, now)
    return jsonify({
        'success': True,
        'records': [r.to_dict(now, settings, r.get_book()) for r in records],
        'summary': BorrowRecord.get_user_summary(g.user.id, now, settings)
    })


# ==================== Reservations ====================

@api_bp.route('/reserve/<int:book_id>', methods=['POST'])
@login_required
def reserve_book(book_id: int):
    """Reserve a book.

    Args:
        book_id: Book identifier.

    Returns:
        JSON response with the reservation and its queue position.
    """
    reservation = Reservation.create(g.user.id, book_id)
    data = reservation.to_dict()
    return jsonify({
        'success': True,
        'message': f'Book reserved successfully (Queue position: {data["queue_position"]})',
        'reservation': data
    }), 201


@api_bp.route('/cancel-reservation/<int:reservation_id>', methods=['POST'])
@login_required
def cancel_reservation(reservation_id: int):
    """Cancel a book reservation.

    Args:
        reservation_id: Reservation identifier.
    """
    reservation = Reservation.get_by_id(reservation_id)
    if not reservation:
        raise RecordNotFound(f'Reservation {reservation_id} not found')
    if reservation.user_id != g.user.id and not g.user.is_admin():
        return _forbidden()

    reservation = Reservation.cancel(reservation_id)
    return jsonify({
        'success': True,
        'message': 'Reservation cancelled successfully',
        'reservation': reservation.to_dict()
    })


@api_bp.route('/reservations', methods=['GET'])
@login_required
def my_reservations():
    reservations = Reservation.get_user_reservations(g.user.id, request.args.get('status'))
    return jsonify({
        'success': True,
        'reservations': [r.to_dict() for r in reservations]
    })


# ==================== Reviews ====================

@api_bp.route('/books/<int:book_id>/reviews', methods=['POST'])
@login_required
def add_review(book_id: int):
    """Post a review.

    JSON payload:
        rating: Integer 1-5.
        content: Review text.
    """
    data = request.get_json(silent=True) or {}
    review = Review.create(g.user.id, book_id, data.get('rating'), data.get('content', ''))
    review.user_name = g.user.name
    return jsonify({
        'success': True,
        'message': 'Review posted',
        'review': review.to_dict()
    }), 201


# ==================== Notifications ====================

@api_bp.route('/notifications', methods=['GET'])
@login_required
def get_notifications():
    """Get all notifications for current user.

    Returns:
        JSON response with notification list and unread count.
    """
    notifications = Notification.get_by_user(g.user.id)
    return jsonify({
        'success': True,
        'notifications': [n.to_dict() for n in notifications],
        'unread_count': Notification.get_unread_count(g.user.id)
    })


@api_bp.route('/notifications/<int:notification_id>/read', methods=['POST'])
@login_required
def read_notification(notification_id: int):
    if not Notification.mark_as_read(notification_id, g.user.id):
        raise RecordNotFound(f'Notification {notification_id} not found')
    return jsonify({'success': True})


@api_bp.route('/notifications/read-all', methods=['POST'])
@login_required
def read_all_notifications():
    Notification.mark_all_as_read(g.user.id)
    return jsonify({'success': True})


# ==================== Profile ====================

@api_bp.route('/profile', methods=['PUT'])
@login_required
def update_profile():
    """Update the user's name and contact."""
    data = request.get_json(silent=True) or {}
    user = g.user.update_profile(data.get('name'), data.get('contact'))
    return jsonify({
        'success': True,
        'message': 'Profile updated successfully',
        'user': user.to_dict()
    })


@api_bp.route('/profile/password', methods=['POST'])
@login_required
def change_password():
    data = request.get_json(silent=True) or {}
    g.user.change_password(data.get('old_password', ''), data.get('new_password', ''))
    return jsonify({'success': True, 'message': 'Password changed successfully'})
