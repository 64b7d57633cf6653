"""Admin dashboard, policy, account and catalog routes.

This module handles admin-specific operations: dashboard statistics, the
lending policy, user accounts, catalog status and the audit log.
"""
import csv
from datetime import datetime
from io import StringIO

from flask import Blueprint, g, jsonify, make_response, request

from lumilib.models.borrow import BorrowRecord
from lumilib.models.book import Book
from lumilib.models.errors import ValidationError
from lumilib.models.system_config import SystemSettings
from lumilib.models.system_log import SystemLog
from lumilib.utils.decorators import login_required, role_required

# Create admin blueprint
admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/dashboard', methods=['GET'])
@login_required
@role_required('admin')
def dashboard():
    """Dashboard statistics, current settings and recent logs."""
    return jsonify({
        'success': True,
        'stats': g.user.get_stats(),
        'settings': SystemSettings.get().to_dict(),
        'logs': SystemLog.get_recent(50)
    })


@admin_bp.route('/records', methods=['GET'])
@login_required
@role_required('admin')
def all_records():
    """All loans with effective status and current fine.

    Query params:
        status: Optional effective status filter ('borrowed', 'overdue',
            'returned').
    """
    now = datetime.now()
    settings = SystemSettings.get()
    status = request.args.get('status')
    books = {b.id: b for b in Book.get_all()}
    records = [
        r.to_dict(now, settings, books.get(r.book_id))
        for r in BorrowRecord.get_all()
    ]
    if status:
        records = [r for r in records if r['status'] == status]
    return jsonify({'success': True, 'records': records})


@admin_bp.route('/settings', methods=['PUT'])
@login_required
@role_required('admin')
def save_settings():
    """Save the lending policy.

    JSON payload:
        daily_fine_rate: Fine per overdue day.
        max_borrow_limit: Maximum open loans per user.
        announcement: Library announcement.
        maintenance_mode: Block reader logins when true.
    """
    settings = g.user.save_system_settings(request.get_json(silent=True) or {})
    return jsonify({
        'success': True,
        'message': 'Settings saved successfully',
        'settings': settings.to_dict()
    })


# ==================== Users ====================

@admin_bp.route('/users', methods=['GET'])
@login_required
@role_required('admin')
def list_users():
    return jsonify({'success': True, 'users': g.user.get_users_overview()})


@admin_bp.route('/users', methods=['POST'])
@login_required
@role_required('admin')
def create_user():
    data = request.get_json(silent=True) or {}
    user = g.user.create_user(
        username=(data.get('username') or '').strip(),
        password=data.get('password') or '',
        name=(data.get('name') or '').strip(),
        role=data.get('role', 'reader'),
        contact=data.get('contact', ''),
        status=data.get('status', 'active')
    )
    return jsonify({'success': True, 'user': user.to_dict()}), 201


@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@login_required
@role_required('admin')
def update_user(user_id: int):
    """Edit name, contact or status. A role change is rejected."""
    data = request.get_json(silent=True) or {}
    if 'role' in data:
        raise ValidationError('Roles cannot be changed after creation')
    user = g.user.update_user(
        user_id,
        name=data.get('name'),
        contact=data.get('contact'),
        status=data.get('status')
    )
    return jsonify({'success': True, 'user': user.to_dict()})


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@login_required
@role_required('admin')
def delete_user(user_id: int):
    if user_id == g.user.id:
        raise ValidationError('Administrators cannot delete their own account')
    g.user.delete_user(user_id)
    return jsonify({'success': True, 'message': 'User deleted'})


# ==================== Catalog ====================

@admin_bp.route('/books', methods=['POST'])
@login_required
@role_required('admin')
def add_book():
    book = g.user.add_book(request.get_json(silent=True) or {})
    return jsonify({'success': True, 'book': book.to_dict()}), 201


@admin_bp.route('/books/<int:book_id>/status', methods=['PUT'])
@login_required
@role_required('admin')
def set_book_status(book_id: int):
    """Move a book between 'available', 'maintenance' and 'lost'."""
    data = request.get_json(silent=True) or {}
    book = g.user.set_book_status(book_id, data.get('status', ''))
    return jsonify({'success': True, 'book': book.to_dict()})


# ==================== Logs ====================

@admin_bp.route('/logs', methods=['GET'])
@login_required
@role_required('admin')
def list_logs():
    limit = request.args.get('limit', 50, type=int)
    return jsonify({'success': True, 'logs': SystemLog.get_recent(limit)})


@admin_bp.route('/logs/clear', methods=['POST'])
@login_required
@role_required('admin')
def clear_logs():
    """Clear old system logs.

    JSON payload:
        days: Number of days of logs to keep (delete older).
    """
    data = request.get_json(silent=True) or {}
    try:
        days = int(data.get('days', 30))
    except (TypeError, ValueError):
        raise ValidationError('days must be an integer')
    deleted = g.user.clear_system_logs(days)
    return jsonify({'success': True, 'message': f'Deleted {deleted} log entries older than {days} days'})


@admin_bp.route('/logs/export', methods=['GET'])
@login_required
@role_required('admin')
def export_logs():
    """Export system logs to CSV file.

    Returns:
        CSV file download response containing system logs.
    """
    logs = SystemLog.get_recent(1000)

    # Create CSV in memory
    si = StringIO()
    writer = csv.writer(si)
    writer.writerow(['Timestamp', 'Action', 'Details', 'Type', 'User ID'])
    for log in logs:
        writer.writerow([
            log['timestamp'],
            log['action'],
            log['details'],
            log['log_type'],
            log.get('user_id') or ''
        ])

    output = make_response(si.getvalue())
    output.headers["Content-Disposition"] = "attachment; filename=system_logs.csv"
    output.headers["Content-type"] = "text/csv"
    return output
