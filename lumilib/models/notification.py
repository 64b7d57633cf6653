"""Notification model for user notifications.

This module handles creating, retrieving, and managing user notifications
in the library system. New notifications are also pushed to the user's
Socket.IO room when they are connected.
"""
import logging
from datetime import datetime
from typing import List, Optional

from lumilib.extensions import socketio
from lumilib.models.database import (after_commit, format_timestamp,
                                     load_collection, next_id,
                                     save_collection, transaction)

logger = logging.getLogger(__name__)


def user_room(user_id: int) -> str:
    """Socket.IO room joined by every connection of ``user_id``."""
    return f'user_{user_id}'


class Notification:
    """Represents a user notification.

    Attributes:
        id: Unique notification identifier.
        user_id: ID of the user receiving the notification.
        type: Notification type (e.g., 'reminder', 'alert', 'success').
        title: Notification title.
        message: Notification message content.
        date: When the notification was created.
        is_read: Whether the notification has been read.
    """

    def __init__(self, id: int, user_id: int, type: str, title: str,
                 message: str, date: str, is_read: bool = False) -> None:
        """Initialize a Notification instance."""
        self.id = id
        self.user_id = user_id
        self.type = type
        self.title = title
        self.message = message
        self.date = date
        self.is_read = bool(is_read)

    @staticmethod
    def create(user_id: int, notification_type: str,
               title: str, message: str) -> Optional['Notification']:
        """Create a new notification.

        The push to the user's room is deferred until the enclosing
        transaction commits and is dropped on rollback.
        """
        if not title or not message:
            return None

        with transaction():
            rows = load_collection('notifications')
            notification = Notification(
                id=next_id(rows),
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                date=format_timestamp(datetime.now())
            )
            rows.append(notification.to_dict())
            save_collection('notifications', rows)
            after_commit(notification.push)

        logger.debug('Notification %s created for user %s', notification.id, user_id)
        return notification

    @staticmethod
    def get_by_user(user_id: int, limit: int = 50) -> List['Notification']:
        """Get notifications for a user, newest first."""
        rows = [r for r in load_collection('notifications') if r['user_id'] == user_id]
        rows.sort(key=lambda r: (r['date'], r['id']), reverse=True)
        return [Notification(**r) for r in rows[:limit]]

    @staticmethod
    def get_unread_count(user_id: int) -> int:
        """Get count of unread notifications."""
        return sum(
            1 for r in load_collection('notifications')
            if r['user_id'] == user_id and not r['is_read']
        )

    @staticmethod
    def mark_as_read(notification_id: int, user_id: int) -> bool:
        """Mark one of the user's notifications as read.

        Returns:
            False when the notification does not belong to the user.
        """
        with transaction():
            rows = load_collection('notifications')
            for r in rows:
                if r['id'] == notification_id and r['user_id'] == user_id:
                    r['is_read'] = True
                    save_collection('notifications', rows)
                    return True
        return False

    @staticmethod
    def mark_all_as_read(user_id: int) -> None:
        """Mark all notifications as read for a user."""
        with transaction():
            rows = load_collection('notifications')
            for r in rows:
                if r['user_id'] == user_id:
                    r['is_read'] = True
            save_collection('notifications', rows)

    def push(self) -> None:
        """Emit the notification to its user's Socket.IO room."""
        socketio.emit('notification', self.to_dict(), to=user_room(self.user_id))

    def to_dict(self) -> dict:
        """Convert notification to dictionary."""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'date': self.date,
            'is_read': self.is_read
        }
