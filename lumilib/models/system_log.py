"""System log model for tracking system activities.

This module keeps the business audit trail (borrows, returns,
reservations, policy and account changes) in the record store. Diagnostic
logging goes through the standard ``logging`` module instead.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from lumilib.models.database import (format_timestamp, load_collection,
                                     next_id, parse_timestamp,
                                     save_collection, transaction)


class SystemLog:
    """System activity log for tracking all system events.

    This class provides static methods for adding and retrieving
    system log entries. No instances are created.
    """

    @staticmethod
    def add(action: str, details: str, log_type: str = 'info',
            user_id: Optional[int] = None) -> int:
        """Add a new system log entry.

        Args:
            action: The action being logged.
            details: Detailed description of the action.
            log_type: Log level ('info', 'warning', 'error', 'admin', 'system').
            user_id: ID of user who performed the action (optional).

        Returns:
            The ID of the created log entry.
        """
        with transaction():
            logs = load_collection('system_logs')
            log_id = next_id(logs)
            logs.append({
                'id': log_id,
                'timestamp': format_timestamp(datetime.now()),
                'action': action,
                'details': details,
                'log_type': log_type,
                'user_id': user_id
            })
            save_collection('system_logs', logs)
        return log_id

    @staticmethod
    def get_recent(limit: int = 50) -> List[Dict[str, Any]]:
        """Get recent system logs, newest first.

        Args:
            limit: Maximum number of logs to retrieve.

        Returns:
            List of log entries as dictionaries.
        """
        logs = load_collection('system_logs')
        logs.sort(key=lambda log: (log['timestamp'], log['id']), reverse=True)
        return logs[:limit]

    @staticmethod
    def clear_old_logs(days: int = 30, now: Optional[datetime] = None) -> int:
        """Clear logs older than specified days.

        Args:
            days: Number of days to keep logs.
            now: Reference instant (defaults to the current time).

        Returns:
            Number of deleted entries.
        """
        cutoff = (now or datetime.now()) - timedelta(days=days)
        with transaction():
            logs = load_collection('system_logs')
            kept = [log for log in logs if parse_timestamp(log['timestamp']) >= cutoff]
            save_collection('system_logs', kept)
        return len(logs) - len(kept)
