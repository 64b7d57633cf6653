"""System settings model for the global lending policy.

This module provides the process-wide policy singleton (fine rate, borrow
limit, announcement text and maintenance flag). It is persisted in the
record store and passed explicitly into the loan ledger and the fine
calculator.
"""
import math
from typing import Any, Dict, Optional

from flask import current_app

from lumilib.models.database import load_collection, save_collection, transaction
from lumilib.models.errors import ValidationError


class SystemSettings:
    """Global lending policy.

    Attributes:
        daily_fine_rate: Fine charged per started overdue day.
        max_borrow_limit: Maximum number of open loans per user.
        announcement: Library announcement text.
        maintenance_mode: When True only administrators can log in.
    """

    def __init__(self, daily_fine_rate: float, max_borrow_limit: int,
                 announcement: str = '', maintenance_mode: bool = False) -> None:
        self.daily_fine_rate = float(daily_fine_rate)
        self.max_borrow_limit = int(max_borrow_limit)
        self.announcement = announcement or ''
        self.maintenance_mode = bool(maintenance_mode)

    @staticmethod
    def defaults() -> 'SystemSettings':
        """Settings used until an administrator saves a policy."""
        config = current_app.config
        return SystemSettings(
            daily_fine_rate=config['DEFAULT_DAILY_FINE_RATE'],
            max_borrow_limit=config['DEFAULT_MAX_BORROW_LIMIT'],
            announcement=config['DEFAULT_ANNOUNCEMENT'],
            maintenance_mode=False
        )

    @staticmethod
    def get() -> 'SystemSettings':
        """Get current system settings.

        Returns:
            The persisted settings, or the configured defaults.
        """
        data = load_collection('settings', default={})
        if not data:
            return SystemSettings.defaults()
        return SystemSettings(**data)

    @staticmethod
    def from_dict(data: Dict[str, Any],
                  base: Optional['SystemSettings'] = None) -> 'SystemSettings':
        """Validate raw input and build a settings object.

        Missing keys fall back to ``base`` (the current settings by default).

        Raises:
            ValidationError: A value has the wrong type, is not finite or is
                negative.
        """
        base = base or SystemSettings.get()
        try:
            rate = float(data.get('daily_fine_rate', base.daily_fine_rate))
            limit = data.get('max_borrow_limit', base.max_borrow_limit)
            if isinstance(limit, bool) or int(limit) != float(limit):
                raise ValueError(limit)
            limit = int(limit)
        except (TypeError, ValueError, OverflowError):
            raise ValidationError('Fine rate must be a number and borrow limit an integer')
        if not math.isfinite(rate):
            raise ValidationError('Daily fine rate must be a finite number')
        if rate < 0:
            raise ValidationError('Daily fine rate cannot be negative')
        if limit < 0:
            raise ValidationError('Borrow limit cannot be negative')

        maintenance = data.get('maintenance_mode', base.maintenance_mode)
        if not isinstance(maintenance, bool):
            raise ValidationError('maintenance_mode must be true or false')

        return SystemSettings(
            daily_fine_rate=rate,
            max_borrow_limit=limit,
            announcement=str(data.get('announcement', base.announcement) or ''),
            maintenance_mode=maintenance
        )

    @staticmethod
    def update(settings: 'SystemSettings') -> 'SystemSettings':
        """Replace the settings singleton.

        Args:
            settings: New settings.

        Returns:
            The stored settings.
        """
        with transaction():
            save_collection('settings', settings.to_dict())
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return {
            'daily_fine_rate': self.daily_fine_rate,
            'max_borrow_limit': self.max_borrow_limit,
            'announcement': self.announcement,
            'maintenance_mode': self.maintenance_mode
        }
