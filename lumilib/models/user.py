"""User model module.

Acts as a Factory for User/Admin and holds the membership rules:
authentication, eligibility and profile maintenance.
"""
import logging
from typing import Any, Dict, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from lumilib.models.database import load_collection, save_collection, transaction
from lumilib.models.errors import (AuthenticationFailed, MaintenanceMode,
                                   RecordNotFound, ValidationError)

logger = logging.getLogger(__name__)

ROLES = ('reader', 'admin')
USER_STATUSES = ('active', 'frozen')


class User:
    """A library member.

    Attributes:
        id: Unique integer identifier.
        username: Unique login name.
        name: Display name (authoritative for review hydration).
        role: 'reader' or 'admin'; fixed at creation.
        status: 'active' or 'frozen'. Frozen users cannot log in or borrow.
        contact: Phone number or email address.
        credential: Password hash.
        joined_date: Membership start date.
    """

    def __init__(self, id, username, name, role='reader', status='active',
                 contact='', credential=None, joined_date=None, **kwargs):
        self.id = int(id)
        self.username = username
        self.name = name
        self.role = role
        self.status = status
        self.contact = contact
        self.credential = credential
        self.joined_date = joined_date

    def is_admin(self) -> bool:
        return self.role == 'admin'

    @property
    def is_active(self) -> bool:
        return self.status == 'active'

    @staticmethod
    def get_by_id(user_id: int) -> Optional['User']:
        """Factory Method: Get User or Admin instance by ID."""
        for row in load_collection('users'):
            if row['id'] == user_id:
                return get_user_by_role(row)
        return None

    @staticmethod
    def get_by_username(username: str) -> Optional['User']:
        """Get user by username and return correct class (User/Admin)."""
        for row in load_collection('users'):
            if row['username'] == username:
                return get_user_by_role(row)
        return None

    @staticmethod
    def get_all_users() -> List['User']:
        rows = sorted(load_collection('users'), key=lambda r: r['id'])
        return [get_user_by_role(row) for row in rows]

    @staticmethod
    def get_total_users() -> int:
        return len(load_collection('users'))

    @staticmethod
    def authenticate(username: str, credential: str, role: str) -> 'User':
        """Log a user in.

        The credential and requested role must match, the account must be
        active, and while maintenance mode is on only administrators pass.

        Raises:
            AuthenticationFailed: Unknown user, wrong password or role, or
                frozen account.
            MaintenanceMode: A non-admin tried to log in during maintenance.
        """
        from lumilib.models.system_config import SystemSettings

        user = User.get_by_username(username)
        if not user or user.role != role or not user.check_password(credential):
            raise AuthenticationFailed('Invalid username or password')
        if not user.is_active:
            raise AuthenticationFailed('This account is frozen; please contact an administrator')
        if not user.is_admin() and SystemSettings.get().maintenance_mode:
            raise MaintenanceMode()

        logger.info('User %s logged in as %s', user.username, role)
        return user

    def check_password(self, password: str) -> bool:
        """Check if provided password matches user password."""
        if not self.credential or not password:
            return False
        return check_password_hash(self.credential, password)

    def update_profile(self, name: Optional[str] = None,
                       contact: Optional[str] = None) -> 'User':
        """Update user profile information."""
        if name is not None and not name.strip():
            raise ValidationError('Name cannot be empty')

        with transaction():
            rows = load_collection('users')
            row = _find_row(rows, self.id)
            if name is not None:
                row['name'] = self.name = name.strip()
            if contact is not None:
                row['contact'] = self.contact = contact.strip()
            save_collection('users', rows)
        return self

    def change_password(self, old_password: str, new_password: str) -> None:
        """Replace the password after verifying the current one.

        Raises:
            AuthenticationFailed: The current password is wrong.
            ValidationError: The new password is empty.
        """
        if not self.check_password(old_password):
            raise AuthenticationFailed('Current password is incorrect')
        if not new_password:
            raise ValidationError('New password cannot be empty')

        with transaction():
            rows = load_collection('users')
            row = _find_row(rows, self.id)
            row['credential'] = self.credential = generate_password_hash(new_password)
            save_collection('users', rows)

    def to_dict(self) -> Dict[str, Any]:
        """Public representation; never includes the credential."""
        return {
            'id': self.id,
            'username': self.username,
            'name': self.name,
            'role': self.role,
            'status': self.status,
            'contact': self.contact,
            'joined_date': self.joined_date
        }

    def to_record(self) -> Dict[str, Any]:
        record = self.to_dict()
        record['credential'] = self.credential
        return record


def _find_row(rows: List[Dict[str, Any]], user_id: int) -> Dict[str, Any]:
    row = next((r for r in rows if r['id'] == user_id), None)
    if row is None:
        raise RecordNotFound(f'User {user_id} not found')
    return row


def get_user_by_role(row: Dict[str, Any]) -> User:
    """Return an Admin for admin rows and a plain User otherwise."""
    if row.get('role') == 'admin':
        from lumilib.models.admin import Admin
        return Admin(**row)
    return User(**row)
