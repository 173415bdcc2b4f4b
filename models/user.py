"""
User model and data access functions.
Reservers: Flask-Login wrapper, role/business-unit checks and credentials.
"""

from werkzeug.security import generate_password_hash, check_password_hash
from database import get_db

ROLES = ('admin', 'manager', 'staff')


class User:
    """
    Logged-in reserver, wrapping a users row for Flask-Login.

    Only users assigned to a business unit (bu_code) may book resources;
    admins may edit and cancel anyone's reservations.
    """

    def __init__(self, user_dict):
        self.id = user_dict['id']
        self.username = user_dict['username']
        self.email = user_dict['email']
        self.full_name = user_dict['full_name']
        self.role = user_dict['role']
        self.bu_code = user_dict.get('bu_code')
        self.active = user_dict['active']
        self.last_login = user_dict.get('last_login')

    # Flask-Login interface
    is_authenticated = True
    is_anonymous = False

    @property
    def is_active(self):
        return self.active == 1

    def get_id(self):
        return str(self.id)

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def can_book(self) -> bool:
        """True when the user belongs to a business unit."""
        return bool((self.bu_code or '').strip())

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    def to_dict(self) -> dict:
        """Public profile (no password hash)."""
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'bu_code': self.bu_code,
            'is_admin': self.is_admin,
            'can_book': self.can_book,
        }

    def __repr__(self):
        return f'<User {self.username} ({self.role})>'


def _fetch_user(column: str, value) -> dict:
    cursor = get_db().cursor()
    cursor.execute(f'SELECT * FROM users WHERE {column} = ?', (value,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_user_by_id(user_id: int) -> dict:
    """User dict by ID, or None."""
    return _fetch_user('id', user_id)


def get_user_by_username(username: str) -> dict:
    """User dict by username, or None."""
    return _fetch_user('username', username)


def create_user(username: str, email: str, password: str, full_name: str = None,
                role: str = 'staff', bu_code: str = None) -> int:
    """
    Create a reserver account with a hashed password.

    Args:
        username: Unique username
        email: Unique email
        password: Plain text password (will be hashed)
        full_name: Shown as reserver_name on reservations
        role: 'admin', 'manager' or 'staff'
        bu_code: Business unit code (required to make reservations)

    Returns:
        New user ID

    Raises:
        ValueError: Unknown role
        sqlite3.IntegrityError: Username or email already exists
    """
    if role not in ROLES:
        raise ValueError(f'Unknown role: {role}')

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        INSERT INTO users (username, email, password_hash, full_name, role, bu_code)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', (username, email, generate_password_hash(password), full_name, role, bu_code or None))
    db.commit()
    return cursor.lastrowid


def update_last_login(user_id: int) -> None:
    db = get_db()
    db.execute('UPDATE users SET last_login = CURRENT_TIMESTAMP WHERE id = ?', (user_id,))
    db.commit()


def check_password(user_dict: dict, password: str) -> bool:
    """Verify a plain password against the stored hash."""
    return check_password_hash(user_dict['password_hash'], password)
