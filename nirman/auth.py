"""
Authentication utilities: password hashing, session management, and auth helpers.

A session is an explicit object rebuilt for every request from the bearer
token; expiry is checked with a pure function at validation time.
"""
import logging
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from itsdangerous import BadSignature, URLSafeTimedSerializer

from nirman.config import SECRET_KEY, SESSION_MAX_AGE
from nirman.database import get_db
from nirman.roles import capability_names

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """The authenticated caller of one request."""
    session_id: str
    user_id: int
    login_id: str
    full_name: str
    email: str
    department: Optional[str]
    role: str
    expires_at: datetime
    capabilities: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "userId": self.login_id,
            "fullName": self.full_name,
            "email": self.email,
            "department": self.department,
            "role": self.role,
            "capabilities": self.capabilities,
        }


def generate_password(length: int = 12) -> str:
    """Generate a random password."""
    alphabet = string.ascii_letters + string.digits + "!@#$%"
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password_bytes, salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # malformed hash, or password too long for bcrypt
        return False


def generate_session_id() -> str:
    """Generate a unique session ID."""
    return secrets.token_urlsafe(32)


def parse_timestamp(value) -> datetime:
    """PostgreSQL returns datetime objects, SQLite returns strings."""
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def is_session_expired(expires_at, now: Optional[datetime] = None) -> bool:
    """True once now has reached expires_at."""
    now = now or datetime.now()
    return now >= parse_timestamp(expires_at)


def create_session(user_id: int, now: Optional[datetime] = None) -> tuple:
    """Create a new session for a user; returns (session_id, expires_at)."""
    session_id = generate_session_id()
    expires_at = (now or datetime.now()) + timedelta(seconds=SESSION_MAX_AGE)

    with get_db() as conn:
        cursor = conn.cursor()
        # Remove any existing sessions for this user
        cursor.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))
        cursor.execute(
            "INSERT INTO sessions (session_id, user_id, expires_at) VALUES (?, ?, ?)",
            (session_id, user_id, expires_at.isoformat(sep=" "))
        )

    return session_id, expires_at


def validate_session(session_id: str, now: Optional[datetime] = None) -> Optional[Session]:
    """
    Validate a session ID and return the Session if valid.
    Returns None if the session is unknown, expired, or the user is inactive.
    """
    if not session_id:
        return None

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            SELECT s.session_id, s.expires_at, u.id, u.user_id, u.full_name, u.email, u.department, u.role
            FROM sessions s
            JOIN users u ON s.user_id = u.id
            WHERE s.session_id = ? AND u.is_active = 1
        """, (session_id,))
        row = cursor.fetchone()

        if not row:
            return None

        if is_session_expired(row['expires_at'], now):
            cursor.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
            return None

        return Session(
            session_id=row['session_id'],
            user_id=row['id'],
            login_id=row['user_id'],
            full_name=row['full_name'],
            email=row['email'],
            department=row['department'],
            role=row['role'],
            expires_at=parse_timestamp(row['expires_at']),
            capabilities=capability_names(row['role']),
        )


def delete_session(session_id: str) -> None:
    """Delete a session (logout)."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))


def authenticate_user(email: str, password: str) -> Optional[dict]:
    """
    Authenticate a user by email and password.
    Returns user info if successful, None otherwise.
    """
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            """SELECT id, user_id, full_name, email, department, role, password_hash, is_active
               FROM users WHERE email = ?""",
            (email.lower().strip(),)
        )
        row = cursor.fetchone()

    if not row or not row['is_active']:
        logger.warning("Login refused for %s: unknown or inactive user", email)
        return None

    if not verify_password(password, row['password_hash']):
        logger.warning("Login refused for %s: wrong password", email)
        return None

    return {
        'id': row['id'],
        'user_id': row['user_id'],
        'full_name': row['full_name'],
        'email': row['email'],
        'department': row['department'],
        'role': row['role'],
    }


def get_serializer():
    """Get the URL-safe serializer for bearer tokens."""
    return URLSafeTimedSerializer(SECRET_KEY)


def serialize_session(session_id: str) -> str:
    """Sign a session ID into a bearer token."""
    return get_serializer().dumps(session_id)


def deserialize_session(token: str) -> Optional[str]:
    """Recover the session ID from a bearer token; None if tampered or too old."""
    try:
        return get_serializer().loads(token, max_age=SESSION_MAX_AGE)
    except BadSignature:
        return None
