"""
Authentication utilities and dependencies.

Sessions are HMAC-signed JSON tokens (base64url payload) carried in a cookie.
"""
from fastapi import Depends, HTTPException, status, Cookie
from sqlalchemy.orm import Session
from typing import Optional
from chatguard.core.database import get_db
from chatguard.models.user import User
from chatguard.core.config import SESSION_SECRET, SESSION_COOKIE_NAME, SESSION_MAX_AGE_HOURS
import base64
import bcrypt
import hashlib
import hmac
import json
import logging
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

# Verified-token cache and logged-out tokens (per process)
_sessions: dict[str, dict] = {}
_revoked: dict[str, datetime] = {}

__all__ = [
    'hash_password',
    'verify_password',
    'create_session',
    'verify_session',
    'delete_session',
    'get_current_user_dependency',
    'get_current_user_optional',
]


def _secret() -> bytes:
    if not SESSION_SECRET:
        return b'default-secret-change-in-prod'
    return SESSION_SECRET.encode()


def hash_password(password: str) -> str:
    """Hash password using bcrypt."""
    password_bytes = password.encode('utf-8')
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, hashed: str) -> bool:
    """Verify password against hash."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def create_session(user_id: int, email: str, is_admin: bool = False) -> str:
    """Create a session token."""
    session_data = {
        'user_id': user_id,
        'email': email,
        'is_admin': is_admin,
        'created_at': datetime.now(timezone.utc).isoformat(),
    }

    # Create signed session token
    session_json = json.dumps(session_data, sort_keys=True)
    payload = base64.urlsafe_b64encode(session_json.encode()).decode().rstrip("=")
    signature = hmac.new(_secret(), payload.encode(), hashlib.sha256).hexdigest()

    session_token = f"{payload}.{signature}"
    _sessions[session_token] = session_data

    return session_token


def verify_session(session_token: Optional[str]) -> Optional[dict]:
    """Verify and get session data."""
    if not session_token or session_token in _revoked:
        return None

    session_data = _sessions.get(session_token)
    if session_data is None:
        parts = session_token.rsplit('.', 1)
        if len(parts) != 2:
            return None

        payload, signature = parts
        expected_signature = hmac.new(_secret(), payload.encode(), hashlib.sha256).hexdigest()
        if not hmac.compare_digest(signature, expected_signature):
            return None

        try:
            padded = payload + "=" * (-len(payload) % 4)
            session_data = json.loads(base64.urlsafe_b64decode(padded))
        except ValueError:
            return None

    # Check expiration
    try:
        created_at = datetime.fromisoformat(session_data['created_at'])
    except (KeyError, TypeError, ValueError):
        return None
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if datetime.now(timezone.utc) - created_at > timedelta(hours=SESSION_MAX_AGE_HOURS):
        _sessions.pop(session_token, None)
        return None

    # Cache it
    _sessions[session_token] = session_data
    return session_data


def delete_session(session_token: str):
    """Delete a session."""
    now = datetime.now(timezone.utc)
    _sessions.pop(session_token, None)
    _revoked[session_token] = now

    # Drop entries older than the session lifetime
    cutoff = now - timedelta(hours=SESSION_MAX_AGE_HOURS)
    for token, revoked_at in list(_revoked.items()):
        if revoked_at < cutoff:
            del _revoked[token]


def get_current_user_dependency(
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
    db: Session = Depends(get_db)
) -> User:
    """Dependency to get current authenticated user."""
    if not session_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    session_data = verify_session(session_token)
    if not session_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session"
        )

    user = db.query(User).filter(User.id == session_data['user_id']).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )

    return user


def get_current_user_optional(
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Optional dependency to get current user (returns None if not authenticated)."""
    try:
        return get_current_user_dependency(session_token=session_token, db=db)
    except HTTPException:
        return None
