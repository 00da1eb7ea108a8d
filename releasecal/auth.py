"""Account and session handling for the backend service.

Passwords are stored as salted PBKDF2-SHA256 hashes and sessions as opaque
bearer tokens with an expiry. Every function takes an open SQLAlchemy session
and raises :class:`~releasecal.errors.BackendError` on failure.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import settings
from .database import get_session
from .errors import BackendError
from .models import AuthSession, User
from .utils import utcnow

logger = logging.getLogger("uvicorn.error")

PASSWORD_ITERATIONS = 200_000
INVALID_CREDENTIALS = "Invalid login credentials"
ALREADY_REGISTERED = "User already registered"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def hash_password(password: str, *, iterations: int | None = None) -> str:
    iterations = iterations or PASSWORD_ITERATIONS
    salt = secrets.token_bytes(16)
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"pbkdf2_sha256${iterations}${_b64encode(salt)}${_b64encode(derived)}"


def verify_password(password: str, stored_hash: str) -> bool:
    try:
        alg, iter_str, salt_b64, hash_b64 = stored_hash.split("$", 3)
        iterations = int(iter_str)
        salt = _b64decode(salt_b64)
        expected = _b64decode(hash_b64)
    except ValueError:
        return False
    if alg != "pbkdf2_sha256":
        return False
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(derived, expected)


def _validate_credentials(email: str, password: str) -> str:
    normalized = normalize_email(email)
    local, _, domain = normalized.partition("@")
    if not local or "." not in domain:
        raise BackendError("Unable to validate email address: invalid format", kind="invalid")
    if len(password) < settings.password_min_length:
        raise BackendError(
            f"Password should be at least {settings.password_min_length} characters",
            kind="invalid",
        )
    return normalized


def _open_session(db: Session, user: User) -> AuthSession:
    now = utcnow()
    auth_session = AuthSession(
        access_token=secrets.token_urlsafe(32),
        user=user,
        created_at=now,
        expires_at=now + settings.session_ttl,
    )
    db.add(auth_session)
    db.flush()
    return auth_session


def get_user_by_email(db: Session, email: str) -> User | None:
    stmt = select(User).where(User.email == normalize_email(email))
    return db.scalars(stmt).first()


def sign_up(db: Session, *, email: str, password: str) -> tuple[User, AuthSession]:
    """Register a new account and open its first session."""
    normalized = _validate_credentials(email, password)
    if get_user_by_email(db, normalized):
        raise BackendError(ALREADY_REGISTERED, kind="conflict")
    user = User(email=normalized, password_hash=hash_password(password))
    db.add(user)
    try:
        db.flush()
    except IntegrityError as exc:
        raise BackendError(ALREADY_REGISTERED, kind="conflict") from exc
    logger.info("Registered user %s", user.id)
    return user, _open_session(db, user)


def sign_in(db: Session, *, email: str, password: str) -> tuple[User, AuthSession]:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        raise BackendError(INVALID_CREDENTIALS, kind="unauthorized")
    return user, _open_session(db, user)


def sign_out(db: Session, access_token: str | None) -> bool:
    """Revoke a session token; returns False when there was nothing to revoke."""
    if not access_token:
        return False
    auth_session = db.get(AuthSession, access_token)
    if not auth_session:
        return False
    db.delete(auth_session)
    db.flush()
    return True


def get_user_for_token(db: Session, access_token: str | None) -> User | None:
    """Return the session's user, or None for a missing/unknown/expired token."""
    if not access_token:
        return None
    auth_session = db.get(AuthSession, access_token)
    if not auth_session:
        return None
    if auth_session.expires_at <= utcnow():
        db.delete(auth_session)
        db.flush()
        return None
    return auth_session.user


def purge_expired_sessions() -> int:
    """Delete expired session rows; returns how many were removed."""
    with get_session() as db:
        result = db.execute(delete(AuthSession).where(AuthSession.expires_at <= utcnow()))
        removed = result.rowcount or 0
    if removed:
        logger.info("Purged %d expired sessions", removed)
    return removed
