# app/services/auth.py
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from fastapi import Request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.core.config import get_settings
from app.core.exceptions import AuthError
from app.core.logger import logger
from app.models.user import AuthSession, User

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class UserSession:
    """Identity of the signed-in user, passed explicitly to every handler."""

    user_id: int
    email: str
    token: str
    fullname: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.fullname or self.email or "Unknown"


@dataclass(frozen=True)
class AuthEvent:
    name: str
    session: UserSession


class AuthEventBus:
    def __init__(self):
        self._handlers: List[Callable[[AuthEvent], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: Callable[[AuthEvent], None]) -> Callable[[], None]:
        """Register ``handler``; the returned callable deregisters it and is safe to call twice."""
        with self._lock:
            self._handlers.append(handler)

        def unsubscribe():
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: AuthEvent):
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            handler(event)

    def __len__(self):
        return len(self._handlers)


auth_events = AuthEventBus()


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _to_session(user: User, token: str) -> UserSession:
    return UserSession(user_id=user.id, email=user.email, token=token, fullname=user.full_name)


def _open_session(db: Session, user: User) -> UserSession:
    token = secrets.token_urlsafe(32)
    db.add(AuthSession(token=token, user_id=user.id))
    db.commit()
    session = _to_session(user, token)
    auth_events.publish(AuthEvent(SIGNED_IN, session))
    return session


def sign_up(db: Session, email: str, password: str, full_name: Optional[str] = None) -> UserSession:
    email = _normalize_email(email)
    if not email or not password:
        raise AuthError("Email and password are required")

    user = User(email=email, password=generate_password_hash(password), full_name=(full_name or "").strip() or None)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AuthError("An account with this email already exists", title="Sign up failed")
    db.refresh(user)

    logger.info(f"New account {email} (id={user.id})")
    return _open_session(db, user)


def sign_in(db: Session, email: str, password: str) -> UserSession:
    email = _normalize_email(email)
    user = db.query(User).filter(User.email == email).first()
    if not user or not check_password_hash(user.password, password or ""):
        logger.info(f"Rejected sign in for {email}")
        raise AuthError("Invalid email or password")

    logger.info(f"User {user.id} signed in")
    return _open_session(db, user)


def _is_expired(row: AuthSession) -> bool:
    max_age = timedelta(hours=get_settings().session_max_age_hours)
    return row.created_at is not None and row.created_at < datetime.utcnow() - max_age


def get_current_session(request: Request, db: Session) -> Optional[UserSession]:
    """
    Resolve the session cookie. Any failure counts as signed out.

    Sessions older than ``session_max_age_hours`` are signed out here.
    """
    token = request.cookies.get(get_settings().session_cookie_name)
    if not token:
        return None
    try:
        row = db.get(AuthSession, token)
        if row is None or row.user is None:
            return None
        session = _to_session(row.user, token)
        if _is_expired(row):
            logger.info(f"Session for user {session.user_id} expired")
            sign_out(db, session)
            return None
        return session
    except SQLAlchemyError as exc:
        logger.warning(f"Session lookup failed, treating as signed out: {exc}")
        return None


def sign_out(db: Session, session: UserSession) -> None:
    try:
        db.query(AuthSession).filter(AuthSession.token == session.token).delete()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Could not delete session for user {session.user_id}: {exc}")

    logger.info(f"User {session.user_id} signed out")
    auth_events.publish(AuthEvent(SIGNED_OUT, session))

