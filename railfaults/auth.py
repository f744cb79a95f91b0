"""Password hashing and HTTP Basic credential checks.

Every request carries its credentials, so verification runs per request.
Hashes produced under older ``pwd_context`` settings are upgraded in place the
next time the user authenticates.
"""
import logging
from typing import Optional

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .errors import AuthError
from .models import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__default_rounds=29000,
    pbkdf2_sha256__min_rounds=29000,
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
    user: Optional[User] = db.query(User).filter(User.username == username).first()
    if user is None:
        # Same cost as a real check so unknown usernames are not observable by timing.
        pwd_context.dummy_verify()
        return None
    valid, new_hash = pwd_context.verify_and_update(password, user.hashed_password)
    if not valid:
        return None
    if new_hash is not None:
        user.hashed_password = new_hash
        db.commit()
        logger.info("Upgraded password hash for user %s", user.id)
    return user


def require_authenticated_user(db: Session, username: str, password: str) -> User:
    """Like :func:`authenticate_user` but raises ``AuthError`` on a mismatch."""

    user = authenticate_user(db, username, password)
    if user is None:
        raise AuthError("Invalid credentials")
    return user
