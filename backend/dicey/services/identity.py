"""Identity store: user records and credential checks."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dicey.core.logger import auth_logger as logger
from dicey.db import transaction
from dicey.db_models import User
from dicey.errors import DuplicateIdentity, InvalidInput
from dicey.security.passwords import hash_password, verify_password


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _find_by_email(db: Session, email: str) -> Optional[User]:
    stmt = select(User).where(User.email == _normalize_email(email))
    return db.execute(stmt).scalars().first()


def get_user(db: Session, user_id: int) -> Optional[User]:
    with transaction(db):
        return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    with transaction(db):
        return _find_by_email(db, email)


def create_user(db: Session, name: str, email: str, password: str) -> User:
    name = (name or "").strip()
    email = _normalize_email(email)
    if not name or not email or not password:
        raise InvalidInput("All fields are required")

    password_hash = hash_password(password)
    try:
        with transaction(db, write=True):
            if _find_by_email(db, email) is not None:
                raise DuplicateIdentity()
            user = User(name=name, email=email, password_hash=password_hash)
            db.add(user)
            db.flush()
            db.refresh(user)
    except IntegrityError:
        # lost a race with a concurrent signup for the same email
        raise DuplicateIdentity() from None
    logger.info(f"Created user id={user.id} Email:{email} Password:[REDACTED]")
    return user


def validate_credential(db: Session, email: str, password: str) -> Optional[User]:
    """Return the user when the password matches, else ``None``.

    A missing account and a wrong password are indistinguishable to callers.
    """
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


__all__ = ["create_user", "get_user", "get_user_by_email", "validate_credential"]
