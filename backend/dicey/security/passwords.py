from __future__ import annotations

import os
import hmac
import hashlib
from functools import lru_cache

from passlib.hash import argon2

from dicey.core.settings import get_settings


@lru_cache(maxsize=1)
def _argon():
    # Explicit Argon2id configuration; cost comes from settings so tests can lower it
    settings = get_settings()
    return argon2.using(
        type="ID",
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
    )


def _pepper_bytes() -> bytes:
    """Return the application-wide secret pepper as bytes.

    Load from env var PASSWORD_PEPPER. Keep this secret outside the DB.
    """
    val = os.getenv("PASSWORD_PEPPER", "")
    return val.encode("utf-8") if val else b""


def _pepperize(password: str) -> str:
    key = _pepper_bytes()
    if not key:
        return password
    # HMAC-SHA256 combines the password with the pepper
    return hmac.new(key, password.encode("utf-8"), hashlib.sha256).hexdigest()


def hash_password(password: str) -> str:
    return _argon().hash(_pepperize(password))


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _argon().verify(_pepperize(password), password_hash)
    except (ValueError, TypeError):
        # malformed or foreign hash
        return False
