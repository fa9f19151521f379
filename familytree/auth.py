"""Accounts: password hashing, session tokens and password-reset tokens.

Sessions are HS256 JWTs (PyJWT) carried in an httponly cookie; the
middleware decodes them and routes read the user back with
``get_current_user``. Reset tokens are opaque random strings stored on the
``users`` row next to their expiry.
"""

from __future__ import annotations

import os
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from fastapi import HTTPException, Request, Response
from passlib.context import CryptContext

# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

_pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")

_PASSWORD_MIN_LENGTH = 8
_PASSWORD_CLASSES = (
    (str.isupper, "an uppercase letter"),
    (str.islower, "a lowercase letter"),
    (str.isdigit, "a digit"),
)


def validate_password(plain: str) -> str | None:
    """Return why ``plain`` is too weak for an account password, or ``None``."""
    if len(plain) < _PASSWORD_MIN_LENGTH:
        return f"Password must be at least {_PASSWORD_MIN_LENGTH} characters."
    missing = [label for test, label in _PASSWORD_CLASSES if not any(test(c) for c in plain)]
    if missing:
        return "Password must contain " + ", ".join(missing) + "."
    return None


def hash_password(plain: str) -> str:
    return _pwd_ctx.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return _pwd_ctx.verify(plain, hashed)


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------

SESSION_COOKIE = "tree_session"
_SESSION_ALGORITHM = "HS256"
_SESSION_LIFETIME = timedelta(hours=24)
_SESSION_REFRESH_AFTER = 0.5


def _signing_key() -> str:
    # Unset only on developer machines.
    return os.environ.get("JWT_SECRET") or "dev-secret-change-me"


def issue_session_token(user_id: str, email: str, name: str | None = None) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "email": email,
        "name": name,
        "iat": int(now.timestamp()),
        "exp": int((now + _SESSION_LIFETIME).timestamp()),
    }
    return jwt.encode(claims, _signing_key(), algorithm=_SESSION_ALGORITHM)


def read_session_token(token: str) -> dict[str, Any]:
    """Verified claims of a session token; raises ``jwt.PyJWTError`` otherwise."""
    return jwt.decode(token, _signing_key(), algorithms=[_SESSION_ALGORITHM])


def session_needs_refresh(claims: dict[str, Any]) -> bool:
    """True once more than half of the token's lifetime is used up."""
    issued, expires = claims.get("iat", 0), claims.get("exp", 0)
    if not issued or expires <= issued:
        return False
    return time.time() - issued > (expires - issued) * _SESSION_REFRESH_AFTER


def user_from_claims(claims: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(claims["sub"]),
        "email": claims.get("email", ""),
        "name": claims.get("name"),
    }


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        max_age=int(_SESSION_LIFETIME.total_seconds()),
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=SESSION_COOKIE, path="/")


def get_current_user(request: Request) -> dict[str, Any]:
    """The user the middleware attached to the request; 401 when there is none."""
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

RESET_TOKEN_LIFETIME = timedelta(hours=1)


def new_reset_token(now: datetime | None = None) -> tuple[str, datetime]:
    """A fresh reset token and the moment it stops being accepted."""
    now = now or datetime.now(timezone.utc)
    return secrets.token_hex(32), now + RESET_TOKEN_LIFETIME


def reset_link(token: str) -> str:
    base = os.environ.get("RESET_BASE_URL") or "http://localhost:3000"
    return f"{base.rstrip('/')}/auth/reset-password?token={token}"
