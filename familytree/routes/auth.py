"""Auth routes: register, login, logout, current-user info, password reset."""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from ..auth import (
    clear_session_cookie,
    get_current_user,
    hash_password,
    issue_session_token,
    new_reset_token,
    reset_link,
    set_session_cookie,
    validate_password,
    verify_password,
)
from ..db import db_conn
from ..queries import _new_id, create_tree, fetch_user_tree

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# ---------------------------------------------------------------------------
# Login rate limiting: 5 attempts per IP per 5-minute window, in memory.
# ---------------------------------------------------------------------------

_RATE_MAX_ATTEMPTS = 5
_RATE_WINDOW_SECS = 300  # 5 minutes

# ip -> list of attempt timestamps (only failures counted)
_login_attempts: dict[str, list[float]] = defaultdict(list)


def _check_rate_limit(client_ip: str) -> None:
    """Raise 429 if the IP has too many recent failed login attempts."""
    now = time.monotonic()
    cutoff = now - _RATE_WINDOW_SECS
    attempts = _login_attempts[client_ip]
    # Prune old entries.
    _login_attempts[client_ip] = [t for t in attempts if t > cutoff]
    if len(_login_attempts[client_ip]) >= _RATE_MAX_ATTEMPTS:
        raise HTTPException(
            status_code=429,
            detail=f"Too many login attempts. Try again in {_RATE_WINDOW_SECS // 60} minutes.",
        )


def _record_failed_attempt(client_ip: str) -> None:
    _login_attempts[client_ip].append(time.monotonic())


def _clear_attempts(client_ip: str) -> None:
    _login_attempts.pop(client_ip, None)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


@router.post("/register")
def register(body: RegisterRequest, response: Response) -> dict[str, Any]:
    """Create an account and its (empty) family tree, then log in."""
    email = _normalize_email(body.email)
    if "@" not in email:
        raise HTTPException(status_code=400, detail="A valid email is required.")
    pw_err = validate_password(body.password)
    if pw_err:
        raise HTTPException(status_code=400, detail=pw_err)

    name = (body.name or "").strip() or None

    with db_conn() as conn:
        existing = conn.execute("SELECT id FROM users WHERE email = %s", (email,)).fetchone()
        if existing:
            raise HTTPException(status_code=409, detail="Email already registered")

        user_id = _new_id()
        conn.execute(
            "INSERT INTO users (id, email, name, password_hash) VALUES (%s, %s, %s, %s)",
            (user_id, email, name, hash_password(body.password)),
        )
        tree = create_tree(conn, user_id, name)
        conn.commit()

    log.info("Registered user %s with tree %s", user_id, tree["id"])
    set_session_cookie(response, issue_session_token(user_id=user_id, email=email, name=name))
    return {
        "ok": True,
        "user": {"id": user_id, "email": email, "name": name},
        "tree": {"id": tree["id"], "title": tree["title"]},
    }


@router.post("/login")
def login(body: LoginRequest, request: Request, response: Response) -> dict[str, Any]:
    """Authenticate with email + password, set session cookie."""
    client_ip = request.client.host if request.client else "unknown"
    _check_rate_limit(client_ip)

    with db_conn() as conn:
        row = conn.execute(
            "SELECT id, email, name, password_hash FROM users WHERE email = %s",
            (_normalize_email(body.email),),
        ).fetchone()

    if not row:
        _record_failed_attempt(client_ip)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    user_id, email, name, password_hash = row

    if not verify_password(body.password, password_hash):
        _record_failed_attempt(client_ip)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    set_session_cookie(response, issue_session_token(user_id=user_id, email=email, name=name))
    _clear_attempts(client_ip)

    return {
        "ok": True,
        "user": {"id": user_id, "email": email, "name": name},
    }


@router.get("/logout")
def logout(response: Response) -> dict[str, str]:
    clear_session_cookie(response)
    return {"ok": "true"}


@router.get("/me")
def me(request: Request) -> dict[str, Any]:
    user = get_current_user(request)

    with db_conn() as conn:
        tree = fetch_user_tree(conn, user["id"])

    return {
        "user": user,
        "tree": (
            {"id": tree["id"], "title": tree["title"], "share_slug": tree["share_slug"]}
            if tree
            else None
        ),
    }


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str


@router.post("/forgot-password")
def forgot_password(body: ForgotPasswordRequest) -> dict[str, Any]:
    """Issue a one-hour reset token. The answer is the same for unknown emails."""
    email = _normalize_email(body.email)
    if not email:
        raise HTTPException(status_code=400, detail="Email is required.")

    token, expires_at = new_reset_token()
    with db_conn() as conn:
        row = conn.execute(
            """
            UPDATE users SET reset_token = %s, reset_token_expiry = %s
            WHERE email = %s
            RETURNING id
            """.strip(),
            (token, expires_at, email),
        ).fetchone()
        conn.commit()

    if row is None:
        log.info("Password reset requested for an unknown email")
    else:
        # No mailer: the link goes to the log for the operator to pass on.
        log.info("Password reset link for user %s: %s", row[0], reset_link(token))
    return {"ok": True}


@router.post("/reset-password")
def reset_password(body: ResetPasswordRequest) -> dict[str, Any]:
    token = body.token.strip()
    if not token:
        raise HTTPException(status_code=400, detail="Reset token is required.")
    pw_err = validate_password(body.password)
    if pw_err:
        raise HTTPException(status_code=400, detail=pw_err)

    with db_conn() as conn:
        row = conn.execute(
            """
            UPDATE users
            SET password_hash = %s, reset_token = NULL, reset_token_expiry = NULL
            WHERE reset_token = %s AND reset_token_expiry >= now()
            RETURNING id
            """.strip(),
            (hash_password(body.password), token),
        ).fetchone()
        conn.commit()

    if row is None:
        raise HTTPException(status_code=400, detail="Invalid or expired token.")

    log.info("Password reset for user %s", row[0])
    return {"ok": True}
