"""Request-level authentication middleware.

Extracts the JWT from the session cookie, validates it, and populates
``request.state.user`` (dict with id, email, name).

Unauthenticated requests to protected paths get a 401 (JSON clients) or a
redirect to /login.

Also enforces double-submit CSRF protection on state-changing methods.
"""

from __future__ import annotations

import re
import secrets

import jwt as pyjwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from .auth import (
    SESSION_COOKIE,
    issue_session_token,
    read_session_token,
    session_needs_refresh,
    set_session_cookie,
    user_from_claims,
)

# Paths that do NOT require authentication.
_PUBLIC_PATHS: list[re.Pattern[str]] = [
    re.compile(r"^/health$"),
    re.compile(r"^/auth/login$"),
    re.compile(r"^/auth/register$"),
    re.compile(r"^/auth/forgot-password$"),
    re.compile(r"^/auth/reset-password$"),
    re.compile(r"^/auth/logout$"),
    re.compile(r"^/login$"),
    re.compile(r"^/share/[^/]+$"),
    re.compile(r"^/docs$"),
    re.compile(r"^/openapi\.json$"),
    re.compile(r"^/favicon\.ico$"),
]

# CSRF settings.
_CSRF_COOKIE_NAME = "tree_csrf"
_CSRF_HEADER_NAME = "x-csrf-token"
_CSRF_TOKEN_LENGTH = 32
_CSRF_SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def _is_public(path: str) -> bool:
    for pat in _PUBLIC_PATHS:
        if pat.search(path):
            return True
    return False


def _wants_json(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    return "application/json" in accept


def _csrf_ok(request: Request) -> bool:
    if request.method in _CSRF_SAFE_METHODS:
        return True
    csrf_cookie = request.cookies.get(_CSRF_COOKIE_NAME, "")
    csrf_header = request.headers.get(_CSRF_HEADER_NAME, "")
    return bool(csrf_cookie) and bool(csrf_header) and secrets.compare_digest(csrf_cookie, csrf_header)


def _ensure_csrf_cookie(request: Request, response: Response) -> None:
    """Set the CSRF cookie if not already present so JS can read it."""
    if request.cookies.get(_CSRF_COOKIE_NAME):
        return
    token = secrets.token_hex(_CSRF_TOKEN_LENGTH)
    response.set_cookie(
        key=_CSRF_COOKIE_NAME,
        value=token,
        httponly=False,  # JS must be able to read it.
        samesite="lax",
        path="/",
    )


def _unauthenticated(request: Request, detail: str) -> Response:
    if _wants_json(request):
        return JSONResponse({"detail": detail}, status_code=401)
    return RedirectResponse(url="/login", status_code=302)


class AuthMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that enforces JWT-based authentication and CSRF."""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        if _is_public(path):
            response = await call_next(request)
            _ensure_csrf_cookie(request, response)
            return response

        token = request.cookies.get(SESSION_COOKIE)
        if not token:
            return _unauthenticated(request, "Not authenticated")

        try:
            claims = read_session_token(token)
        except pyjwt.ExpiredSignatureError:
            return _unauthenticated(request, "Session expired")
        except pyjwt.PyJWTError:
            return _unauthenticated(request, "Invalid session")

        if not _csrf_ok(request):
            return JSONResponse({"detail": "CSRF token mismatch"}, status_code=403)

        request.state.user = user_from_claims(claims)

        response = await call_next(request)
        _ensure_csrf_cookie(request, response)

        # Sliding window refresh: issue a new token when >50% of lifetime is gone.
        if session_needs_refresh(claims):
            user = request.state.user
            set_session_cookie(response, issue_session_token(user_id=user["id"], email=user["email"], name=user["name"]))

        return response
