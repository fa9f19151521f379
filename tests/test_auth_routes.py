from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

import pytest
from fastapi import HTTPException

import familytree.routes.auth as auth_routes
from familytree.auth import verify_password


class _FakeResult:
    def __init__(self, row: tuple[Any, ...] | None) -> None:
        self._row = row

    def fetchone(self) -> tuple[Any, ...] | None:
        return self._row


class _FakeConn:
    """Answers every UPDATE ... RETURNING id with ``row``."""

    def __init__(self, row: tuple[Any, ...] | None) -> None:
        self._row = row
        self.executed: list[tuple[str, tuple]] = []
        self.commits = 0

    def execute(self, query: str, params: tuple = ()) -> _FakeResult:
        q = " ".join(query.split()).lower()
        self.executed.append((q, params))
        if q.startswith("update users"):
            return _FakeResult(self._row)
        raise AssertionError(f"Unexpected query: {query}")

    def commit(self) -> None:
        self.commits += 1


def _patch_db(monkeypatch: pytest.MonkeyPatch, conn: _FakeConn) -> None:
    @contextmanager
    def _fake_db_conn() -> Iterator[_FakeConn]:
        yield conn

    monkeypatch.setattr(auth_routes, "db_conn", _fake_db_conn)


class TestForgotPassword:
    def test_known_email_stores_token_and_logs_link(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        conn = _FakeConn(row=("u1",))
        _patch_db(monkeypatch, conn)
        monkeypatch.setenv("RESET_BASE_URL", "https://tree.example.com")

        with caplog.at_level(logging.INFO, logger="familytree.routes.auth"):
            out = auth_routes.forgot_password(auth_routes.ForgotPasswordRequest(email=" Jan@Example.com "))

        assert out == {"ok": True}
        q, (token, expires_at, email) = conn.executed[0]
        assert q.startswith("update users set reset_token")
        assert email == "jan@example.com"
        assert expires_at > datetime.now(timezone.utc)
        assert conn.commits == 1
        assert f"https://tree.example.com/auth/reset-password?token={token}" in caplog.text

    def test_unknown_email_gives_same_answer(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        _patch_db(monkeypatch, _FakeConn(row=None))

        with caplog.at_level(logging.INFO, logger="familytree.routes.auth"):
            out = auth_routes.forgot_password(auth_routes.ForgotPasswordRequest(email="nobody@example.com"))

        assert out == {"ok": True}
        assert "token=" not in caplog.text

    def test_blank_email_rejected(self) -> None:
        with pytest.raises(HTTPException) as exc:
            auth_routes.forgot_password(auth_routes.ForgotPasswordRequest(email="  "))
        assert exc.value.status_code == 400


class TestResetPassword:
    def test_valid_token_rehashes_and_clears(self, monkeypatch: pytest.MonkeyPatch) -> None:
        conn = _FakeConn(row=("u1",))
        _patch_db(monkeypatch, conn)

        body = auth_routes.ResetPasswordRequest(token="abc123", password="NewSecret1")
        assert auth_routes.reset_password(body) == {"ok": True}

        q, (password_hash, token) = conn.executed[0]
        assert "reset_token = null" in q
        assert "reset_token_expiry >= now()" in q
        assert token == "abc123"
        assert verify_password("NewSecret1", password_hash)
        assert conn.commits == 1

    def test_unknown_or_expired_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _patch_db(monkeypatch, _FakeConn(row=None))

        body = auth_routes.ResetPasswordRequest(token="stale", password="NewSecret1")
        with pytest.raises(HTTPException) as exc:
            auth_routes.reset_password(body)
        assert exc.value.status_code == 400
        assert exc.value.detail == "Invalid or expired token."

    def test_weak_password_rejected_before_db(self, monkeypatch: pytest.MonkeyPatch) -> None:
        conn = _FakeConn(row=("u1",))
        _patch_db(monkeypatch, conn)

        with pytest.raises(HTTPException) as exc:
            auth_routes.reset_password(auth_routes.ResetPasswordRequest(token="abc123", password="short"))
        assert exc.value.status_code == 400
        assert conn.executed == []

    def test_blank_token_rejected(self) -> None:
        with pytest.raises(HTTPException) as exc:
            auth_routes.reset_password(auth_routes.ResetPasswordRequest(token=" ", password="NewSecret1"))
        assert exc.value.detail == "Reset token is required."
