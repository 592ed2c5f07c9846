"""Tests for bearer-token identity."""
from __future__ import annotations

from itsdangerous import URLSafeTimedSerializer

from app.auth import build_token, get_current_user_id


def test_valid_token_yields_user_id(app) -> None:
    with app.app_context():
        token = build_token({"user_id": 42, "role": "customer"})

    with app.test_request_context(headers={"Authorization": f"Bearer {token}"}):
        assert get_current_user_id() == 42


def test_missing_or_malformed_header(app) -> None:
    with app.test_request_context():
        assert get_current_user_id() is None

    with app.test_request_context(headers={"Authorization": "Token abc"}):
        assert get_current_user_id() is None


def test_token_signed_with_other_key_is_rejected(app) -> None:
    forged = URLSafeTimedSerializer("someone-elses-key", salt="auth-token").dumps({"user_id": 1})

    with app.test_request_context(headers={"Authorization": f"Bearer {forged}"}):
        assert get_current_user_id() is None


def test_expired_token_is_rejected(app) -> None:
    app.config["AUTH_TOKEN_MAX_AGE"] = -1
    with app.app_context():
        token = build_token({"user_id": 7})

    with app.test_request_context(headers={"Authorization": f"Bearer {token}"}):
        assert get_current_user_id() is None


def test_non_integer_user_id_is_rejected(app) -> None:
    with app.app_context():
        token = build_token({"user_id": "7"})

    with app.test_request_context(headers={"Authorization": f"Bearer {token}"}):
        assert get_current_user_id() is None
