"""
tests/test_login_flow.py -- LoginFlow state machine, without HTTP.

Each test drives one LoginFlow against a seeded InMemoryAccountStore and
asserts on both the outcome (result or AuthError) and the recorded states.
"""

from __future__ import annotations

import pytest
from starlette.responses import JSONResponse

from auth.crypto import encrypt
from auth.errors import DecryptionFailure, InvalidCredentials, MalformedInput, MethodNotAllowed
from auth.login import LoginFlow, LoginState, PlainLoginPayload, parse_login_payload
from auth.tokens import verify_access_token, verify_refresh_token
from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, INACTIVE_EMAIL, INACTIVE_PASSWORD, SUPER_EMAIL, SUPER_PASSWORD
from core.config import get_settings

_HAPPY_PATH = [
    LoginState.RECEIVED,
    LoginState.DECRYPTED,
    LoginState.CREDENTIAL_CHECKED,
    LoginState.TOKEN_ISSUED,
]


def _encrypted(email: str, password: str, **extra) -> dict:
    return {"email": encrypt(email), "password": encrypt(password), "encrypted": True, **extra}


@pytest.fixture
def flow(seeded_store) -> LoginFlow:
    store, _ids = seeded_store
    return LoginFlow(store)


class TestHappyPath:
    def test_encrypted_login(self, flow: LoginFlow, seeded_store) -> None:
        _store, ids = seeded_store
        result = flow.authenticate("POST", _encrypted(ADMIN_EMAIL, ADMIN_PASSWORD))
        assert flow.history == _HAPPY_PATH
        assert result.account.id == ids["admin"]
        assert result.tokens.role == "admin"
        assert verify_access_token(result.tokens.access_token)["sub"] == ids["admin"]
        assert verify_refresh_token(result.tokens.refresh_token)["sub"] == ids["admin"]

    def test_plaintext_login_tolerated_outside_production(self, flow: LoginFlow) -> None:
        result = flow.authenticate("POST", {"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert result.tokens.role == "admin"

    def test_super_admin_role(self, flow: LoginFlow) -> None:
        result = flow.authenticate("POST", _encrypted(SUPER_EMAIL, SUPER_PASSWORD))
        assert result.tokens.role == "super_admin"
        assert result.tokens.user_type == "Super Admin"

    def test_last_login_recorded(self, flow: LoginFlow, seeded_store) -> None:
        store, ids = seeded_store
        flow.authenticate("POST", _encrypted(ADMIN_EMAIL, ADMIN_PASSWORD))
        assert store.get_by_id(ids["admin"]).last_login is not None

    def test_complete_sets_cookies_and_reaches_responded(self, flow: LoginFlow) -> None:
        result = flow.authenticate("POST", _encrypted(ADMIN_EMAIL, ADMIN_PASSWORD))
        resp = flow.complete(JSONResponse({}), result)
        cookies = resp.headers.getlist("set-cookie")
        assert any(c.startswith("access_token=") and "HttpOnly" in c for c in cookies)
        assert any(c.startswith("refresh_token=") for c in cookies)
        assert resp.headers["cache-control"] == "no-store"
        assert flow.state is LoginState.RESPONDED
        assert flow.history[-2:] == [LoginState.COOKIE_SET, LoginState.RESPONDED]

    def test_complete_requires_issued_tokens(self, flow: LoginFlow) -> None:
        with pytest.raises(RuntimeError):
            flow.complete(JSONResponse({}), None)  # type: ignore[arg-type]


class TestSessionLength:
    def test_short_session_without_remember_me(self, flow: LoginFlow) -> None:
        settings = get_settings()
        result = flow.authenticate("POST", _encrypted(ADMIN_EMAIL, ADMIN_PASSWORD, rememberMe=False))
        session = settings.session_seconds(False)
        assert result.remember_me is False
        assert result.tokens.access_expires_in == min(settings.access_token_seconds, session)
        assert result.tokens.refresh_expires_in == min(settings.refresh_token_seconds, session)

    def test_remember_me_allows_longer_refresh(self, flow: LoginFlow) -> None:
        settings = get_settings()
        result = flow.authenticate("POST", _encrypted(ADMIN_EMAIL, ADMIN_PASSWORD, rememberMe=True))
        assert result.remember_me is True
        assert result.tokens.refresh_expires_in == min(settings.refresh_token_seconds, settings.session_seconds(True))


class TestRejections:
    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH"])
    def test_non_post(self, flow: LoginFlow, method: str) -> None:
        with pytest.raises(MethodNotAllowed):
            flow.authenticate(method, None)
        assert flow.history == [LoginState.RECEIVED, LoginState.REJECTED_METHOD]

    @pytest.mark.parametrize("body", [None, [], "text", 42])
    def test_body_not_an_object(self, flow: LoginFlow, body) -> None:
        with pytest.raises(MalformedInput):
            flow.authenticate("POST", body)
        assert flow.state is LoginState.REJECTED_MALFORMED_INPUT

    def test_bad_field_type(self, flow: LoginFlow) -> None:
        with pytest.raises(MalformedInput) as exc_info:
            flow.authenticate("POST", {"email": ["x"], "password": "123456"})
        assert "email" in exc_info.value.errors

    @pytest.mark.parametrize(
        "body",
        [
            {"email": ADMIN_EMAIL},
            {"password": ADMIN_PASSWORD},
            {"email": "", "password": ADMIN_PASSWORD},
            {"encrypted": True, "email": encrypt(ADMIN_EMAIL)},
        ],
    )
    def test_missing_credentials(self, flow: LoginFlow, body: dict) -> None:
        with pytest.raises(MalformedInput) as exc_info:
            flow.authenticate("POST", body)
        assert exc_info.value.message == "Email e senha são obrigatórios"
        # Decryption (or the plaintext pass-through) happened before the check.
        assert LoginState.DECRYPTED in flow.history

    def test_undecryptable_field(self, flow: LoginFlow) -> None:
        with pytest.raises(DecryptionFailure):
            flow.authenticate("POST", {"email": "nothex:zz", "password": encrypt("x"), "encrypted": True})
        assert flow.history == [LoginState.RECEIVED, LoginState.REJECTED_DECRYPTION_FAILURE]

    def test_unknown_email_and_wrong_password_look_the_same(self, flow: LoginFlow, seeded_store) -> None:
        store, _ids = seeded_store
        with pytest.raises(InvalidCredentials) as unknown:
            flow.authenticate("POST", _encrypted("ninguem@x.com", ADMIN_PASSWORD))
        with pytest.raises(InvalidCredentials) as wrong:
            LoginFlow(store).authenticate("POST", _encrypted(ADMIN_EMAIL, "errada"))
        assert unknown.value.message == wrong.value.message
        assert unknown.value.code == wrong.value.code == "INVALID_CREDENTIALS"
        assert flow.state is LoginState.REJECTED_INVALID_CREDENTIALS

    def test_inactive_account(self, flow: LoginFlow) -> None:
        with pytest.raises(InvalidCredentials):
            flow.authenticate("POST", _encrypted(INACTIVE_EMAIL, INACTIVE_PASSWORD))

    def test_plaintext_rejected_when_policy_requires_encryption(self, flow: LoginFlow, monkeypatch) -> None:
        monkeypatch.setattr(get_settings(), "accept_plaintext_login", False)
        with pytest.raises(MalformedInput) as exc_info:
            flow.authenticate("POST", {"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert exc_info.value.code == "ENCRYPTION_REQUIRED"


class TestPayloadParsing:
    def test_string_flag_is_not_encrypted(self) -> None:
        payload = parse_login_payload({"email": "a@b.com", "password": "x", "encrypted": "true"})
        assert isinstance(payload, PlainLoginPayload)

    def test_remember_me_alias(self) -> None:
        assert parse_login_payload({"email": "a", "password": "b", "rememberMe": True}).remember_me is True

    def test_oversized_plain_field(self) -> None:
        with pytest.raises(MalformedInput):
            parse_login_payload({"email": "a" * 300, "password": "x"})
