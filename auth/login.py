"""
auth/login.py -- The login flow as an explicit state machine.

    RECEIVED -> DECRYPTED -> CREDENTIAL_CHECKED -> TOKEN_ISSUED -> COOKIE_SET -> RESPONDED

Terminal rejections:
    REJECTED_METHOD               405  method other than POST
    REJECTED_MALFORMED_INPUT      400  body not an object, bad field types,
                                       missing email/password, or plaintext
                                       payload where encryption is required
    REJECTED_DECRYPTION_FAILURE   400  encrypted field fails to decrypt
    REJECTED_INVALID_CREDENTIALS  401  unknown/inactive email OR wrong password

A LoginFlow instance handles exactly one request. authenticate() runs up to
TOKEN_ISSUED and returns a LoginResult; complete() writes the cookies onto the
outgoing response. Each rejection raises the matching AuthError after
recording the terminal state, so the API's AuthError handler produces the
response.

Security:
  [C1] The flow always runs one bcrypt check, against DUMMY_HASH when the
       email is unknown, so response time does not reveal account existence.
       Unknown email and wrong password raise the same InvalidCredentials.
  Payload schemas are validated before any credential work happens.
  Credentials are never logged; audit lines carry a masked email only.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.responses import Response

from auth.cookies import set_auth_cookies
from auth.crypto import decrypt_login_fields, is_encrypted
from auth.errors import AuthError, DecryptionFailure, InvalidCredentials, MalformedInput, MethodNotAllowed
from auth.models import Account, TokenPair
from auth.passwords import DUMMY_HASH, verify_password
from auth.store import AccountRepository
from auth.tokens import issue_token_pair
from core.config import get_settings
from core.redaction import mask_email

logger = logging.getLogger("semprecheio.auth.login")
audit = logging.getLogger("semprecheio.audit")

MISSING_CREDENTIALS_MESSAGE = "Email e senha são obrigatórios"


# ---------------------------------------------------------------------------
# Payload schemas
# ---------------------------------------------------------------------------


class PlainLoginPayload(BaseModel):
    """{email, password, rememberMe?} -- accepted only when policy allows plaintext.

    Any "encrypted" value other than the boolean True lands here and is ignored.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)
    remember_me: Optional[bool] = Field(default=None, alias="rememberMe")


class EncryptedLoginPayload(BaseModel):
    """{email, password, rememberMe?, encrypted: true}; email/password are "iv_hex:ciphertext_hex"."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    email: Optional[str] = Field(default=None, max_length=2048)
    password: Optional[str] = Field(default=None, max_length=2048)
    remember_me: Optional[bool] = Field(default=None, alias="rememberMe")
    encrypted: Literal[True]


LoginPayload = Union[PlainLoginPayload, EncryptedLoginPayload]


def parse_login_payload(raw: Any) -> LoginPayload:
    """Validate a decoded JSON body into one of the tagged payload types.

    The tag is the "encrypted" flag: only the boolean True selects the
    encrypted schema. Raises MalformedInput on any schema violation.
    """
    if not isinstance(raw, dict):
        raise MalformedInput()
    model = EncryptedLoginPayload if is_encrypted(raw) else PlainLoginPayload
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        errors = {".".join(str(p) for p in err["loc"]) or "body": err["msg"] for err in exc.errors()}
        raise MalformedInput(errors=errors) from exc


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class LoginState(str, Enum):
    RECEIVED = "received"
    DECRYPTED = "decrypted"
    CREDENTIAL_CHECKED = "credential_checked"
    TOKEN_ISSUED = "token_issued"
    COOKIE_SET = "cookie_set"
    RESPONDED = "responded"
    REJECTED_METHOD = "rejected_method"
    REJECTED_MALFORMED_INPUT = "rejected_malformed_input"
    REJECTED_DECRYPTION_FAILURE = "rejected_decryption_failure"
    REJECTED_INVALID_CREDENTIALS = "rejected_invalid_credentials"


_REJECTION_STATES: dict[type[AuthError], LoginState] = {
    MethodNotAllowed: LoginState.REJECTED_METHOD,
    MalformedInput: LoginState.REJECTED_MALFORMED_INPUT,
    DecryptionFailure: LoginState.REJECTED_DECRYPTION_FAILURE,
    InvalidCredentials: LoginState.REJECTED_INVALID_CREDENTIALS,
}


@dataclass
class LoginResult:
    account: Account
    tokens: TokenPair
    remember_me: bool


class LoginFlow:
    """One login attempt. Not reusable across requests."""

    def __init__(self, store: AccountRepository) -> None:
        self.store = store
        self.state = LoginState.RECEIVED
        self.history: list[LoginState] = [LoginState.RECEIVED]

    def _advance(self, state: LoginState) -> None:
        self.state = state
        self.history.append(state)

    def authenticate(self, method: str, body: Any) -> LoginResult:
        """Run RECEIVED through TOKEN_ISSUED. Raises AuthError on rejection."""
        try:
            return self._authenticate(method, body)
        except AuthError as exc:
            self._advance(_REJECTION_STATES.get(type(exc), LoginState.REJECTED_MALFORMED_INPUT))
            raise

    def _authenticate(self, method: str, body: Any) -> LoginResult:
        settings = get_settings()

        if method.upper() != "POST":
            raise MethodNotAllowed()
        payload = parse_login_payload(body)

        if isinstance(payload, EncryptedLoginPayload):
            email, password = decrypt_login_fields(payload.email, payload.password)
        else:
            if not settings.plaintext_login_allowed:
                raise MalformedInput("Os dados de login devem ser enviados criptografados", code="ENCRYPTION_REQUIRED")
            email, password = payload.email, payload.password
        self._advance(LoginState.DECRYPTED)

        if not email or not password:
            raise MalformedInput(MISSING_CREDENTIALS_MESSAGE)

        account = self.store.get_active_by_email(email)
        if account is None:
            verify_password(password, DUMMY_HASH)  # [C1] equalize timing
            audit.info("login_failed email=%s reason=unknown_or_inactive", mask_email(email))
            raise InvalidCredentials()
        if not verify_password(password, account.password_hash):
            audit.info("login_failed email=%s reason=bad_password", mask_email(email))
            raise InvalidCredentials()
        self._advance(LoginState.CREDENTIAL_CHECKED)

        remember_me = bool(payload.remember_me)
        session = settings.session_seconds(remember_me)
        tokens = issue_token_pair(
            account,
            access_seconds=min(settings.access_token_seconds, session),
            refresh_seconds=min(settings.refresh_token_seconds, session),
        )
        self._advance(LoginState.TOKEN_ISSUED)

        self.store.update_last_login(account.id)
        audit.info("login_succeeded account=%s role=%s", account.id, tokens.role)
        return LoginResult(account=account, tokens=tokens, remember_me=remember_me)

    def complete(self, response: Response, result: LoginResult) -> Response:
        """Attach the session cookies to the outgoing response (COOKIE_SET -> RESPONDED)."""
        if self.state is not LoginState.TOKEN_ISSUED:
            raise RuntimeError(f"complete() called in state {self.state.value}")
        set_auth_cookies(
            response,
            result.tokens.access_token,
            result.tokens.refresh_token,
            access_max_age=result.tokens.access_expires_in,
            refresh_max_age=result.tokens.refresh_expires_in,
        )
        self._advance(LoginState.COOKIE_SET)
        response.headers["Cache-Control"] = "no-store"  # [M5]
        self._advance(LoginState.RESPONDED)
        return response
