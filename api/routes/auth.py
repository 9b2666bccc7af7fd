"""
api/routes/auth.py -- Authentication and account management REST endpoints.

Routes:
  POST  /api/auth/login                -- login flow; sets access/refresh cookies
  POST  /api/auth/logout               -- clears both cookies; 200
  POST  /api/auth/refresh              -- refresh cookie -> new access cookie
  GET   /api/auth/user                 -- identity from the access cookie
  POST  /api/auth/register             -- client company sign-up
  POST  /api/auth/change-password      -- authenticated password change
  GET   /api/auth/accounts             -- list accounts (super_admin)
  PATCH /api/auth/accounts/{id}        -- activate/deactivate, set role (super_admin)

Security:
  [H2] POST /login is rate-limited per IP (Settings.login_rate_limit).
  [C1] Credential checks go through LoginFlow, which equalizes timing. Do NOT
       inline get_active_by_email() + verify_password() in a route.
  [M5] Cache-Control: no-store on login and refresh responses.
  Role checks use the role claim from the token (auth.dependencies); routes
  never look at the account's email to decide permissions.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter, login_rate_limit
from api.models import (
    AccountPatch,
    AccountResponse,
    ChangePasswordRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    SessionUser,
    session_user_for,
)
from auth.cookies import ACCESS_COOKIE, REFRESH_COOKIE, clear_auth_cookies, set_secure_cookie
from auth.dependencies import get_current_identity, require_super_admin
from auth.errors import Conflict, InvalidToken, MalformedInput, NoToken, NotFound
from auth.login import LoginFlow
from auth.models import Account, Identity
from auth.passwords import hash_password, verify_password
from auth.roles import Role
from auth.store import AccountRepository, DuplicateEmail
from auth.tokens import identity_from_claims, refresh_access_token
from core.config import get_settings
from core.redaction import mask_email

audit = logging.getLogger("semprecheio.audit")

# Auth policy:
# - POST  /api/auth/login, /logout, /refresh, /register: public
# - GET   /api/auth/user, POST /api/auth/change-password: get_current_identity
# - GET   /api/auth/accounts, PATCH /api/auth/accounts/{id}: require_super_admin
router = APIRouter()


def _store(request: Request) -> AccountRepository:
    return request.app.state.account_store


# ---------------------------------------------------------------------------
# Session endpoints
# ---------------------------------------------------------------------------


@limiter.limit(login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.api_route(
    "/auth/login",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    response_model=LoginResponse,
)
async def login(request: Request) -> JSONResponse:
    """Authenticate with email and password (plain or encrypted); set session cookies.

    Registered for every method so the login flow itself answers non-POST
    requests with 405, like the rest of its rejections. The body is parsed by
    hand: an unparseable body is the flow's MalformedInput (400), not a
    framework 422.
    """
    body = None
    if request.method == "POST":
        try:
            body = json.loads(await request.body() or b"null")
        except ValueError:
            body = None

    flow = LoginFlow(_store(request))
    result = await run_in_threadpool(flow.authenticate, request.method, body)

    user = session_user_for(result.tokens.role, result.account)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            message=f"Login realizado com sucesso! Bem-vindo, {result.tokens.user_type}.",
            user=user,
        ).model_dump(by_alias=True),
    )
    return flow.complete(resp, result)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Clear both session cookies. Tokens already issued stay valid until exp."""
    resp = JSONResponse(content=MessageResponse(message="Logout realizado com sucesso").model_dump())
    clear_auth_cookies(resp)
    audit.info("logout client=%s", request.client.host if request.client else "unknown")
    return resp


@router.post("/auth/refresh", response_model=LoginResponse)
def refresh(request: Request) -> JSONResponse:
    """Mint a new access token from the refresh_token cookie.

    Only the access cookie is rewritten; the refresh token keeps its original
    expiry, so a session cannot be extended past it without logging in again.
    """
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise NoToken("Refresh token não encontrado", code="NO_REFRESH_TOKEN")
    try:
        access_token, claims = refresh_access_token(token)
    except InvalidToken as exc:
        raise InvalidToken("Refresh token inválido", code="INVALID_REFRESH_TOKEN") from exc

    identity = identity_from_claims(claims)
    account = _store(request).get_by_id(identity.id)
    resp = JSONResponse(
        content=LoginResponse(
            message="Token renovado com sucesso",
            user=SessionUser.build(identity, account),
        ).model_dump(by_alias=True),
    )
    set_secure_cookie(resp, ACCESS_COOKIE, access_token, get_settings().access_token_seconds)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.get("/auth/user", response_model=SessionUser)
def current_user(request: Request, identity: Identity = Depends(get_current_identity)) -> SessionUser:
    """Return the identity carried by the access cookie.

    role and userType are the token's claims. name/serviceType are looked up
    for display only.
    """
    return SessionUser.build(identity, _store(request).get_by_id(identity.id))


# ---------------------------------------------------------------------------
# Registration and password change
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create a client company account. The new account is a company admin."""
    store = _store(request)
    if store.get_by_email(body.email) is not None:
        raise Conflict()

    account = Account(
        name=body.name,
        email=body.email,
        phone=body.phone,
        service_type=body.final_service_type,
        password_hash=hash_password(body.password),
        role=Role.ADMIN.value,
        is_active=True,
    )
    try:
        account_id = store.create_account(account)
    except DuplicateEmail as exc:
        # Lost a race with a concurrent registration for the same email.
        raise Conflict() from exc

    created = store.get_by_id(account_id)
    audit.info("account_registered account=%s email=%s", account_id, mask_email(body.email))
    return RegisterResponse(
        message="Empresa cadastrada com sucesso! Você pode fazer login agora.",
        client=AccountResponse.from_account(created),
    )


@router.post("/auth/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    identity: Identity = Depends(get_current_identity),
) -> MessageResponse:
    store = _store(request)
    account = store.get_by_id(identity.id)
    if account is None or not account.is_active:
        raise InvalidToken()
    if not verify_password(body.current_password, account.password_hash):
        raise MalformedInput("Senha atual incorreta", code="INVALID_CURRENT_PASSWORD")
    store.update_account(account.id, password_hash=hash_password(body.new_password))
    audit.info("password_changed account=%s", account.id)
    return MessageResponse(message="Senha alterada com sucesso")


# ---------------------------------------------------------------------------
# Account management (super_admin only)
# ---------------------------------------------------------------------------


@router.get("/auth/accounts", response_model=list[AccountResponse])
def list_accounts(
    request: Request,
    identity: Identity = Depends(require_super_admin),
) -> list[AccountResponse]:
    return [AccountResponse.from_account(a) for a in _store(request).list_accounts()]


@router.patch("/auth/accounts/{account_id}", response_model=AccountResponse)
def update_account(
    request: Request,
    account_id: str,
    body: AccountPatch,
    identity: Identity = Depends(require_super_admin),
) -> AccountResponse:
    """Activate/deactivate an account or change its stored role.

    A role change takes effect at the account's next login; tokens already
    issued keep the role they were signed with.
    """
    store = _store(request)
    target = store.get_by_id(account_id)
    if target is None:
        raise NotFound("Conta não encontrada")

    updates: dict = {}
    if body.role is not None:
        updates["role"] = body.role.value
    if body.is_active is not None:
        if not body.is_active and target.id == identity.id:
            raise MalformedInput("Você não pode desativar sua própria conta", code="SELF_DEACTIVATION")
        updates["is_active"] = body.is_active
    if not updates:
        raise MalformedInput("Nenhum campo para atualizar", code="NO_CHANGES")

    store.update_account(account_id, **updates)
    audit.info("account_updated account=%s by=%s fields=%s", account_id, identity.id, sorted(updates))
    return AccountResponse.from_account(store.get_by_id(account_id))
