"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session lives in the "access_token" cookie set by the login flow. An
Authorization: Bearer header is accepted as a fallback for non-browser API
clients; the cookie wins when both are present.

get_current_identity() verifies the token, attaches the Identity to
request.state.identity and returns it. Failures raise AuthError subclasses:
  no token                -> NoToken (401, NO_TOKEN)
  bad / expired token     -> InvalidToken (401, INVALID_TOKEN); the API
                             exception handler also clears both auth cookies
try_get_identity() is the soft variant (returns None on failure) used by the
web page guards.

require_roles(...) builds a role gate on top of get_current_identity():
  role not in allow-list  -> InsufficientPermissions (403)

Layer rule: no imports from web/ or api/.
  auth/dependencies.py may import from fastapi (for Depends/Request) because
  this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.cookies import ACCESS_COOKIE
from auth.errors import AuthError, InsufficientPermissions, NoToken
from auth.models import Identity
from auth.roles import Role
from auth.tokens import identity_from_claims, verify_access_token


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:] or None
    return None


def get_current_identity(request: Request) -> Identity:
    """Require a valid access token. Use as a FastAPI dependency:

        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    token = _extract_token(request)
    if token is None:
        raise NoToken()
    identity = identity_from_claims(verify_access_token(token))
    request.state.identity = identity
    return identity


def try_get_identity(request: Request) -> Identity | None:
    """Return the Identity for a valid access token, None otherwise. Never raises."""
    try:
        return get_current_identity(request)
    except AuthError:
        return None


def require_roles(*allowed: Role) -> Callable[..., Identity]:
    """Build a dependency that admits only identities whose role is in `allowed`.

        require_super_admin = require_roles(Role.SUPER_ADMIN)

        @router.get("/admin-only")
        def route(identity: Identity = Depends(require_super_admin)): ...
    """
    allowed_values = frozenset(role.value for role in allowed)

    def _gate(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed_values:
            raise InsufficientPermissions()
        return identity

    return _gate


require_super_admin = require_roles(Role.SUPER_ADMIN)
require_company_admin = require_roles(Role.ADMIN)
require_any_admin = require_roles(Role.SUPER_ADMIN, Role.ADMIN)
