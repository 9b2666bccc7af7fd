"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; stores, the token issuer and routes do the work.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Account:
    """An authenticatable entity: a client company or an administrative user.

    email is the login key. Lookups are exact (case-sensitive) to match the
    datastore's UNIQUE constraint; callers normalize nothing.

    role is the explicitly stored role, or None when the record predates roles
    (legacy client rows). auth.roles.derive_role() turns the stored fields
    into the effective Role at login time.

    service_type is the business category chosen at registration ("salão",
    "clínica", ...). Legacy data marks the platform owner with the value
    "super_admin" here instead of in role.

    Accounts are never hard-deleted in normal flow -- is_active=False disables
    login.
    """

    email: str
    name: str
    id: str | None = None
    password_hash: str | None = None
    role: str | None = None
    service_type: str | None = None
    phone: str | None = None
    is_active: bool = True
    created_at: str | None = None
    last_login: str | None = None


@dataclass(frozen=True)
class Identity:
    """The decoded view of a verified access token, attached to the request.

    Built only from token claims. Downstream code trusts role as-is and never
    re-derives it from the account.
    """

    id: str
    email: str
    role: str
    user_type: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_in: int
    refresh_expires_in: int
    role: str
    user_type: str
