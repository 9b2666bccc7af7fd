"""
auth/roles.py -- Role derivation for accounts.

derive_role() is the ONE place that turns stored account fields into an
effective role. It runs once, at token issuance; the result is embedded in
the JWT and every later check reads the claim. Do not compare emails against
the super-admin address anywhere else.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from enum import Enum

from auth.models import Account


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    USER = "user"  # authenticated, no recognized admin tier


_USER_TYPE_LABELS = {
    Role.SUPER_ADMIN: "Super Admin",
    Role.ADMIN: "Admin da Empresa",
    Role.USER: "Usuário",
}

_HOME_PATHS = {
    Role.SUPER_ADMIN: "/super-admin",
    Role.ADMIN: "/admin",
    Role.USER: "/dashboard",
}


def parse_role(value: str | None) -> Role | None:
    """Return the Role for a stored/claimed value, or None if unrecognized."""
    if not value:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


def derive_role(account: Account, super_admin_email: str) -> Role:
    """Resolve the effective role of an account.

    Precedence:
      1. An explicitly stored, recognized role.
      2. Legacy marker: service_type == "super_admin".
      3. The configured platform-owner email (exact match).
      4. Role.USER.
    """
    stored = parse_role(account.role)
    if stored is not None:
        return stored
    if account.service_type == Role.SUPER_ADMIN.value:
        return Role.SUPER_ADMIN
    if super_admin_email and account.email == super_admin_email:
        return Role.SUPER_ADMIN
    return Role.USER


def user_type_label(role: Role | str) -> str:
    parsed = parse_role(role.value if isinstance(role, Role) else role)
    return _USER_TYPE_LABELS[parsed or Role.USER]


def home_path(role: Role | str) -> str:
    """Landing page for a role after login."""
    parsed = parse_role(role.value if isinstance(role, Role) else role)
    return _HOME_PATHS[parsed or Role.USER]
