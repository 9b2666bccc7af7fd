"""
web/guards.py -- Server-side access decisions for the SPA entry pages.

The browser app guards its own routes; these guards make the same decision
before the shell is even served, so a logged-out visitor never downloads an
admin page.

    required_role=None          any authenticated identity
    required_role=SUPER_ADMIN   others are sent to /admin
    required_role=ADMIN         a super admin is sent to /super-admin
    no identity                 /login?next=<path>

resolve_page_access() is pure: no request, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from auth.models import Identity
from auth.roles import Role, parse_role


@dataclass(frozen=True)
class PageDecision:
    allowed: bool
    redirect_to: Optional[str] = None


ALLOW = PageDecision(allowed=True)


def safe_next(next_url: Optional[str]) -> Optional[str]:
    """Accept only server-local paths as a post-login target. [C2]

    "/admin" passes; "https://evil", "//evil" and "/\\evil" do not.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith(("//", "/\\")):
        return next_url
    return None


def login_redirect(path: str) -> str:
    target = safe_next(path)
    if target is None or target == "/":
        return "/login"
    return f"/login?next={quote(target, safe='/')}"


def resolve_page_access(identity: Optional[Identity], required_role: Optional[Role], path: str = "/") -> PageDecision:
    if identity is None:
        return PageDecision(allowed=False, redirect_to=login_redirect(path))
    if required_role is None:
        return ALLOW

    role = parse_role(identity.role)
    if required_role is Role.SUPER_ADMIN and role is not Role.SUPER_ADMIN:
        return PageDecision(allowed=False, redirect_to="/admin")
    if required_role is Role.ADMIN and role is Role.SUPER_ADMIN:
        return PageDecision(allowed=False, redirect_to="/super-admin")
    return ALLOW
