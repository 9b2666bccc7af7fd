"""
auth/cookies.py -- Writing and clearing the session cookies.

Two cookies carry the session:
  access_token   short-lived JWT read by the authorization middleware
  refresh_token  longer-lived JWT read only by POST /api/auth/refresh

Both are written with the same attributes:
  httponly=True   JS cannot read them (XSS mitigation).
  samesite        "strict" by default (Settings.cookie_samesite); the cookies
                  are never sent on cross-site requests.
  secure          only over HTTPS in the production profile.
  path="/"        available to every API route and page.
  domain          Settings.cookie_domain in production, host-only otherwise.

Clearing must repeat path/domain exactly or the browser keeps the original
cookie.
"""

from __future__ import annotations

from starlette.responses import Response

from core.config import get_settings

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def _cookie_attrs() -> dict:
    settings = get_settings()
    return {
        "httponly": True,
        "secure": settings.secure_cookies,
        "samesite": settings.cookie_samesite,
        "path": "/",
        "domain": settings.cookie_domain_or_none,
    }


def set_secure_cookie(response: Response, name: str, value: str, max_age: int) -> None:
    response.set_cookie(name, value=value, max_age=max_age, **_cookie_attrs())


def set_auth_cookies(
    response: Response,
    access_token: str,
    refresh_token: str,
    access_max_age: int,
    refresh_max_age: int,
) -> None:
    """Write both session cookies. max_age values should match the token lifetimes."""
    set_secure_cookie(response, ACCESS_COOKIE, access_token, access_max_age)
    set_secure_cookie(response, REFRESH_COOKIE, refresh_token, refresh_max_age)


def clear_auth_cookies(response: Response) -> None:
    attrs = _cookie_attrs()
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, **attrs)
