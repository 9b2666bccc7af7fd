"""
web/routes.py -- Jinja2 routes serving the SPA shell behind server-side guards.

The frontend bundle renders the actual pages; these routes decide whether the
shell is served at all (web.guards) and where a visitor is sent otherwise.
They read the same access_token cookie as the API and never touch the store.

Routes:
  GET  /                -- redirect to the role home, or /login
  GET  /login           -- login shell; authenticated visitors go home
  GET  /dashboard       -- any authenticated role
  GET  /admin           -- company admin area (super admins go to /super-admin)
  GET  /super-admin     -- platform owner area (others go to /admin)
  GET  /acesso-negado   -- static "access denied" page
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import try_get_identity
from auth.roles import Role, home_path
from web.guards import resolve_page_access, safe_next

logger = logging.getLogger("semprecheio.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()


def _guarded_page(request: Request, page: str, title: str, required_role: Optional[Role]):
    identity = try_get_identity(request)
    decision = resolve_page_access(identity, required_role, request.url.path)
    if not decision.allowed:
        logger.debug("page guard redirect %s -> %s", request.url.path, decision.redirect_to)
        return RedirectResponse(decision.redirect_to, status_code=302)
    return templates.TemplateResponse(
        request,
        "app.html",
        {"page": page, "title": title, "identity": identity},
    )


@router.get("/", response_class=HTMLResponse)
def index(request: Request):
    identity = try_get_identity(request)
    if identity is None:
        return RedirectResponse("/login", status_code=302)
    return RedirectResponse(home_path(identity.role), status_code=302)


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, next: Optional[str] = None):
    identity = try_get_identity(request)
    if identity is not None:
        return RedirectResponse(safe_next(next) or home_path(identity.role), status_code=302)
    return templates.TemplateResponse(
        request,
        "app.html",
        {"page": "login", "title": "Entrar", "identity": None, "next": safe_next(next)},
    )


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard_page(request: Request):
    return _guarded_page(request, "dashboard", "Painel", None)


@router.get("/admin", response_class=HTMLResponse)
def admin_page(request: Request):
    return _guarded_page(request, "admin", "Administração", Role.ADMIN)


@router.get("/super-admin", response_class=HTMLResponse)
def super_admin_page(request: Request):
    return _guarded_page(request, "super-admin", "Super Admin", Role.SUPER_ADMIN)


@router.get("/acesso-negado", response_class=HTMLResponse)
def access_denied_page(request: Request):
    return templates.TemplateResponse(request, "acesso_negado.html", {"title": "Acesso negado"}, status_code=403)
