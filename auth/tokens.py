"""
auth/tokens.py -- JWT access/refresh token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256, signed with Settings.jwt_secret. Every token
       carries sub (account id), email, role, userType, iat and exp, plus the
       registered iss/aud claims.

  Token kinds are separated by audience, not by a payload flag:
       access  -> aud "semprecheioapp-users"
       refresh -> aud "semprecheioapp-refresh"
       Verification pins exactly one audience, so a refresh token presented
       as an access token (or the reverse) fails signature-level validation.

  Asymmetric trust: refresh_access_token() turns a refresh token into a new
       access token only. There is no path that mints a refresh token from
       anything but a fresh login.

  Role: derive_role() runs once, in issue_token_pair(). The claim is then
       trusted for the token's lifetime.

  Stateless: nothing is stored server-side. Logout clears cookies; a stolen
       token stays valid until exp (no revocation list).

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import ExpiredToken, InvalidToken
from auth.models import Account, Identity, TokenPair
from auth.roles import derive_role, parse_role, user_type_label
from core.config import get_settings

logger = logging.getLogger("semprecheio.auth")

ALGORITHM = "HS256"
ISSUER = "semprecheioapp"
ACCESS_AUDIENCE = "semprecheioapp-users"
REFRESH_AUDIENCE = "semprecheioapp-refresh"

_REQUIRED_CLAIMS = ("sub", "email", "role")


# ---------------------------------------------------------------------------
# Claims
# ---------------------------------------------------------------------------


def claims_for(account: Account) -> dict:
    """Build the identity claims for an account. Role is derived here, once."""
    role = derive_role(account, get_settings().super_admin_email)
    return {
        "sub": str(account.id),
        "email": account.email,
        "role": role.value,
        "userType": user_type_label(role),
    }


def identity_from_claims(payload: dict) -> Identity:
    return Identity(
        id=payload["sub"],
        email=payload["email"],
        role=payload["role"],
        user_type=payload.get("userType") or user_type_label(payload["role"]),
    )


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------


def _encode(claims: dict, audience: str, duration: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": claims["sub"],
        "email": claims["email"],
        "role": claims["role"],
        "userType": claims.get("userType") or user_type_label(claims["role"]),
        "iss": ISSUER,
        "aud": audience,
        "iat": now,
        "exp": now + timedelta(seconds=duration),
    }
    return jwt.encode(payload, get_settings().jwt_secret, algorithm=ALGORITHM)


def create_access_token(claims: dict, expire_seconds: int = 0) -> str:
    """Encode a signed access token.

    Args:
        claims:         Identity claims (sub, email, role, userType).
        expire_seconds: Lifetime in seconds. If 0 (default), uses
                        Settings.access_token_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else get_settings().access_token_seconds
    return _encode(claims, ACCESS_AUDIENCE, duration)


def create_refresh_token(claims: dict, expire_seconds: int = 0) -> str:
    """Encode a signed refresh token. Same claims, refresh audience, longer default lifetime."""
    duration = expire_seconds if expire_seconds > 0 else get_settings().refresh_token_seconds
    return _encode(claims, REFRESH_AUDIENCE, duration)


def issue_token_pair(account: Account, access_seconds: int = 0, refresh_seconds: int = 0) -> TokenPair:
    """Sign an access + refresh token pair for a freshly authenticated account."""
    settings = get_settings()
    access_seconds = access_seconds if access_seconds > 0 else settings.access_token_seconds
    refresh_seconds = refresh_seconds if refresh_seconds > 0 else settings.refresh_token_seconds
    claims = claims_for(account)
    return TokenPair(
        access_token=create_access_token(claims, access_seconds),
        refresh_token=create_refresh_token(claims, refresh_seconds),
        access_expires_in=access_seconds,
        refresh_expires_in=refresh_seconds,
        role=claims["role"],
        user_type=claims["userType"],
    )


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


def _decode(token: str, audience: str) -> dict:
    try:
        payload = jwt.decode(
            token,
            get_settings().jwt_secret,
            algorithms=[ALGORITHM],
            audience=audience,
            issuer=ISSUER,
        )
    except ExpiredSignatureError as exc:
        raise ExpiredToken() from exc
    except JWTError as exc:
        logger.debug("JWT verification failed: %s", exc)
        raise InvalidToken() from exc
    if any(not payload.get(claim) for claim in _REQUIRED_CLAIMS):
        raise InvalidToken()
    if parse_role(payload["role"]) is None:
        raise InvalidToken()
    return payload


def verify_access_token(token: str) -> dict:
    """Verify an access token and return its payload.

    Raises ExpiredToken past exp, InvalidToken on any other failure (bad
    signature, wrong issuer, refresh audience, missing claims).
    """
    return _decode(token, ACCESS_AUDIENCE)


def verify_refresh_token(token: str) -> dict:
    """Verify a refresh token. An access token is rejected here (wrong audience)."""
    return _decode(token, REFRESH_AUDIENCE)


def refresh_access_token(refresh_token: str) -> tuple[str, dict]:
    """Mint a new access token from a valid refresh token.

    Returns (access_token, claims). The identity claims are copied verbatim;
    the role is not re-derived.
    """
    payload = verify_refresh_token(refresh_token)
    claims = {key: payload[key] for key in ("sub", "email", "role")}
    claims["userType"] = payload.get("userType") or user_type_label(payload["role"])
    return create_access_token(claims), claims
