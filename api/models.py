"""
API request and response models for SempreCheio REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Field names follow the frontend's camelCase (serviceType, rememberMe, ...) via
aliases; Python attributes stay snake_case. Responses are dumped with
by_alias=True.

The login body is NOT modelled here: its tagged payload types live in
auth/login.py because the login flow validates them itself (so that bad input
maps to the flow's 400 instead of FastAPI's generic validation error).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from auth.models import Account, Identity
from auth.roles import Role, home_path, user_type_label


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    message: str
    code: str
    errors: Optional[dict] = None


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    environment: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Account views
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    """Sanitized account: never carries the password hash."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    name: str
    email: str
    role: Optional[str] = None
    service_type: Optional[str] = Field(default=None, alias="serviceType")
    phone: Optional[str] = None
    is_active: bool = Field(alias="isActive")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    last_login: Optional[str] = Field(default=None, alias="lastLogin")

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            role=account.role,
            service_type=account.service_type,
            phone=account.phone,
            is_active=account.is_active,
            created_at=account.created_at,
            last_login=account.last_login,
        )


class SessionUser(BaseModel):
    """The user object returned by login, refresh and GET /api/auth/user.

    role/userType always come from token claims. name/serviceType come from
    the account record and are None when it is gone.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    name: Optional[str] = None
    email: str
    role: str
    service_type: Optional[str] = Field(default=None, alias="serviceType")
    user_type: str = Field(alias="userType")
    redirect_path: str = Field(alias="redirectPath")

    @classmethod
    def build(cls, identity: Identity, account: Optional[Account] = None) -> "SessionUser":
        return cls(
            id=identity.id,
            name=account.name if account else None,
            email=identity.email,
            role=identity.role,
            service_type=account.service_type if account else None,
            user_type=identity.user_type,
            redirect_path=home_path(identity.role),
        )


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str
    user: SessionUser


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Body for POST /api/auth/register -- a client company signing up.

    serviceType "outro" means "other": customServiceType then carries the
    real category and is required.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=2, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str = Field(min_length=10, max_length=20)
    service_type: str = Field(min_length=1, max_length=50, alias="serviceType")
    custom_service_type: Optional[str] = Field(default=None, max_length=50, alias="customServiceType")
    password: str = Field(min_length=6, max_length=255)
    confirm_password: str = Field(min_length=6, max_length=255, alias="confirmPassword")

    @model_validator(mode="after")
    def check_consistency(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Senhas não coincidem")
        if self.service_type == "outro" and not self.custom_service_type:
            raise ValueError("Informe o tipo de serviço")
        return self

    @property
    def final_service_type(self) -> str:
        if self.service_type == "outro" and self.custom_service_type:
            return self.custom_service_type
        return self.service_type


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str
    client: AccountResponse


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(min_length=1, max_length=255, alias="currentPassword")
    new_password: str = Field(min_length=6, max_length=255, alias="newPassword")


class AccountPatch(BaseModel):
    """Body for PATCH /api/auth/accounts/{id}. At least one field is required."""

    model_config = ConfigDict(populate_by_name=True)

    is_active: Optional[bool] = Field(default=None, alias="isActive")
    role: Optional[Role] = None


def session_user_for(role: str, account: Account) -> SessionUser:
    """SessionUser for a just-authenticated account, from the issued role claim."""
    return SessionUser.build(
        Identity(id=str(account.id), email=account.email, role=role, user_type=user_type_label(role)),
        account,
    )
