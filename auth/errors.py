"""
auth/errors.py -- Error taxonomy for the authentication subsystem.

Every failure an auth component can surface to a caller is an AuthError
subclass carrying a machine-readable code, an HTTP status and a user-facing
message (Portuguese, the product's language). The API layer converts these
into the standard error envelope in one exception handler, so components
raise and never build responses themselves.

clears_session marks errors whose response must also delete the auth cookies
(a presented token turned out to be bad).

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from typing import Any, Optional


class AuthError(Exception):
    """Base class for all errors surfaced by auth/ to the HTTP layer."""

    code: str = "AUTH_ERROR"
    status_code: int = 400
    message: str = "Erro de autenticação"
    clears_session: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        self.errors = errors
        super().__init__(self.message)


class MalformedInput(AuthError):
    code = "INVALID_DATA"
    status_code = 400
    message = "Dados inválidos"


class DecryptionFailure(AuthError):
    code = "DECRYPTION_FAILED"
    status_code = 400
    message = "Falha na descriptografia dos dados"


class InvalidCredentials(AuthError):
    """Same message for unknown email and wrong password (no user enumeration)."""

    code = "INVALID_CREDENTIALS"
    status_code = 401
    message = "Credenciais inválidas. Verifique seu e-mail e senha."


class NoToken(AuthError):
    code = "NO_TOKEN"
    status_code = 401
    message = "Token de acesso não encontrado"


class InvalidToken(AuthError):
    code = "INVALID_TOKEN"
    status_code = 401
    message = "Token inválido ou expirado"
    clears_session = True


class ExpiredToken(InvalidToken):
    # Same wire code as InvalidToken; callers that care catch the subclass.
    message = "Token expirado"


class InsufficientPermissions(AuthError):
    code = "INSUFFICIENT_PERMISSIONS"
    status_code = 403
    message = "Acesso negado para este recurso"


class MethodNotAllowed(AuthError):
    code = "METHOD_NOT_ALLOWED"
    status_code = 405
    message = "Método não permitido"


class Conflict(AuthError):
    code = "CONFLICT"
    status_code = 409
    message = "Este e-mail já está cadastrado. Tente fazer login ou use outro e-mail."


class InternalError(AuthError):
    code = "INTERNAL_ERROR"
    status_code = 500
    message = "Erro interno do servidor"


class NotFound(AuthError):
    code = "NOT_FOUND"
    status_code = 404
    message = "Recurso não encontrado"
