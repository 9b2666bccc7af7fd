"""
core/redaction.py -- Keep credentials out of log output.

RedactingFilter is attached to the root handlers in api/main.py. It rewrites
"password=...", "password: ..." and "email=..." style fragments in every
formatted log message, so a stray debug line cannot leak a credential even
after the transport layer has decrypted it.

mask_email() is for deliberate audit lines that need to say *which* account
without printing the full address.
"""

import logging
import re

_SENSITIVE_RE = re.compile(
    r"""(?P<key>["']?(?P<name>password|senha|email)["']?\s*[:=]\s*)(?P<value>"[^"]*"|'[^']*'|[^,}\s]+)""",
    re.IGNORECASE,
)


def _mask(match: re.Match) -> str:
    # Emails already passed through mask_email() are kept; audit lines need them.
    if match.group("name").lower() == "email" and "***@" in match.group("value"):
        return match.group(0)
    return f'{match.group("key")}"***"'


def redact(message: str) -> str:
    return _SENSITIVE_RE.sub(_mask, message)


def mask_email(email: str | None) -> str:
    """Return "ad***@salon.com" style masking; "***" for anything unparseable."""
    if not email or "@" not in email:
        return "***"
    local, _, domain = email.partition("@")
    return f"{local[:2]}***@{domain}"


class RedactingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True
