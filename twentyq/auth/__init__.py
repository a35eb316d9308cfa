"""
Auth Module - Per-session oracle capability.

Privilege is bound to one session through a signed, expiring token
that the oracle's browser carries in a cookie named after the session.
"""

from .token import (
    CapabilityToken,
    Role,
    issue_oracle_token,
    resolve_role,
    verify_oracle_token,
)

__all__ = [
    "CapabilityToken",
    "Role",
    "issue_oracle_token",
    "resolve_role",
    "verify_oracle_token",
]
