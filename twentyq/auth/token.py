"""
Oracle capability tokens.

Each session mints one HS256 JWT at creation:
    iss = session id, sub = "oracle", exp = now + ttl

The signing key is random per session and never leaves the process, so
a key leaked from one session grants nothing in another.
"""

from __future__ import annotations
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from jose import JWTError, jwt

from ..observability.logging import get_logger

logger = get_logger(__name__)

ORACLE_SUBJECT = "oracle"
ALGORITHM = "HS256"
KEY_BYTES = 32
DEFAULT_TOKEN_TTL = timedelta(hours=24)


class Role(Enum):
    """Resolved authorization outcome for one request."""
    ORACLE = "oracle"
    GUESSER = "guesser"

    @property
    def is_oracle(self) -> bool:
        return self is Role.ORACLE


@dataclass(frozen=True)
class CapabilityToken:
    """A minted oracle token together with the key that verifies it."""
    token: str
    key: bytes
    expires_at: datetime

    def __repr__(self) -> str:
        return f"CapabilityToken(expires_at={self.expires_at.isoformat()})"


def issue_oracle_token(
    session_id: str,
    ttl: timedelta = DEFAULT_TOKEN_TTL,
    now: datetime | None = None,
) -> CapabilityToken:
    """
    Mint a fresh oracle token for session_id.

    A new random signing key is generated on every call.
    """
    key = secrets.token_bytes(KEY_BYTES)
    issued_at = now or datetime.now(timezone.utc)
    expires_at = issued_at + ttl
    claims = {
        "iss": session_id,
        "sub": ORACLE_SUBJECT,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(claims, key, algorithm=ALGORITHM)
    return CapabilityToken(token=token, key=key, expires_at=expires_at)


def verify_oracle_token(token: str | None, key: bytes, session_id: str) -> bool:
    """
    Check that token proves the oracle role for session_id.

    Returns False for a missing token, a bad signature, an expired token,
    a wrong issuer or subject, or anything that does not parse. Never
    raises; callers treat every failure the same way.
    """
    if not token:
        logger.debug("oracle_check_failed", session_id=session_id, reason="missing")
        return False

    try:
        claims = jwt.decode(
            token,
            key,
            algorithms=[ALGORITHM],
            issuer=session_id,
            subject=ORACLE_SUBJECT,
            options={"require_exp": True, "require_iss": True, "require_sub": True},
        )
    except JWTError as e:
        logger.debug("oracle_check_failed", session_id=session_id, reason=type(e).__name__)
        return False
    except (ValueError, TypeError, AttributeError) as e:
        logger.debug("oracle_check_failed", session_id=session_id, reason=type(e).__name__)
        return False

    if claims.get("iss") != session_id or claims.get("sub") != ORACLE_SUBJECT:
        logger.debug("oracle_check_failed", session_id=session_id, reason="claims")
        return False

    return True


def resolve_role(token: str | None, capability: CapabilityToken, session_id: str) -> Role:
    """Turn an optional request credential into a Role."""
    if verify_oracle_token(token, capability.key, session_id):
        return Role.ORACLE
    return Role.GUESSER
