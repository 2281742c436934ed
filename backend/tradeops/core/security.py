"""Bearer token handling.

The desk's identity provider signs HS256 tokens with the shared
``SECRET_KEY``; the subject is the user's email. This service only verifies
them. Minting lives here too so ``scripts/seed_users.py`` and the tests can
produce tokens the API accepts.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from tradeops.config import settings

TOKEN_TYPE = "access"


def normalize_subject(subject: str) -> str:
    """Emails are matched case-insensitively against ``users.email``."""
    return str(subject or "").strip().lower()


def create_access_token_for_subject(
    subject: str,
    expires_minutes: Optional[int] = None,
    *,
    extra_claims: Optional[dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.access_token_expire_minutes)
    claims: dict[str, Any] = dict(extra_claims or {})
    claims.update(
        sub=normalize_subject(subject),
        typ=TOKEN_TYPE,
        iat=int(issued_at.timestamp()),
        exp=int((issued_at + lifetime).timestamp()),
    )
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[dict[str, Any]]:
    """Verified claims, or None for a bad signature, expiry or wrong token type."""
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    # Provider tokens may omit ``typ``; only reject an explicit mismatch.
    if claims.get("typ", TOKEN_TYPE) != TOKEN_TYPE:
        return None
    return claims


def decode_access_token_subject(token: str) -> Optional[str]:
    claims = decode_access_token(token)
    if not claims:
        return None
    subject = normalize_subject(claims.get("sub") or "")
    return subject or None
