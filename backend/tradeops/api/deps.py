import hmac
from typing import Any, Callable, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from tradeops.config import settings
from tradeops.core.security import decode_access_token_subject
from tradeops.database import get_db
from tradeops.models import ApproverRole, RoleName, User

bearer_scheme = HTTPBearer(auto_error=False)

_DB_DEP = Depends(get_db)
_BEARER_DEP = Depends(bearer_scheme)

# Which user role may sign off as which approver.
APPROVER_ROLE_BY_USER_ROLE = {
    RoleName.hedging.value: ApproverRole.hedging,
    RoleName.cfo.value: ApproverRole.cfo,
    RoleName.management.value: ApproverRole.management,
    RoleName.operations.value: ApproverRole.operations,
}


def _extract_bearer_from_headers(request: Request) -> Optional[str]:
    raw = request.headers.get("authorization") or request.headers.get("x-authorization")
    if not raw:
        return None
    s = str(raw).strip()
    if not s:
        return None
    if s.lower().startswith("bearer "):
        return s.split(" ", 1)[1].strip()
    return s


def get_current_user(
    request: Request,
    db: Session = _DB_DEP,
    credentials: Optional[HTTPAuthorizationCredentials] = _BEARER_DEP,
) -> User:
    token = credentials.credentials if credentials else _extract_bearer_from_headers(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    subject = decode_access_token_subject(token)
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    user = (
        db.query(User)
        .filter(User.email == subject, User.active.is_(True))
        .first()
    )
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


def user_role_value(user: User) -> str:
    role_name = getattr(getattr(user, "role", None), "name", None)
    # user.role.name is an Enum in our models; normalize to string.
    if isinstance(role_name, RoleName):
        return role_name.value
    return str(role_name) if role_name is not None else ""


def require_roles(*roles: RoleName) -> Callable:
    _CURRENT_USER_DEP = Depends(get_current_user)

    def dependency(user: User = _CURRENT_USER_DEP) -> User:
        if roles:
            role_value = user_role_value(user)

            # Admin has access to everything
            if role_value == RoleName.admin.value:
                return user

            allowed = {r.value if isinstance(r, RoleName) else str(r) for r in roles}
            if role_value not in allowed:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role"
                )
        return user

    return dependency


def ensure_can_decide_as(user: User, approver_role: ApproverRole) -> None:
    role_value = user_role_value(user)
    if role_value == RoleName.admin.value:
        return
    if APPROVER_ROLE_BY_USER_ROLE.get(role_value) != approver_role:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "approver_role_mismatch",
                "message": f"Role {role_value or 'unknown'} cannot decide as {approver_role.value}",
            },
        )


def require_webhook_secret(
    x_webhook_secret: str | None = Header(default=None, description="Shared webhook secret"),
) -> None:
    """Check the shared secret on inbound provider webhooks.

    When WEBHOOK_SECRET is unset the check is skipped (local development).
    """

    expected = (settings.webhook_secret or "").strip()
    if not expected:
        return None

    if not x_webhook_secret:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing webhook secret")
    if not hmac.compare_digest(x_webhook_secret.strip(), expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid webhook secret")
    return None


def reject_null_required(model: type, data: dict[str, Any]) -> dict[str, Any]:
    """400 when a payload explicitly nulls a NOT NULL column of ``model``."""

    columns = model.__table__.columns
    fields = sorted(
        name for name, value in data.items() if value is None and name in columns and not columns[name].nullable
    )
    if fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "field_not_nullable",
                "message": f"Field(s) cannot be null: {', '.join(fields)}",
                "fields": fields,
            },
        )
    return data
