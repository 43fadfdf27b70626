from __future__ import annotations

import hmac
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from spotch.core.database import get_db
from spotch.core.settings import settings
from spotch.models.user import User


@dataclass(frozen=True)
class CurrentUser:
    id: int | None
    name: str
    role: str

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == "admin"


ADMIN_TOKEN_USER = CurrentUser(id=None, name="admin-token", role="admin")


def _get_bearer_token(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    if not auth.lower().startswith("bearer "):
        return None
    token = auth.split(" ", 1)[1].strip()
    return token or None


def _parse_user_id(raw: str | None) -> int | None:
    value = (raw or "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")


def get_current_user(request: Request, db: Session = Depends(get_db)) -> CurrentUser:
    token = _get_bearer_token(request)
    if token is not None:
        expected = settings.admin_api_token or ""
        if not expected or not hmac.compare_digest(token, expected):
            raise HTTPException(status_code=401, detail="Invalid bearer token")
        # An admin token may still act on behalf of a user.
        user_id = _parse_user_id(request.headers.get("x-user-id"))
        if user_id is None:
            return ADMIN_TOKEN_USER
        user = db.get(User, user_id)
        if user is None:
            raise HTTPException(status_code=401, detail="Unknown user")
        return CurrentUser(id=user.id, name=user.name or "", role="admin")

    user_id = _parse_user_id(request.headers.get("x-user-id"))
    if user_id is None:
        raise HTTPException(status_code=401, detail="Missing credentials")
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    if user.is_banned:
        raise HTTPException(status_code=403, detail="Account is banned")
    return CurrentUser(id=user.id, name=user.name or "", role=(user.role or "user"))


def require_user_id(user: CurrentUser = Depends(get_current_user)) -> int:
    if user.id is None:
        raise HTTPException(status_code=400, detail="X-User-Id header is required")
    return user.id


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
