# rentline/auth.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import jwt
from fastapi import Depends, Header, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .domain.errors import Unauthenticated
from .models import AppUser

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    user_id: str
    email: Optional[str] = None


# -------------------------
# Token helpers
# -------------------------
def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and str(authorization).lower().startswith("bearer "):
        tok = str(authorization).split(" ", 1)[1].strip()
        return tok or None
    return None


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify a Supabase-issued access token (HS256, shared project secret)."""
    try:
        claims = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience=settings.supabase_jwt_audience,
        )
    except jwt.ExpiredSignatureError as e:
        raise Unauthenticated("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise Unauthenticated("Invalid token") from e
    return dict(claims)


def _ensure_user(db: Session, *, user_id: str, email: Optional[str]) -> AppUser:
    user = db.get(AppUser, user_id)
    if user is not None:
        if email and not user.email:
            user.email = email
            db.commit()
        return user

    user = AppUser(
        id=user_id,
        email=email,
        display_name=(email or user_id).split("@")[0],
        created_at=datetime.utcnow(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    log.info("provisioned app user", extra={"user_id": user_id})
    return user


# -------------------------
# get_principal
# -------------------------
def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Auth modes (in priority order):
      1) Authorization: Bearer <supabase access token>
      2) dev header spoofing (ONLY if settings.auth_mode == "dev")
    """
    token = _bearer(authorization)
    if token:
        claims = decode_access_token(token)
        sub = str(claims.get("sub") or "").strip()
        if not sub:
            raise Unauthenticated("Token missing sub")
        email = (claims.get("email") or None) and str(claims["email"]).strip().lower()
        _ensure_user(db, user_id=sub, email=email)
        return Principal(user_id=sub, email=email)

    if (settings.auth_mode or "").strip().lower() == "dev":
        user_id = (request.headers.get(settings.dev_header_user_id) or "").strip()
        email = (request.headers.get(settings.dev_header_user_email) or "").strip().lower() or None
        if not user_id:
            raise Unauthenticated(f"Missing {settings.dev_header_user_id} for dev auth")

        if db.get(AppUser, user_id) is None:
            if not settings.dev_auto_provision:
                raise Unauthenticated("Unknown user")
            _ensure_user(db, user_id=user_id, email=email)
        return Principal(user_id=user_id, email=email)

    raise Unauthenticated("Not authenticated")
