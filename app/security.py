# app/security.py
"""Security dependencies for API key validation and scope enforcement."""
from __future__ import annotations

import logging
from typing import Callable, Set

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.config import DEV_API_KEY_ALLOWED, ENV
from app.db import get_db
from app.models.api_key import ApiKey, ApiScope
from app.utils.apikey import find_valid_key, is_dev_key
from app.utils.audit import log_audit
from app.utils.errors import error_response
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

DEV_KEY_ID = 0


def _extract_key(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> str | None:
    """Read the key from ``Authorization: Bearer ...`` or ``X-API-Key``."""
    if x_api_key:
        return x_api_key.strip()
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    return None


def _dev_key(db: Session) -> ApiKey:
    if not DEV_API_KEY_ALLOWED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("DEV_KEY_FORBIDDEN", "Development key disabled."),
        )
    now = utcnow()
    log_audit(db, actor="dev-apikey", action="DEV_API_KEY_USED", entity="ApiKey", entity_id=DEV_KEY_ID, data={"env": ENV})
    db.commit()
    logger.warning("Development API key used", extra={"env": ENV})
    return ApiKey(
        id=DEV_KEY_ID,
        name="__dev__",
        prefix="dev",
        key_hash="dev",
        scope=ApiScope.admin,
        is_active=True,
        created_at=now,
        expires_at=None,
        last_used_at=now,
    )


def require_api_key(
    db: Session = Depends(get_db),
    token: str | None = Depends(_extract_key),
) -> ApiKey:
    """Validate API key tokens and return the corresponding row."""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("NO_API_KEY", "API key required."),
        )

    if is_dev_key(token):
        return _dev_key(db)

    key = find_valid_key(db, token)
    if key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("UNAUTHORIZED", "Invalid or expired API key"),
        )

    key.last_used_at = utcnow()
    db.commit()
    return key


def require_scope(allowed: Set[ApiScope]) -> Callable:
    """Require one of ``allowed``; admin keys pass every check."""

    if not allowed:
        raise RuntimeError("require_scope needs a non-empty set of ApiScope")

    def _dep(key: ApiKey = Depends(require_api_key)) -> ApiKey:
        if key.scope == ApiScope.admin or key.scope in allowed:
            return key
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_response(
                "INSUFFICIENT_SCOPE",
                f"Requires one of: {sorted(scope.value for scope in allowed)}",
            ),
        )

    return _dep


__all__ = ["require_api_key", "require_scope"]
