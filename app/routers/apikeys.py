# app/routers/apikeys.py
"""Issue, inspect and revoke API keys (admin only)."""
from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.api_key import ApiKey, ApiScope
from app.schemas.apikey import ApiKeyCreate, ApiKeyCreated, ApiKeyRead
from app.security import require_scope
from app.utils.apikey import gen_key
from app.utils.audit import actor_from_api_key, log_audit
from app.utils.errors import error_response
from app.utils.time import utcnow

router = APIRouter(prefix="/apikeys", tags=["apikeys"])


def _get_or_404(db: Session, api_key_id: int) -> ApiKey:
    row = db.get(ApiKey, api_key_id)
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("APIKEY_NOT_FOUND", "API key not found."),
        )
    return row


@router.post("", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
def create_api_key(
    payload: ApiKeyCreate,
    db: Session = Depends(get_db),
    admin: ApiKey = Depends(require_scope({ApiScope.admin})),
) -> ApiKeyCreated:
    """Create a key and return its raw value this one time."""
    raw, prefix, key_hash = gen_key()
    expires_at = utcnow() + timedelta(days=payload.days_valid) if payload.days_valid else None

    row = ApiKey(
        name=payload.name,
        prefix=prefix,
        key_hash=key_hash,
        scope=payload.scope,
        expires_at=expires_at,
        is_active=True,
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("APIKEY_EXISTS", "Key name already exists."),
        ) from exc
    db.refresh(row)

    log_audit(
        db,
        actor=actor_from_api_key(admin, fallback="admin"),
        action="CREATE_API_KEY",
        entity="ApiKey",
        entity_id=row.id,
        data={"name": row.name, "scope": row.scope.value},
    )
    db.commit()
    return ApiKeyCreated(id=row.id, name=row.name, scope=row.scope, key=raw, expires_at=expires_at)


@router.get("", response_model=list[ApiKeyRead], dependencies=[Depends(require_scope({ApiScope.admin}))])
def list_apikeys(db: Session = Depends(get_db)) -> list[ApiKey]:
    return list(db.scalars(select(ApiKey).order_by(ApiKey.id)))


@router.get("/{api_key_id}", response_model=ApiKeyRead, dependencies=[Depends(require_scope({ApiScope.admin}))])
def get_apikey(api_key_id: int, db: Session = Depends(get_db)) -> ApiKey:
    return _get_or_404(db, api_key_id)


@router.delete("/{api_key_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def revoke_apikey(
    api_key_id: int,
    db: Session = Depends(get_db),
    admin: ApiKey = Depends(require_scope({ApiScope.admin})),
) -> Response:
    row = _get_or_404(db, api_key_id)
    action = "REVOKE_API_KEY" if row.is_active else "REVOKE_API_KEY_NOOP"
    row.is_active = False
    log_audit(
        db,
        actor=actor_from_api_key(admin, fallback="admin"),
        action=action,
        entity="ApiKey",
        entity_id=api_key_id,
        data={"name": row.name},
    )
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
