"""API key generation and validation helpers."""
from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.models.api_key import ApiKey
from app.utils.time import ensure_utc, utcnow

KEY_PREFIX = "sl_"


def hash_key(raw: str) -> str:
    """Return an HMAC-SHA256 hash for the provided API key."""

    return hmac.new(settings.SECRET_KEY.encode(), raw.encode(), hashlib.sha256).hexdigest()


def gen_key(prefix_len: int = 6) -> tuple[str, str, str]:
    """Generate a user-facing API key, its prefix, and the stored hash."""

    prefix = KEY_PREFIX + secrets.token_hex(prefix_len)[:prefix_len]
    suffix = secrets.token_urlsafe(32)
    raw = f"{prefix}.{suffix}"
    return raw, prefix, hash_key(raw)


def is_dev_key(raw: str) -> bool:
    return bool(settings.DEV_API_KEY) and secrets.compare_digest(raw, settings.DEV_API_KEY)


def find_valid_key(db: Session, raw: str) -> Optional[ApiKey]:
    """Return the active, unexpired key matching ``raw``."""

    key = db.execute(
        select(ApiKey).where(ApiKey.key_hash == hash_key(raw), ApiKey.is_active.is_(True))
    ).scalar_one_or_none()
    if key is None:
        return None
    if key.expires_at is not None and ensure_utc(key.expires_at) <= utcnow():
        return None
    return key


__all__ = ["KEY_PREFIX", "hash_key", "gen_key", "is_dev_key", "find_valid_key"]
