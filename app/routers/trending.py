"""Trending lists and the home page surfaces."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.api_key import ApiKey, ApiScope
from app.schemas.trending import TrendingArtistRead, TrendingShowRead
from app.security import require_scope
from app.services import trending
from app.utils.time import utcnow

router = APIRouter(prefix="/trending", tags=["trending"])

MAX_LIMIT = 100


@router.get("/artists", response_model=list[TrendingArtistRead])
def trending_artists(limit: int = Query(default=20, ge=1, le=MAX_LIMIT), db: Session = Depends(get_db)):
    return trending.list_trending_artists(db, limit=limit)


@router.get("/shows", response_model=list[TrendingShowRead])
def trending_shows(limit: int = Query(default=20, ge=1, le=MAX_LIMIT), db: Session = Depends(get_db)):
    return trending.list_trending_shows(db, limit=limit)


@router.get("/home/artists", response_model=list[TrendingArtistRead])
def home_artists(limit: int = Query(default=20, ge=1, le=MAX_LIMIT), db: Session = Depends(get_db)):
    """Ranked artists that pass the massiveness filter."""
    return trending.list_home_artists(db, limit=limit)


@router.get("/home/shows", response_model=list[TrendingShowRead])
def home_shows(limit: int = Query(default=20, ge=1, le=MAX_LIMIT), db: Session = Depends(get_db)):
    return trending.list_home_shows(db, limit=limit)


@router.post("/recompute")
def recompute(
    db: Session = Depends(get_db),
    _key: ApiKey = Depends(require_scope({ApiScope.admin})),
) -> dict[str, dict[str, int]]:
    result = trending.recompute_trending(db, today=utcnow().date())
    db.commit()
    return result
