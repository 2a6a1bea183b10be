"""Progress of staged imports."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.api_key import ApiKey, ApiScope
from app.schemas.imports import SyncJobRead
from app.security import require_scope
from app.services.sync_jobs import get_sync_job

router = APIRouter(prefix="/sync-jobs", tags=["sync-jobs"])


@router.get("/{job_id}", response_model=SyncJobRead)
def read_sync_job(
    job_id: int,
    db: Session = Depends(get_db),
    _key: ApiKey = Depends(require_scope({ApiScope.reader, ApiScope.operator})),
):
    return get_sync_job(db, job_id)
