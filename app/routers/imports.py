"""Triggers for the staged artist and festival lineup imports."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.db import get_db
from app.dependencies import get_integrations
from app.integrations import Integrations
from app.integrations.base import IntegrationError, IntegrationNotConfigured
from app.models.api_key import ApiKey, ApiScope
from app.schemas.imports import ArtistImportCreate, ImportTicketRead, LineupImportCreate
from app.security import require_scope
from app.services.artist_import import pick_attraction, trigger_artist_import
from app.services.lineup_import import start_lineup_import, upsert_festival
from app.utils.audit import actor_from_api_key, log_audit
from app.utils.errors import error_response

router = APIRouter(prefix="/imports", tags=["imports"])
logger = logging.getLogger(__name__)

SEARCH_SIZE = 5


def _upstream_error(exc: IntegrationError) -> HTTPException:
    if isinstance(exc, IntegrationNotConfigured):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_response("INTEGRATION_NOT_CONFIGURED", str(exc)),
        )
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=error_response("UPSTREAM_ERROR", str(exc)),
    )


@router.post("/artists", response_model=ImportTicketRead, status_code=status.HTTP_202_ACCEPTED)
def import_artist(
    payload: ArtistImportCreate,
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
    settings: Settings = Depends(get_settings),
    key: ApiKey = Depends(require_scope({ApiScope.operator})),
) -> dict:
    """Create the artist right away and schedule its import phases."""

    client = integrations.ticketmaster
    try:
        if payload.ticketmaster_id:
            attraction = client.get_attraction(payload.ticketmaster_id.strip())
        else:
            attraction = pick_attraction(payload.name, client.search_attractions(payload.name, size=SEARCH_SIZE))
    except IntegrationError as exc:
        logger.warning("Artist lookup failed", extra={"error": str(exc)})
        raise _upstream_error(exc) from exc
    if attraction is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("ARTIST_NOT_FOUND", "No matching artist in the ticketing directory."),
        )

    ticket = trigger_artist_import(db, attraction=attraction, settings=settings)
    log_audit(
        db,
        actor=actor_from_api_key(key),
        action="ARTIST_IMPORT_TRIGGERED",
        entity="SyncJob",
        entity_id=ticket.job_id,
        data={"artist_id": ticket.entity_id, "ticketmaster_id": attraction.id},
    )
    db.commit()
    return ticket.as_dict()


@router.post("/festivals/lineup", response_model=ImportTicketRead, status_code=status.HTTP_202_ACCEPTED)
def import_festival_lineup(
    payload: LineupImportCreate,
    db: Session = Depends(get_db),
    integrations: Integrations = Depends(get_integrations),
    settings: Settings = Depends(get_settings),
    key: ApiKey = Depends(require_scope({ApiScope.operator})),
) -> dict:
    """Resolve the lineup and schedule its first batch."""

    festival = upsert_festival(db, payload.festival_name, year=payload.year)
    ticket = start_lineup_import(
        db,
        festival=festival,
        provided_names=payload.artist_names,
        ticketmaster=integrations.ticketmaster,
        settings=settings,
        batch_size=payload.batch_size,
        prefer_source=payload.prefer_source,
    )
    log_audit(
        db,
        actor=actor_from_api_key(key),
        action="LINEUP_IMPORT_TRIGGERED",
        entity="SyncJob",
        entity_id=ticket.job_id,
        data={"festival_id": festival.id, "total": ticket.total, "source": ticket.source},
    )
    db.commit()
    return ticket.as_dict()
