from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from ...api import deps
from ...core.errors import BookingEngineError
from ...db.session import get_db
from ...db import models, schemas
from ...services import availability_service

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.get("", response_model=list[schemas.Workspace])
def list_workspaces(
    category: str | None = None,
    db: Session = Depends(get_db),
):
    query = db.query(models.Workspace).filter(models.Workspace.is_active.is_(True))
    if category:
        query = query.filter(models.Workspace.category == models.WorkspaceCategory(category))
    return query.order_by(models.Workspace.id).all()


@router.get("/{workspace_id}/availability", response_model=schemas.Availability)
def get_availability(
    workspace_id: int,
    day: date = Query(alias="date"),
    db: Session = Depends(get_db),
):
    try:
        slots = availability_service.compute_availability(db, workspace_id, day)
    except BookingEngineError as exc:
        raise deps.http_error(exc) from exc
    return schemas.Availability(
        workspace_id=workspace_id,
        day=day,
        slots=[
            schemas.FreeSlot(
                start_time=slot.start_time,
                end_time=slot.end_time,
                duration_hours=slot.duration_hours(),
            )
            for slot in slots
        ],
    )


@router.post("/{workspace_id}/quote", response_model=schemas.PricingBreakdown)
def quote_price(
    workspace_id: int,
    payload: schemas.QuoteRequest,
    db: Session = Depends(get_db),
    requester: deps.Requester = Depends(deps.get_requester),
):
    try:
        breakdown = availability_service.quote_price(
            db,
            workspace_id,
            payload.duration_hours,
            requester.eligibility,
            user_id=requester.user_id,
            on=payload.on,
            use_credits=payload.use_credits,
        )
    except BookingEngineError as exc:
        raise deps.http_error(exc) from exc
    return breakdown.as_dict()
