from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from ...api import deps
from ...core.errors import BookingEngineError
from ...db.session import get_db
from ...db import models, schemas
from ...services import credit_ledger

router = APIRouter(prefix="/credits", tags=["credits"])


def _credit_type(value: str) -> models.CreditType:
    try:
        return models.CreditType(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Unknown credit type") from exc


@router.get("/balance", response_model=schemas.CreditBalance)
def get_balance(
    credit_type: str = "meeting-room",
    on: date | None = None,
    db: Session = Depends(get_db),
    requester: deps.Requester = Depends(deps.get_requester),
):
    kind = _credit_type(credit_type)
    balance = credit_ledger.find_balance(db, requester.user_id, kind, on or date.today())
    if balance is None:
        raise HTTPException(status_code=404, detail="No credit allocation for the requested cycle")
    return balance


@router.get("/transactions", response_model=list[schemas.CreditTransaction])
def list_transactions(
    credit_type: str | None = None,
    db: Session = Depends(get_db),
    requester: deps.Requester = Depends(deps.get_requester),
):
    kind = _credit_type(credit_type) if credit_type else None
    return credit_ledger.list_transactions(db, requester.user_id, kind)


@router.post("/allocate", response_model=schemas.CreditBalance)
def allocate_credits(
    payload: schemas.CreditAllocate,
    db: Session = Depends(get_db),
    _: deps.Requester = Depends(deps.require_roles("admin", "billing")),
):
    if payload.cycle_end < payload.cycle_start:
        raise HTTPException(status_code=400, detail="Cycle end must not precede its start")
    if db.get(models.User, payload.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    try:
        return credit_ledger.allocate(
            db,
            user_id=payload.user_id,
            credit_type=_credit_type(payload.credit_type),
            amount=payload.amount,
            cycle_start=payload.cycle_start,
            cycle_end=payload.cycle_end,
        )
    except BookingEngineError as exc:
        raise deps.http_error(exc) from exc
