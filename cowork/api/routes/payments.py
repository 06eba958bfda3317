from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from ...api import deps
from ...core.errors import BookingEngineError
from ...db.session import get_db
from ...db import models, schemas
from ...services import booking_service, payment_service

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("", response_model=list[schemas.Payment])
def list_payments(
    db: Session = Depends(get_db),
    requester: deps.Requester = Depends(deps.get_requester),
):
    query = db.query(models.Payment)
    if requester.role not in ("admin", "manager", "billing"):
        query = query.filter(models.Payment.user_id == requester.user_id)
    return query.order_by(models.Payment.id.desc()).all()


@router.post("/create", response_model=schemas.Payment)
def create_payment_endpoint(
    payload: schemas.PaymentStart,
    db: Session = Depends(get_db),
    requester: deps.Requester = Depends(deps.get_requester),
):
    try:
        booking = booking_service.get_booking(db, payload.booking_id)
    except BookingEngineError as exc:
        raise deps.http_error(exc) from exc
    if booking.user_id != requester.user_id:
        raise HTTPException(status_code=404, detail="Booking not found")
    try:
        payment, _ = payment_service.start_payment(db, booking)
    except BookingEngineError as exc:
        raise deps.http_error(exc) from exc
    return payment


@router.post("/webhook")
def payments_webhook(payload: dict, db: Session = Depends(get_db)):
    payment = payment_service.handle_webhook(db, payload)
    if payment is None:
        raise HTTPException(status_code=404, detail="Payment not found")
    return {"status": "ok"}
