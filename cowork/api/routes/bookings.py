from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from ...api import deps
from ...core.errors import BookingEngineError
from ...db.session import get_db
from ...db import models, schemas
from ...services import availability_service, booking_service

router = APIRouter(prefix="/bookings", tags=["bookings"])

STAFF_ROLES = ("admin", "manager", "staff")


def _load_booking(db: Session, booking_id: int, requester: deps.Requester) -> models.Booking:
    try:
        booking = booking_service.get_booking(db, booking_id)
    except BookingEngineError as exc:
        raise deps.http_error(exc) from exc
    if booking.user_id != requester.user_id and requester.role not in STAFF_ROLES:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.get("", response_model=list[schemas.Booking])
def list_bookings(
    workspace_id: int | None = None,
    db: Session = Depends(get_db),
    requester: deps.Requester = Depends(deps.get_requester),
):
    query = db.query(models.Booking)
    if requester.role not in STAFF_ROLES:
        query = query.filter(models.Booking.user_id == requester.user_id)
    if workspace_id:
        query = query.filter(models.Booking.workspace_id == workspace_id)
    return query.order_by(models.Booking.booking_date, models.Booking.start_time).all()


@router.post("", response_model=schemas.Booking, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: schemas.BookingCreate,
    db: Session = Depends(get_db),
    requester: deps.Requester = Depends(deps.get_requester),
):
    if db.get(models.User, requester.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    request = booking_service.BookingRequest(
        user_id=requester.user_id,
        workspace_id=payload.workspace_id,
        booking_date=payload.booking_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        attendees=payload.attendees,
        eligibility=requester.eligibility,
        use_credits=payload.use_credits,
    )
    try:
        return availability_service.attempt_booking(db, request)
    except BookingEngineError as exc:
        raise deps.http_error(exc) from exc


@router.get("/{booking_id}", response_model=schemas.Booking)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    requester: deps.Requester = Depends(deps.get_requester),
):
    return _load_booking(db, booking_id, requester)


@router.post("/{booking_id}/confirm", response_model=schemas.Booking)
def confirm_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    _: deps.Requester = Depends(deps.require_roles(*STAFF_ROLES)),
):
    try:
        return booking_service.confirm_booking(db, booking_id)
    except BookingEngineError as exc:
        raise deps.http_error(exc) from exc


@router.post("/{booking_id}/check-in", response_model=schemas.Booking)
def check_in(
    booking_id: int,
    payload: schemas.BookingCheckIn | None = None,
    db: Session = Depends(get_db),
    requester: deps.Requester = Depends(deps.get_requester),
):
    _load_booking(db, booking_id, requester)
    try:
        return booking_service.check_in(db, booking_id, payload.at if payload else None)
    except BookingEngineError as exc:
        raise deps.http_error(exc) from exc


@router.post("/{booking_id}/check-out", response_model=schemas.Booking)
def check_out(
    booking_id: int,
    payload: schemas.BookingCheckOut | None = None,
    db: Session = Depends(get_db),
    requester: deps.Requester = Depends(deps.get_requester),
):
    _load_booking(db, booking_id, requester)
    try:
        return booking_service.check_out(db, booking_id, payload.at if payload else None)
    except BookingEngineError as exc:
        raise deps.http_error(exc) from exc


@router.post("/{booking_id}/extend", response_model=schemas.Extension)
def extend_booking(
    booking_id: int,
    payload: schemas.BookingExtend,
    db: Session = Depends(get_db),
    requester: deps.Requester = Depends(deps.get_requester),
):
    _load_booking(db, booking_id, requester)
    try:
        extension = availability_service.attempt_extension(db, booking_id, payload.new_end_time)
    except BookingEngineError as exc:
        raise deps.http_error(exc) from exc
    return {"booking": extension.booking, "additional": extension.additional.as_dict()}


@router.post("/{booking_id}/cancel", response_model=schemas.Cancellation)
def cancel_booking(
    booking_id: int,
    payload: schemas.BookingCancel,
    db: Session = Depends(get_db),
    requester: deps.Requester = Depends(deps.get_requester),
):
    booking = _load_booking(db, booking_id, requester)
    is_owner = booking.user_id == requester.user_id
    try:
        result = booking_service.cancel_booking(
            db,
            booking_id,
            reason=payload.reason,
            actor="user" if is_owner else requester.role,
            actor_type=models.ActorType.user if is_owner else models.ActorType.admin,
        )
    except BookingEngineError as exc:
        raise deps.http_error(exc) from exc
    return {"booking": result.booking, "should_refund": result.should_refund}
