from datetime import date, datetime

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models.appointment import Appointment
from backend.payments.gateway import RazorpayGateway, get_payment_gateway
from backend.routes.dependencies import (
    DATABASE_UNAVAILABLE_DETAIL,
    ensure_database_ready,
    get_booking_service,
    get_db,
    get_slot_catalog,
)
from backend.scheduling.availability import booked_slots, free_slots
from backend.scheduling.booking import (
    AppointmentResponse,
    BookingOutcome,
    BookingResult,
    BookingService,
    validate_booking_payload,
)
from backend.scheduling.errors import InvalidTransition, StorageUnavailable
from backend.scheduling.lifecycle import AppointmentStatus, transition
from backend.scheduling.slots import SlotCatalog

router = APIRouter(tags=['appointments'])

INVALID_PAYMENT_SIGNATURE_MESSAGE = 'Payment could not be verified. No paid appointment was created.'

BOOKING_STATUS_CODES = {
    BookingOutcome.BOOKED: status.HTTP_201_CREATED,
    BookingOutcome.INVALID: status.HTTP_400_BAD_REQUEST,
    BookingOutcome.PAST_APPOINTMENT: status.HTTP_400_BAD_REQUEST,
    BookingOutcome.SLOT_CONFLICT: status.HTTP_409_CONFLICT,
    BookingOutcome.STORAGE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    BookingOutcome.PAYMENT_FAILURE: status.HTTP_402_PAYMENT_REQUIRED,
}


class DaySlotsResponse(BaseModel):
    doctor_id: str
    date: date
    booked_slots: list[str]
    available_slots: list[str]


class UpdateStatusRequest(BaseModel):
    status: AppointmentStatus


def booking_response(result: BookingResult) -> JSONResponse:
    return JSONResponse(
        status_code=BOOKING_STATUS_CODES[result.outcome],
        content=result.model_dump(mode='json', by_alias=True, exclude_none=True),
    )


@router.get('/slots', response_model=list[str])
def list_slots(catalog: SlotCatalog = Depends(get_slot_catalog)):
    return list(catalog.all_slots())


@router.get('/day', response_model=DaySlotsResponse)
def list_day_slots(
    doctor_id: str = Query(...),
    appointment_date: date = Query(..., alias='date'),
    catalog: SlotCatalog = Depends(get_slot_catalog),
    db: Session = Depends(get_db),
):
    normalized_doctor_id = doctor_id.strip()
    if not normalized_doctor_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Please select a doctor.',
        )

    ensure_database_ready()

    try:
        booked = booked_slots(db, normalized_doctor_id, appointment_date)
        available = free_slots(db, catalog, normalized_doctor_id, appointment_date, datetime.now())
    except StorageUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    return DaySlotsResponse(
        doctor_id=normalized_doctor_id,
        date=appointment_date,
        booked_slots=[slot for slot in catalog.all_slots() if slot in booked],
        available_slots=available,
    )


@router.post('', status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: dict = Body(...),
    service: BookingService = Depends(get_booking_service),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    request, errors = validate_booking_payload(payload, service.catalog)
    if errors:
        return booking_response(BookingResult.invalid(errors))

    past = service.check_timing(request)
    if past is not None:
        return booking_response(past)

    if request.payment is not None and request.payment.is_complete:
        if not gateway.verify_signature(request.payment):
            return booking_response(BookingResult.payment_failure(INVALID_PAYMENT_SIGNATURE_MESSAGE))

    ensure_database_ready()

    return booking_response(service.book(request))


@router.get('/{appointment_id}', response_model=AppointmentResponse, response_model_by_alias=True)
def get_appointment(appointment_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )

    return AppointmentResponse.from_appointment(appointment)


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse, response_model_by_alias=True)
def update_appointment_status(
    appointment_id: str,
    data: UpdateStatusRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()

        if not appointment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Appointment not found.',
            )

        try:
            transition(appointment, data.status, datetime.now())
        except InvalidTransition as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=str(exc),
            ) from exc

        db.commit()
        db.refresh(appointment)

        return AppointmentResponse.from_appointment(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
