from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_session, get_validator
from ..domain.errors import DomainError
from ..domain.services import ReservationValidator
from ..infrastructure.repositories import (
    SqlAlchemyReservationRepository,
    SqlAlchemyServiceRepository,
    SqlAlchemySlotRepository,
    SqlAlchemyUserRepository,
)
from ..infrastructure.transactions import unit_of_work
from ..schemas import ReservationCreate, ReservationRead
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log
from .errors import to_http_exception

router = APIRouter(prefix="", tags=["reservations"])


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    validator: ReservationValidator = Depends(get_validator),
) -> ReservationRead:
    slot_repo = SqlAlchemySlotRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    user_repo = SqlAlchemyUserRepository(session)
    service_repo = SqlAlchemyServiceRepository(session)
    try:
        async with unit_of_work(session):
            result = await reservation_usecase.create_reservation(
                slot_repo,
                res_repo,
                user_repo,
                service_repo,
                validator=validator,
                user_id=user_id,
                slot_id=payload.slot_id,
                note=payload.note,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    reservation = result.reservation
    emit_audit_log(
        action="reservation.created",
        initiator="client",
        actor_id=user_id,
        reservation_id=reservation.id,
        slot_id=reservation.slot_id,
        service_id=reservation.service_id,
        user_id=reservation.user_id,
        status_to=reservation.status,
    )
    return ReservationRead.from_db(reservation=reservation, service=result.service)


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    rows = await reservation_usecase.list_user_reservations(res_repo, user_id=user_id)
    return [ReservationRead.from_db(reservation=res, service=service) for res, service in rows]


@router.get("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def get_my_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    service_repo = SqlAlchemyServiceRepository(session)
    try:
        reservation, service = await reservation_usecase.get_user_reservation(
            res_repo,
            service_repo,
            reservation_id=reservation_id,
            user_id=user_id,
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return ReservationRead.from_db(reservation=reservation, service=service)


@router.post("/me/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    slot_repo = SqlAlchemySlotRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    service_repo = SqlAlchemyServiceRepository(session)
    try:
        async with unit_of_work(session):
            result = await reservation_usecase.cancel_reservation(
                slot_repo,
                res_repo,
                service_repo,
                reservation_id=reservation_id,
                acting_user_id=user_id,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    reservation = result.reservation
    emit_audit_log(
        action="reservation.cancelled",
        initiator="client",
        actor_id=user_id,
        reservation_id=reservation.id,
        slot_id=reservation.slot_id,
        service_id=reservation.service_id,
        user_id=reservation.user_id,
        status_from=result.status_from,
        status_to=reservation.status,
    )
    return ReservationRead.from_db(reservation=reservation, service=result.service)
