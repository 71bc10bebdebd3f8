from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import CurrentUser, get_session, get_validator, require_admin
from ..domain.errors import DomainError
from ..domain.services import ReservationValidator
from ..infrastructure.repositories import (
    SqlAlchemyReservationRepository,
    SqlAlchemyServiceRepository,
    SqlAlchemySlotRepository,
    SqlAlchemyUserRepository,
)
from ..infrastructure.transactions import unit_of_work
from ..schemas import (
    ManualReservationCreate,
    MessageRead,
    ReservationEdit,
    ReservationRead,
    ServiceActiveUpdate,
    ServiceCreate,
    ServiceRead,
    ServiceUpdate,
    SlotCreate,
    SlotRead,
    SlotUpdate,
    UserRead,
)
from ..usecases import catalog as catalog_usecase
from ..usecases import reservations as reservation_usecase
from ..usecases import slots as slot_usecase
from ..usecases import users as user_usecase
from ..usecases.reservations import ReservationResult
from ..utils.audit_log import AuditAction, emit_audit_log
from ..utils.time import today_in
from .errors import to_http_exception

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _audit_reservation(action: AuditAction, admin: CurrentUser, result: ReservationResult) -> None:
    reservation = result.reservation
    emit_audit_log(
        action=action,
        initiator="admin",
        actor_id=admin.id,
        reservation_id=reservation.id,
        slot_id=reservation.slot_id,
        service_id=reservation.service_id,
        user_id=reservation.user_id,
        status_from=result.status_from,
        status_to=reservation.status,
    )


# ---------- services ----------


@router.post("/services", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
async def create_service(payload: ServiceCreate, session: AsyncSession = Depends(get_session)) -> ServiceRead:
    async with unit_of_work(session):
        service = await catalog_usecase.create_service(SqlAlchemyServiceRepository(session), **payload.model_dump())
    return ServiceRead.from_db(service=service)


@router.get("/services", response_model=List[ServiceRead])
async def list_all_services(session: AsyncSession = Depends(get_session)) -> list[ServiceRead]:
    services = await catalog_usecase.list_services(SqlAlchemyServiceRepository(session), active_only=False)
    return [ServiceRead.from_db(service=s) for s in services]


@router.put("/services/{service_id}", response_model=ServiceRead)
async def update_service(
    payload: ServiceUpdate,
    service_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> ServiceRead:
    try:
        async with unit_of_work(session):
            service = await catalog_usecase.update_service(
                SqlAlchemyServiceRepository(session),
                service_id=service_id,
                **payload.model_dump(),
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return ServiceRead.from_db(service=service)


@router.patch("/services/{service_id}/active", response_model=ServiceRead)
async def set_service_active(
    payload: ServiceActiveUpdate,
    service_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> ServiceRead:
    try:
        async with unit_of_work(session):
            service = await catalog_usecase.set_service_active(
                SqlAlchemyServiceRepository(session),
                service_id=service_id,
                active=payload.active,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return ServiceRead.from_db(service=service)


@router.delete("/services/{service_id}", response_model=MessageRead)
async def deactivate_service(
    service_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> MessageRead:
    try:
        async with unit_of_work(session):
            await catalog_usecase.deactivate_service(SqlAlchemyServiceRepository(session), service_id=service_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return MessageRead(message="service deactivated")


@router.get("/services/{service_id}/slots", response_model=List[SlotRead])
async def list_service_slots(
    service_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> list[SlotRead]:
    try:
        slots = await slot_usecase.list_service_slots(
            SqlAlchemySlotRepository(session),
            SqlAlchemyServiceRepository(session),
            service_id=service_id,
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return [SlotRead.from_db(slot=slot) for slot in slots]


# ---------- slots ----------


@router.post("/slots", response_model=SlotRead, status_code=status.HTTP_201_CREATED)
async def create_slot(
    payload: SlotCreate,
    session: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
    validator: ReservationValidator = Depends(get_validator),
) -> SlotRead:
    try:
        async with unit_of_work(session):
            slot = await slot_usecase.create_slot(
                SqlAlchemySlotRepository(session),
                SqlAlchemyServiceRepository(session),
                validator=validator,
                service_id=payload.service_id,
                day=payload.date,
                start_time=payload.start_time,
                capacity=payload.capacity,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    emit_audit_log(
        action="slot.created",
        initiator="admin",
        actor_id=admin.id,
        slot_id=slot.id,
        service_id=slot.service_id,
        remaining=slot.remaining_capacity,
    )
    return SlotRead.from_db(slot=slot)


@router.get("/slots", response_model=List[SlotRead])
async def list_slots_between(
    date_from: date = Query(...),
    date_to: date = Query(...),
    session: AsyncSession = Depends(get_session),
) -> list[SlotRead]:
    try:
        slots = await slot_usecase.list_slots_between(
            SqlAlchemySlotRepository(session),
            date_from=date_from,
            date_to=date_to,
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return [SlotRead.from_db(slot=slot) for slot in slots]


@router.get("/slots/{slot_id}", response_model=SlotRead)
async def get_slot(
    slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> SlotRead:
    try:
        slot = await slot_usecase.get_slot(SqlAlchemySlotRepository(session), slot_id=slot_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return SlotRead.from_db(slot=slot)


@router.put("/slots/{slot_id}", response_model=SlotRead)
async def update_slot(
    payload: SlotUpdate,
    slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
    validator: ReservationValidator = Depends(get_validator),
) -> SlotRead:
    try:
        async with unit_of_work(session):
            slot = await slot_usecase.update_slot(
                SqlAlchemySlotRepository(session),
                SqlAlchemyServiceRepository(session),
                validator=validator,
                slot_id=slot_id,
                service_id=payload.service_id,
                day=payload.date,
                start_time=payload.start_time,
                capacity=payload.capacity,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    emit_audit_log(
        action="slot.updated",
        initiator="admin",
        actor_id=admin.id,
        slot_id=slot.id,
        service_id=slot.service_id,
        remaining=slot.remaining_capacity,
    )
    return SlotRead.from_db(slot=slot)


@router.delete("/slots/{slot_id}", response_model=MessageRead)
async def delete_slot(
    slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
) -> MessageRead:
    try:
        async with unit_of_work(session):
            slot = await slot_usecase.delete_slot(SqlAlchemySlotRepository(session), slot_id=slot_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    emit_audit_log(action="slot.deleted", initiator="admin", actor_id=admin.id, slot_id=slot_id, service_id=slot.service_id)
    return MessageRead(message="slot deleted")


# ---------- reservations ----------


@router.get("/reservations", response_model=List[ReservationRead])
async def list_all_reservations(session: AsyncSession = Depends(get_session)) -> list[ReservationRead]:
    rows = await reservation_usecase.list_all_reservations(SqlAlchemyReservationRepository(session))
    return [ReservationRead.from_db(reservation=res, service=service) for res, service in rows]


@router.get("/reservations/today", response_model=List[ReservationRead])
async def list_today_reservations(session: AsyncSession = Depends(get_session)) -> list[ReservationRead]:
    rows = await reservation_usecase.list_reservations_for_day(
        SqlAlchemyReservationRepository(session),
        day=today_in(get_settings().salon_timezone),
    )
    return [ReservationRead.from_db(reservation=res, service=service) for res, service in rows]


@router.patch("/reservations/{reservation_id}/confirm", response_model=ReservationRead)
async def confirm_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
) -> ReservationRead:
    try:
        async with unit_of_work(session):
            result = await reservation_usecase.confirm_reservation(
                SqlAlchemyReservationRepository(session),
                SqlAlchemyServiceRepository(session),
                reservation_id=reservation_id,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    _audit_reservation("reservation.confirmed", admin, result)
    return ReservationRead.from_db(reservation=result.reservation, service=result.service)


@router.patch("/reservations/{reservation_id}/complete", response_model=ReservationRead)
async def complete_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
) -> ReservationRead:
    try:
        async with unit_of_work(session):
            result = await reservation_usecase.complete_reservation(
                SqlAlchemyReservationRepository(session),
                SqlAlchemyServiceRepository(session),
                reservation_id=reservation_id,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    _audit_reservation("reservation.completed", admin, result)
    return ReservationRead.from_db(reservation=result.reservation, service=result.service)


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
) -> ReservationRead:
    try:
        async with unit_of_work(session):
            result = await reservation_usecase.cancel_reservation(
                SqlAlchemySlotRepository(session),
                SqlAlchemyReservationRepository(session),
                SqlAlchemyServiceRepository(session),
                reservation_id=reservation_id,
                acting_user_id=None,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    _audit_reservation("reservation.cancelled", admin, result)
    return ReservationRead.from_db(reservation=result.reservation, service=result.service)


@router.put("/reservations/{reservation_id}", response_model=ReservationRead)
async def edit_reservation(
    payload: ReservationEdit,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
    validator: ReservationValidator = Depends(get_validator),
) -> ReservationRead:
    try:
        async with unit_of_work(session):
            result = await reservation_usecase.edit_reservation(
                SqlAlchemySlotRepository(session),
                SqlAlchemyReservationRepository(session),
                SqlAlchemyServiceRepository(session),
                validator=validator,
                reservation_id=reservation_id,
                new_slot_id=payload.slot_id,
                note=payload.note,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    reservation = result.reservation
    emit_audit_log(
        action="reservation.edited",
        initiator="admin",
        actor_id=admin.id,
        reservation_id=reservation.id,
        slot_id=reservation.slot_id,
        service_id=reservation.service_id,
        user_id=reservation.user_id,
        status_to=reservation.status,
        extra={"previous_slot_id": result.previous_slot_id},
    )
    return ReservationRead.from_db(reservation=reservation, service=result.service)


@router.post("/reservations/manual", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_manual_reservation(
    payload: ManualReservationCreate,
    session: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
    validator: ReservationValidator = Depends(get_validator),
) -> ReservationRead:
    try:
        async with unit_of_work(session):
            result, user, created = await reservation_usecase.create_with_auto_register(
                SqlAlchemySlotRepository(session),
                SqlAlchemyReservationRepository(session),
                SqlAlchemyUserRepository(session),
                SqlAlchemyServiceRepository(session),
                validator=validator,
                email=payload.email,
                display_name=payload.display_name,
                slot_id=payload.slot_id,
                note=payload.note,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    reservation = result.reservation
    emit_audit_log(
        action="reservation.created",
        initiator="admin",
        actor_id=admin.id,
        reservation_id=reservation.id,
        slot_id=reservation.slot_id,
        service_id=reservation.service_id,
        user_id=user.id,
        status_to=reservation.status,
        extra={"user_created": created},
    )
    return ReservationRead.from_db(reservation=reservation, service=result.service)


# ---------- users ----------


@router.get("/users", response_model=List[UserRead])
async def list_users(session: AsyncSession = Depends(get_session)) -> list[UserRead]:
    users = await user_usecase.list_users(SqlAlchemyUserRepository(session))
    return [UserRead.from_db(user=u) for u in users]


@router.get("/users/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> UserRead:
    try:
        user = await user_usecase.get_user(SqlAlchemyUserRepository(session), user_id=user_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return UserRead.from_db(user=user)
