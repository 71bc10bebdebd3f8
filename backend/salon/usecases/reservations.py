from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from ..domain.errors import ForbiddenError, InvalidStateError, ResourceNotFoundError
from ..domain.ledger import SlotLedger
from ..domain.lifecycle import TERMINAL_STATUSES, ensure_transition
from ..domain.repositories import ReservationRepository, ServiceRepository, SlotRepository, UserRepository
from ..domain.services import ActiveBooking, ProposedBooking, ReservationValidator
from ..models import ACTIVE_STATUSES, Reservation, ReservationStatus, Service, Slot, User, UserRole
from ..utils.auth import make_unusable_password


@dataclass(frozen=True)
class ReservationResult:
    reservation: Reservation
    service: Service
    status_from: Optional[ReservationStatus] = None
    previous_slot_id: Optional[int] = None


def _proposed(slot: Slot) -> ProposedBooking:
    return ProposedBooking(
        slot_id=slot.id,
        date=slot.date,
        start=slot.start_time,
        end=slot.end_time,
        remaining=slot.remaining_capacity,
    )


def _active(reservations: Iterable[Reservation]) -> list[ActiveBooking]:
    return [
        ActiveBooking(
            reservation_id=r.id,
            slot_id=r.slot_id,
            date=r.date,
            start=r.start_time,
            end=r.end_time,
        )
        for r in reservations
    ]


async def _require_service(service_repo: ServiceRepository, service_id: int) -> Service:
    service = await service_repo.get(service_id)
    if service is None:
        raise ResourceNotFoundError(f"service {service_id} not found")
    return service


async def _require_reservation_for_update(res_repo: ReservationRepository, reservation_id: int) -> Reservation:
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise ResourceNotFoundError(f"reservation {reservation_id} not found")
    return reservation


async def create_reservation(
    slot_repo: SlotRepository,
    res_repo: ReservationRepository,
    user_repo: UserRepository,
    service_repo: ServiceRepository,
    *,
    validator: ReservationValidator,
    user_id: int,
    slot_id: int,
    note: str | None = None,
) -> ReservationResult:
    """
    Book one seat of a slot for a user.

    Must run inside a unit of work: the slot row stays locked from the
    capacity check until commit, which is what keeps two requests from both
    taking the last seat.
    """
    if await user_repo.get(user_id) is None:
        raise ResourceNotFoundError(f"user {user_id} not found")

    ledger = SlotLedger(slot_repo)
    slot = await ledger.acquire(slot_id)

    existing = await res_repo.list_active_for_user_on_date(user_id, slot.date)
    validator.validate(_proposed(slot), _active(existing))
    service = await _require_service(service_repo, slot.service_id)

    ledger.decrement(slot)
    await slot_repo.save(slot)

    reservation = await res_repo.create(
        user_id=user_id,
        service_id=service.id,
        slot_id=slot.id,
        day=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        status=ReservationStatus.PENDING,
        final_price=service.price,
        note=note,
    )
    return ReservationResult(reservation=reservation, service=service)


async def cancel_reservation(
    slot_repo: SlotRepository,
    res_repo: ReservationRepository,
    service_repo: ServiceRepository,
    *,
    reservation_id: int,
    acting_user_id: int | None,
) -> ReservationResult:
    """Cancel and hand the seat back. ``acting_user_id=None`` is an admin cancellation."""
    reservation = await _require_reservation_for_update(res_repo, reservation_id)
    if acting_user_id is not None and reservation.user_id != acting_user_id:
        raise ForbiddenError("reservation belongs to another user")
    if reservation.status not in ACTIVE_STATUSES:
        raise InvalidStateError(f"cannot cancel a {reservation.status.value} reservation")

    status_from = reservation.status
    reservation.status = ensure_transition(status_from, ReservationStatus.CANCELLED)

    if reservation.slot_id is not None:
        ledger = SlotLedger(slot_repo)
        slot = await ledger.acquire(reservation.slot_id)
        ledger.increment(slot)
        await slot_repo.save(slot)

    await res_repo.save(reservation)
    service = await _require_service(service_repo, reservation.service_id)
    return ReservationResult(reservation=reservation, service=service, status_from=status_from)


async def _advance(
    res_repo: ReservationRepository,
    service_repo: ServiceRepository,
    *,
    reservation_id: int,
    required: ReservationStatus,
    target: ReservationStatus,
) -> ReservationResult:
    reservation = await _require_reservation_for_update(res_repo, reservation_id)
    if reservation.status != required:
        raise InvalidStateError(
            f"only {required.value} reservations can become {target.value}; "
            f"this one is {reservation.status.value}"
        )
    status_from = reservation.status
    reservation.status = ensure_transition(status_from, target)
    await res_repo.save(reservation)
    service = await _require_service(service_repo, reservation.service_id)
    return ReservationResult(reservation=reservation, service=service, status_from=status_from)


async def confirm_reservation(
    res_repo: ReservationRepository,
    service_repo: ServiceRepository,
    *,
    reservation_id: int,
) -> ReservationResult:
    return await _advance(
        res_repo,
        service_repo,
        reservation_id=reservation_id,
        required=ReservationStatus.PENDING,
        target=ReservationStatus.CONFIRMED,
    )


async def complete_reservation(
    res_repo: ReservationRepository,
    service_repo: ServiceRepository,
    *,
    reservation_id: int,
) -> ReservationResult:
    return await _advance(
        res_repo,
        service_repo,
        reservation_id=reservation_id,
        required=ReservationStatus.CONFIRMED,
        target=ReservationStatus.COMPLETED,
    )


async def edit_reservation(
    slot_repo: SlotRepository,
    res_repo: ReservationRepository,
    service_repo: ServiceRepository,
    *,
    validator: ReservationValidator,
    reservation_id: int,
    new_slot_id: int,
    note: str | None,
) -> ReservationResult:
    """
    Move a reservation to another slot and/or replace its note.

    Both slots are locked in ascending id order before either counter moves.
    The note is always overwritten; ``None`` clears it.
    """
    reservation = await _require_reservation_for_update(res_repo, reservation_id)
    if reservation.status in TERMINAL_STATUSES:
        raise InvalidStateError(f"cannot edit a {reservation.status.value} reservation")

    previous_slot_id = reservation.slot_id
    service: Service | None = None

    if new_slot_id != previous_slot_id:
        ledger = SlotLedger(slot_repo)
        wanted = [new_slot_id] if previous_slot_id is None else [new_slot_id, previous_slot_id]
        locked = await ledger.acquire_many(wanted)
        new_slot = locked[new_slot_id]

        existing = await res_repo.list_active_for_user_on_date(reservation.user_id, new_slot.date)
        validator.validate(_proposed(new_slot), _active(existing), exclude_reservation_id=reservation.id)
        service = await _require_service(service_repo, new_slot.service_id)

        if previous_slot_id is not None:
            old_slot = locked[previous_slot_id]
            ledger.increment(old_slot)
            await slot_repo.save(old_slot)
        ledger.decrement(new_slot)
        await slot_repo.save(new_slot)

        reservation.slot_id = new_slot.id
        reservation.service_id = service.id
        reservation.date = new_slot.date
        reservation.start_time = new_slot.start_time
        reservation.end_time = new_slot.end_time
        reservation.final_price = service.price

    reservation.note = note
    await res_repo.save(reservation)
    if service is None:
        service = await _require_service(service_repo, reservation.service_id)
    return ReservationResult(reservation=reservation, service=service, previous_slot_id=previous_slot_id)


def _default_display_name(email: str) -> str:
    return f"Client {email.split('@')[0]}"


async def create_with_auto_register(
    slot_repo: SlotRepository,
    res_repo: ReservationRepository,
    user_repo: UserRepository,
    service_repo: ServiceRepository,
    *,
    validator: ReservationValidator,
    email: str,
    display_name: str | None,
    slot_id: int,
    note: str | None = None,
) -> tuple[ReservationResult, User, bool]:
    """
    Phone-in booking made by staff. Creates a client account when the email
    is unknown; an existing account is used as-is, never renamed.
    Returns the booking, the user and whether the user was created.
    """
    user = await user_repo.get_by_email(email)
    created = False
    if user is None:
        name = display_name.strip() if display_name and display_name.strip() else _default_display_name(email)
        user = await user_repo.create(
            email=email,
            name=name,
            password_hash=make_unusable_password(),
            role=UserRole.CLIENT,
        )
        created = True

    result = await create_reservation(
        slot_repo,
        res_repo,
        user_repo,
        service_repo,
        validator=validator,
        user_id=user.id,
        slot_id=slot_id,
        note=note,
    )
    return result, user, created


async def list_user_reservations(
    res_repo: ReservationRepository,
    *,
    user_id: int,
) -> list[tuple[Reservation, Service]]:
    return await res_repo.list_by_user(user_id)


async def get_user_reservation(
    res_repo: ReservationRepository,
    service_repo: ServiceRepository,
    *,
    reservation_id: int,
    user_id: int,
) -> tuple[Reservation, Service]:
    reservation = await res_repo.get(reservation_id)
    if reservation is None:
        raise ResourceNotFoundError(f"reservation {reservation_id} not found")
    if reservation.user_id != user_id:
        raise ForbiddenError("reservation belongs to another user")
    return reservation, await _require_service(service_repo, reservation.service_id)


async def list_reservations_for_day(
    res_repo: ReservationRepository,
    *,
    day: date,
) -> list[tuple[Reservation, Service]]:
    return await res_repo.list_for_day(day, ACTIVE_STATUSES)


async def list_all_reservations(res_repo: ReservationRepository) -> list[tuple[Reservation, Service]]:
    return await res_repo.list_all()
