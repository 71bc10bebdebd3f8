from datetime import date, time
from typing import List, Optional

from ..domain.errors import (
    DuplicateSlotError,
    InvalidRangeError,
    OutOfHoursError,
    ResourceNotFoundError,
    SlotOccupiedError,
)
from ..domain.ledger import SlotLedger
from ..domain.repositories import ServiceRepository, SlotRepository
from ..domain.services import ReservationValidator
from ..models import Service, Slot
from ..utils.time import add_minutes


async def _require_service(service_repo: ServiceRepository, service_id: int) -> Service:
    service = await service_repo.get(service_id)
    if service is None:
        raise ResourceNotFoundError(f"service {service_id} not found")
    return service


def _slot_window(validator: ReservationValidator, service: Service, start_time: time) -> time:
    try:
        end_time = add_minutes(start_time, service.duration_minutes)
    except ValueError as exc:
        raise OutOfHoursError(f"a {service.duration_minutes} min slot at {start_time:%H:%M} ends after midnight") from exc
    validator.ensure_within_hours(start_time, end_time)
    return end_time


async def create_slot(
    slot_repo: SlotRepository,
    service_repo: ServiceRepository,
    *,
    validator: ReservationValidator,
    service_id: int,
    day: date,
    start_time: time,
    capacity: Optional[int] = None,
) -> Slot:
    """End time follows from the service duration; capacity defaults to the service maximum."""
    service = await _require_service(service_repo, service_id)
    end_time = _slot_window(validator, service, start_time)
    if await slot_repo.exists_at(service.id, day, start_time):
        raise DuplicateSlotError("a slot already exists for this service, date and start time")

    total = capacity if capacity is not None else service.max_capacity
    return await slot_repo.create(
        service_id=service.id,
        day=day,
        start_time=start_time,
        end_time=end_time,
        total_capacity=total,
        remaining_capacity=total,
    )


async def update_slot(
    slot_repo: SlotRepository,
    service_repo: ServiceRepository,
    *,
    validator: ReservationValidator,
    slot_id: int,
    service_id: int,
    day: date,
    start_time: time,
    capacity: Optional[int] = None,
) -> Slot:
    """
    Reschedule or resize a slot. Seats already taken stay taken: an occupied
    slot keeps its service, date and start, and its capacity cannot drop
    below the occupied count. The end time is recomputed only when the slot
    moves.
    """
    ledger = SlotLedger(slot_repo)
    slot = await ledger.acquire(slot_id)
    occupied = slot.occupied
    moved = (slot.service_id, slot.date, slot.start_time) != (service_id, day, start_time)
    if occupied > 0 and moved:
        raise SlotOccupiedError(
            f"slot has {occupied} active reservation(s); only its capacity can change"
        )

    service = await _require_service(service_repo, service_id)
    if moved:
        end_time = _slot_window(validator, service, start_time)
    else:
        # Duration is fixed at creation; bookings copied this window.
        end_time = slot.end_time
        validator.ensure_within_hours(start_time, end_time)
    if await slot_repo.exists_at(service.id, day, start_time, exclude_slot_id=slot.id):
        raise DuplicateSlotError("another slot already exists for this service, date and start time")

    ledger.resize(slot, capacity if capacity is not None else service.max_capacity)
    slot.service_id = service.id
    slot.date = day
    slot.start_time = start_time
    slot.end_time = end_time
    return await slot_repo.save(slot)


async def delete_slot(slot_repo: SlotRepository, *, slot_id: int) -> Slot:
    slot = await SlotLedger(slot_repo).acquire(slot_id)
    if slot.remaining_capacity < slot.total_capacity:
        raise SlotOccupiedError(f"slot has {slot.occupied} active reservation(s)")
    await slot_repo.delete(slot)
    return slot


async def get_slot(slot_repo: SlotRepository, *, slot_id: int) -> Slot:
    slot = await slot_repo.get(slot_id)
    if slot is None:
        raise ResourceNotFoundError(f"slot {slot_id} not found")
    return slot


async def list_slots(slot_repo: SlotRepository, *, service_id: int, day: date) -> List[Slot]:
    return await slot_repo.list_for_service_on_date(service_id, day)


async def list_available_slots(slot_repo: SlotRepository, *, service_id: int, day: date) -> List[Slot]:
    return await slot_repo.list_for_service_on_date(service_id, day, only_available=True)


async def list_slots_between(slot_repo: SlotRepository, *, date_from: date, date_to: date) -> List[Slot]:
    if date_from > date_to:
        raise InvalidRangeError("date_from must not be after date_to")
    return await slot_repo.list_between(date_from, date_to)


async def list_service_slots(
    slot_repo: SlotRepository,
    service_repo: ServiceRepository,
    *,
    service_id: int,
) -> List[Slot]:
    await _require_service(service_repo, service_id)
    return await slot_repo.list_by_service(service_id)
