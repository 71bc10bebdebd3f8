from __future__ import annotations

from typing import Iterable

from ..models import Slot
from .errors import (
    CapacityBelowOccupiedError,
    CapacityExhaustedError,
    CapacityOverflowError,
    ResourceNotFoundError,
)
from .repositories import SlotRepository


class SlotLedger:
    """
    Owns the remaining-seat counter of every slot.

    ``acquire`` takes a row lock that lives until the surrounding transaction
    ends, so the capacity check and the mutation that follows it see the
    latest committed counter. Nothing else may write ``remaining_capacity``.
    """

    def __init__(self, slot_repo: SlotRepository) -> None:
        self.slot_repo = slot_repo

    async def acquire(self, slot_id: int) -> Slot:
        slot = await self.slot_repo.get_for_update(slot_id)
        if slot is None:
            raise ResourceNotFoundError(f"slot {slot_id} not found")
        return slot

    async def acquire_many(self, slot_ids: Iterable[int]) -> dict[int, Slot]:
        # Ascending id order; two edits swapping the same pair cannot deadlock.
        locked: dict[int, Slot] = {}
        for slot_id in sorted(set(slot_ids)):
            locked[slot_id] = await self.acquire(slot_id)
        return locked

    @staticmethod
    def decrement(slot: Slot) -> None:
        if slot.remaining_capacity <= 0:
            raise CapacityExhaustedError(f"slot {slot.id} has no remaining capacity")
        slot.remaining_capacity -= 1

    @staticmethod
    def increment(slot: Slot) -> None:
        if slot.remaining_capacity >= slot.total_capacity:
            raise CapacityOverflowError(f"slot {slot.id} is already at full capacity")
        slot.remaining_capacity += 1

    @staticmethod
    def resize(slot: Slot, total: int) -> None:
        """Change total seats while keeping every booked seat booked."""
        occupied = slot.total_capacity - slot.remaining_capacity
        if total < occupied:
            raise CapacityBelowOccupiedError(f"capacity {total} is below the {occupied} seat(s) already booked")
        slot.total_capacity = total
        slot.remaining_capacity = total - occupied
