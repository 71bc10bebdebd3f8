from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import Protocol, Sequence

from ..models import Reservation, ReservationStatus, Service, Slot, User, UserRole


class SlotRepository(Protocol):
    async def get(self, slot_id: int) -> Slot | None: ...

    async def get_for_update(self, slot_id: int) -> Slot | None: ...

    async def exists_at(
        self,
        service_id: int,
        day: date,
        start_time: time,
        exclude_slot_id: int | None = None,
    ) -> bool: ...

    async def create(
        self,
        *,
        service_id: int,
        day: date,
        start_time: time,
        end_time: time,
        total_capacity: int,
        remaining_capacity: int,
    ) -> Slot: ...

    async def save(self, slot: Slot) -> Slot: ...

    async def delete(self, slot: Slot) -> None: ...

    async def list_for_service_on_date(
        self,
        service_id: int,
        day: date,
        *,
        only_available: bool = False,
    ) -> list[Slot]: ...

    async def list_by_service(self, service_id: int) -> list[Slot]: ...

    async def list_between(self, date_from: date, date_to: date) -> list[Slot]: ...


class ReservationRepository(Protocol):
    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def list_active_for_user_on_date(self, user_id: int, day: date) -> list[Reservation]: ...

    async def create(
        self,
        *,
        user_id: int,
        service_id: int,
        slot_id: int,
        day: date,
        start_time: time,
        end_time: time,
        status: ReservationStatus,
        final_price: Decimal | None,
        note: str | None,
    ) -> Reservation: ...

    async def save(self, reservation: Reservation) -> Reservation: ...

    async def list_by_user(self, user_id: int) -> list[tuple[Reservation, Service]]: ...

    async def list_for_day(
        self,
        day: date,
        statuses: Sequence[ReservationStatus],
    ) -> list[tuple[Reservation, Service]]: ...

    async def list_all(self) -> list[tuple[Reservation, Service]]: ...


class ServiceRepository(Protocol):
    async def get(self, service_id: int) -> Service | None: ...

    async def create(
        self,
        *,
        name: str,
        description: str | None,
        duration_minutes: int,
        price: Decimal,
        max_capacity: int,
        active: bool,
    ) -> Service: ...

    async def save(self, service: Service) -> Service: ...

    async def list_services(self, *, active_only: bool = False) -> list[Service]: ...

    async def search_by_name(self, fragment: str) -> list[Service]: ...


class UserRepository(Protocol):
    async def get(self, user_id: int) -> User | None: ...

    async def get_by_email(self, email: str) -> User | None: ...

    async def create(
        self,
        *,
        email: str,
        name: str,
        password_hash: str,
        role: UserRole,
    ) -> User: ...

    async def list_users(self) -> list[User]: ...
