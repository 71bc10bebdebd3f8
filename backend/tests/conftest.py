"""
In-memory stand-ins for the SQLAlchemy repositories.

``FakeSession`` plays one transaction: ``get_for_update`` takes a per-row
asyncio.Lock that is held until the ``async with session.begin()`` block
exits, and any exception inside the block undoes the writes made in it.
That is the same contract the database gives the use cases.
"""

import asyncio
import itertools
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Callable, Optional, Sequence

import pytest
from salon.domain.services import BusinessHours, ReservationValidator
from salon.models import ACTIVE_STATUSES, Reservation, ReservationStatus, Service, Slot, User, UserRole
from salon.utils.time import add_minutes


class InMemoryStore:
    def __init__(self) -> None:
        self.users: dict[int, User] = {}
        self.services: dict[int, Service] = {}
        self.slots: dict[int, Slot] = {}
        self.reservations: dict[int, Reservation] = {}
        self._ids: dict[str, itertools.count] = defaultdict(lambda: itertools.count(1))
        self._locks: dict[tuple[str, int], asyncio.Lock] = defaultdict(asyncio.Lock)

    def next_id(self, table: str) -> int:
        return next(self._ids[table])

    def row_lock(self, table: str, row_id: int) -> asyncio.Lock:
        return self._locks[(table, row_id)]

    def session(self) -> "FakeSession":
        return FakeSession(self)

    # arrange helpers

    def add_user(self, email: str = "ana@example.com", name: str = "Ana", role: UserRole = UserRole.CLIENT) -> User:
        user = User(
            id=self.next_id("users"),
            email=email,
            name=name,
            password_hash="hashed",
            role=role,
            active=True,
            created_at=datetime(2025, 1, 1),
        )
        self.users[user.id] = user
        return user

    def add_service(
        self,
        name: str = "Haircut",
        duration_minutes: int = 60,
        price: Decimal = Decimal("25.00"),
        max_capacity: int = 1,
    ) -> Service:
        service = Service(
            id=self.next_id("services"),
            name=name,
            description=None,
            duration_minutes=duration_minutes,
            price=price,
            max_capacity=max_capacity,
            active=True,
            created_at=datetime(2025, 1, 1),
        )
        self.services[service.id] = service
        return service

    def add_slot(
        self,
        service: Service,
        day: date = date(2025, 1, 15),
        start: time = time(10, 0),
        end: Optional[time] = None,
        capacity: Optional[int] = None,
    ) -> Slot:
        total = capacity if capacity is not None else service.max_capacity
        if end is None:
            end = add_minutes(start, service.duration_minutes)
        slot = Slot(
            id=self.next_id("slots"),
            service_id=service.id,
            date=day,
            start_time=start,
            end_time=end,
            total_capacity=total,
            remaining_capacity=total,
        )
        self.slots[slot.id] = slot
        return slot


class FakeSession:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self._held: list[asyncio.Lock] = []
        self._undo: list[Callable[[], None]] = []

    def begin(self) -> "FakeSession":
        return self

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        if exc_type is not None:
            for undo in reversed(self._undo):
                undo()
        self._undo.clear()
        for lock in reversed(self._held):
            lock.release()
        self._held.clear()
        return False

    async def lock(self, lock: asyncio.Lock) -> None:
        if lock in self._held:
            return
        await lock.acquire()
        self._held.append(lock)

    def on_rollback(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    def snapshot(self, row: object, *fields: str) -> None:
        saved = {name: getattr(row, name) for name in fields}

        def restore() -> None:
            for name, value in saved.items():
                setattr(row, name, value)

        self.on_rollback(restore)


_SLOT_FIELDS = ("service_id", "date", "start_time", "end_time", "total_capacity", "remaining_capacity")
_RES_FIELDS = ("service_id", "slot_id", "date", "start_time", "end_time", "status", "final_price", "note")


class FakeSlotRepo:
    def __init__(self, session: FakeSession) -> None:
        self.session = session
        self.store = session.store

    async def get(self, slot_id: int) -> Slot | None:
        return self.store.slots.get(slot_id)

    async def get_for_update(self, slot_id: int) -> Slot | None:
        await self.session.lock(self.store.row_lock("slots", slot_id))
        slot = self.store.slots.get(slot_id)
        if slot is not None:
            self.session.snapshot(slot, *_SLOT_FIELDS)
        return slot

    async def exists_at(self, service_id: int, day: date, start_time: time, exclude_slot_id: int | None = None) -> bool:
        return any(
            s.service_id == service_id and s.date == day and s.start_time == start_time and s.id != exclude_slot_id
            for s in self.store.slots.values()
        )

    async def create(
        self,
        *,
        service_id: int,
        day: date,
        start_time: time,
        end_time: time,
        total_capacity: int,
        remaining_capacity: int,
    ) -> Slot:
        slot = Slot(
            id=self.store.next_id("slots"),
            service_id=service_id,
            date=day,
            start_time=start_time,
            end_time=end_time,
            total_capacity=total_capacity,
            remaining_capacity=remaining_capacity,
        )
        self.store.slots[slot.id] = slot
        self.session.on_rollback(lambda: self.store.slots.pop(slot.id, None))
        return slot

    async def save(self, slot: Slot) -> Slot:
        assert 0 <= slot.remaining_capacity <= slot.total_capacity
        return slot

    async def delete(self, slot: Slot) -> None:
        for reservation in self.store.reservations.values():
            if reservation.slot_id == slot.id:
                self.session.snapshot(reservation, "slot_id")
                reservation.slot_id = None
        del self.store.slots[slot.id]
        self.session.on_rollback(lambda: self.store.slots.__setitem__(slot.id, slot))

    async def list_for_service_on_date(self, service_id: int, day: date, *, only_available: bool = False) -> list[Slot]:
        rows = [s for s in self.store.slots.values() if s.service_id == service_id and s.date == day]
        if only_available:
            rows = [s for s in rows if s.remaining_capacity > 0]
        return sorted(rows, key=lambda s: s.start_time)

    async def list_by_service(self, service_id: int) -> list[Slot]:
        rows = [s for s in self.store.slots.values() if s.service_id == service_id]
        return sorted(rows, key=lambda s: (s.date, s.start_time))

    async def list_between(self, date_from: date, date_to: date) -> list[Slot]:
        rows = [s for s in self.store.slots.values() if date_from <= s.date <= date_to]
        return sorted(rows, key=lambda s: (s.date, s.start_time))


class FakeReservationRepo:
    def __init__(self, session: FakeSession) -> None:
        self.session = session
        self.store = session.store

    async def get(self, reservation_id: int) -> Reservation | None:
        return self.store.reservations.get(reservation_id)

    async def get_for_update(self, reservation_id: int) -> Reservation | None:
        await self.session.lock(self.store.row_lock("reservations", reservation_id))
        reservation = self.store.reservations.get(reservation_id)
        if reservation is not None:
            self.session.snapshot(reservation, *_RES_FIELDS)
        return reservation

    async def list_active_for_user_on_date(self, user_id: int, day: date) -> list[Reservation]:
        # Yield so concurrent bookings interleave between the check and the write.
        await asyncio.sleep(0)
        return [
            r
            for r in self.store.reservations.values()
            if r.user_id == user_id and r.date == day and r.status in ACTIVE_STATUSES
        ]

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
    ) -> Reservation:
        reservation = Reservation(
            id=self.store.next_id("reservations"),
            user_id=user_id,
            service_id=service_id,
            slot_id=slot_id,
            date=day,
            start_time=start_time,
            end_time=end_time,
            status=status,
            final_price=final_price,
            note=note,
            created_at=datetime(2025, 1, 10, 12, 0),
        )
        self.store.reservations[reservation.id] = reservation
        self.session.on_rollback(lambda: self.store.reservations.pop(reservation.id, None))
        return reservation

    async def save(self, reservation: Reservation) -> Reservation:
        assert reservation.start_time < reservation.end_time
        return reservation

    def _with_service(self, rows: list[Reservation]) -> list[tuple[Reservation, Service]]:
        return [(r, self.store.services[r.service_id]) for r in rows]

    async def list_by_user(self, user_id: int) -> list[tuple[Reservation, Service]]:
        rows = [r for r in self.store.reservations.values() if r.user_id == user_id]
        rows.sort(key=lambda r: (r.date, r.start_time), reverse=True)
        return self._with_service(rows)

    async def list_for_day(self, day: date, statuses: Sequence[ReservationStatus]) -> list[tuple[Reservation, Service]]:
        rows = [r for r in self.store.reservations.values() if r.date == day and r.status in statuses]
        rows.sort(key=lambda r: r.start_time)
        return self._with_service(rows)

    async def list_all(self) -> list[tuple[Reservation, Service]]:
        rows = sorted(self.store.reservations.values(), key=lambda r: (r.date, r.start_time), reverse=True)
        return self._with_service(rows)


class FakeServiceRepo:
    def __init__(self, session: FakeSession) -> None:
        self.session = session
        self.store = session.store

    async def get(self, service_id: int) -> Service | None:
        return self.store.services.get(service_id)

    async def create(
        self,
        *,
        name: str,
        description: str | None,
        duration_minutes: int,
        price: Decimal,
        max_capacity: int,
        active: bool,
    ) -> Service:
        service = Service(
            id=self.store.next_id("services"),
            name=name,
            description=description,
            duration_minutes=duration_minutes,
            price=price,
            max_capacity=max_capacity,
            active=active,
            created_at=datetime(2025, 1, 1),
        )
        self.store.services[service.id] = service
        return service

    async def save(self, service: Service) -> Service:
        return service

    async def list_services(self, *, active_only: bool = False) -> list[Service]:
        rows = [s for s in self.store.services.values() if s.active or not active_only]
        return sorted(rows, key=lambda s: s.name)

    async def search_by_name(self, fragment: str) -> list[Service]:
        rows = [s for s in self.store.services.values() if fragment.lower() in s.name.lower()]
        return sorted(rows, key=lambda s: s.name)


class FakeUserRepo:
    def __init__(self, session: FakeSession) -> None:
        self.session = session
        self.store = session.store

    async def get(self, user_id: int) -> User | None:
        return self.store.users.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        return next((u for u in self.store.users.values() if u.email == email), None)

    async def create(self, *, email: str, name: str, password_hash: str, role: UserRole) -> User:
        user = User(
            id=self.store.next_id("users"),
            email=email,
            name=name,
            password_hash=password_hash,
            role=role,
            active=True,
            created_at=datetime(2025, 1, 1),
        )
        self.store.users[user.id] = user
        self.session.on_rollback(lambda: self.store.users.pop(user.id, None))
        return user

    async def list_users(self) -> list[User]:
        return sorted(self.store.users.values(), key=lambda u: u.id)


@dataclass
class Repos:
    session: FakeSession
    slots: FakeSlotRepo
    reservations: FakeReservationRepo
    services: FakeServiceRepo
    users: FakeUserRepo


def open_repos(store: InMemoryStore) -> Repos:
    session = store.session()
    return Repos(
        session=session,
        slots=FakeSlotRepo(session),
        reservations=FakeReservationRepo(session),
        services=FakeServiceRepo(session),
        users=FakeUserRepo(session),
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def validator() -> ReservationValidator:
    return ReservationValidator(BusinessHours(opening=time(7, 0), closing=time(22, 0)))


@pytest.fixture
def repos_factory() -> Callable[[InMemoryStore], Repos]:
    return open_repos
