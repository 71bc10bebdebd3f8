from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple, cast

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import ReservationRepository, ServiceRepository, SlotRepository, UserRepository
from ..models import ACTIVE_STATUSES, Reservation, ReservationStatus, Service, Slot, User, UserRole
from ..utils.time import utc_now_naive


class SqlAlchemySlotRepository(SlotRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, slot_id: int) -> Slot | None:
        return await self.session.get(Slot, slot_id)

    async def get_for_update(self, slot_id: int) -> Slot | None:
        # populate_existing: a slot already in the identity map must be
        # refreshed with the value read under the lock, never the cached one.
        stmt = (
            select(Slot)
            .where(Slot.id == slot_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Slot) else None

    async def exists_at(
        self,
        service_id: int,
        day: date,
        start_time: time,
        exclude_slot_id: int | None = None,
    ) -> bool:
        stmt = select(Slot.id).where(
            Slot.service_id == service_id,
            Slot.date == day,
            Slot.start_time == start_time,
        )
        if exclude_slot_id is not None:
            stmt = stmt.where(Slot.id != exclude_slot_id)
        return await self.session.scalar(stmt.limit(1)) is not None

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
            service_id=service_id,
            date=day,
            start_time=start_time,
            end_time=end_time,
            total_capacity=total_capacity,
            remaining_capacity=remaining_capacity,
        )
        self.session.add(slot)
        await self.session.flush()
        return slot

    async def save(self, slot: Slot) -> Slot:
        self.session.add(slot)
        await self.session.flush()
        return slot

    async def delete(self, slot: Slot) -> None:
        # Reservations outlive the slot with their denormalized copy.
        await self.session.execute(
            update(Reservation).where(Reservation.slot_id == slot.id).values(slot_id=None)
        )
        await self.session.delete(slot)
        await self.session.flush()

    async def list_for_service_on_date(
        self,
        service_id: int,
        day: date,
        *,
        only_available: bool = False,
    ) -> List[Slot]:
        stmt: Select[Tuple[Slot]] = select(Slot).where(Slot.service_id == service_id, Slot.date == day)
        if only_available:
            stmt = stmt.where(Slot.remaining_capacity > 0)
        rows = await self.session.scalars(stmt.order_by(Slot.start_time))
        return list(rows.all())

    async def list_by_service(self, service_id: int) -> List[Slot]:
        stmt = select(Slot).where(Slot.service_id == service_id).order_by(Slot.date, Slot.start_time)
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def list_between(self, date_from: date, date_to: date) -> List[Slot]:
        stmt = (
            select(Slot)
            .where(Slot.date >= date_from, Slot.date <= date_to)
            .order_by(Slot.date, Slot.start_time)
        )
        rows = await self.session.scalars(stmt)
        return list(rows.all())


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, reservation_id: int) -> Reservation | None:
        return await self.session.get(Reservation, reservation_id)

    async def get_for_update(self, reservation_id: int) -> Reservation | None:
        stmt = (
            select(Reservation)
            .where(Reservation.id == reservation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Reservation) else None

    async def list_active_for_user_on_date(self, user_id: int, day: date) -> List[Reservation]:
        stmt = select(Reservation).where(
            Reservation.user_id == user_id,
            Reservation.date == day,
            Reservation.status.in_(ACTIVE_STATUSES),
        )
        rows = await self.session.scalars(stmt)
        return list(rows.all())

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
            user_id=user_id,
            service_id=service_id,
            slot_id=slot_id,
            date=day,
            start_time=start_time,
            end_time=end_time,
            status=status,
            final_price=final_price,
            note=note,
            created_at=utc_now_naive(),
        )
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def save(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def list_by_user(self, user_id: int) -> List[Tuple[Reservation, Service]]:
        stmt: Select[Tuple[Reservation, Service]] = (
            select(Reservation, Service)
            .join(Service, Reservation.service_id == Service.id)
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.date.desc(), Reservation.start_time.desc())
        )
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[Reservation, Service]], list(rows.all()))

    async def list_for_day(
        self,
        day: date,
        statuses: Sequence[ReservationStatus],
    ) -> List[Tuple[Reservation, Service]]:
        stmt: Select[Tuple[Reservation, Service]] = (
            select(Reservation, Service)
            .join(Service, Reservation.service_id == Service.id)
            .where(Reservation.date == day, Reservation.status.in_(list(statuses)))
            .order_by(Reservation.start_time.asc())
        )
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[Reservation, Service]], list(rows.all()))

    async def list_all(self) -> List[Tuple[Reservation, Service]]:
        stmt: Select[Tuple[Reservation, Service]] = (
            select(Reservation, Service)
            .join(Service, Reservation.service_id == Service.id)
            .order_by(Reservation.date.desc(), Reservation.start_time.desc())
        )
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[Reservation, Service]], list(rows.all()))


class SqlAlchemyServiceRepository(ServiceRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, service_id: int) -> Optional[Service]:
        return await self.session.get(Service, service_id)

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
            name=name,
            description=description,
            duration_minutes=duration_minutes,
            price=price,
            max_capacity=max_capacity,
            active=active,
            created_at=utc_now_naive(),
        )
        self.session.add(service)
        await self.session.flush()
        return service

    async def save(self, service: Service) -> Service:
        self.session.add(service)
        await self.session.flush()
        return service

    async def list_services(self, *, active_only: bool = False) -> List[Service]:
        stmt = select(Service)
        if active_only:
            stmt = stmt.where(Service.active.is_(True))
        rows = await self.session.scalars(stmt.order_by(Service.name))
        return list(rows.all())

    async def search_by_name(self, fragment: str) -> List[Service]:
        pattern = f"%{fragment.lower()}%"
        stmt = select(Service).where(func.lower(Service.name).like(pattern)).order_by(Service.name)
        rows = await self.session.scalars(stmt)
        return list(rows.all())


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: int) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        return await self.session.scalar(select(User).where(User.email == email))

    async def create(
        self,
        *,
        email: str,
        name: str,
        password_hash: str,
        role: UserRole,
    ) -> User:
        user = User(
            email=email,
            name=name,
            password_hash=password_hash,
            role=role,
            active=True,
            created_at=utc_now_naive(),
        )
        self.session.add(user)
        await self.session.flush()
        return user

    async def list_users(self) -> List[User]:
        rows = await self.session.scalars(select(User).order_by(User.id))
        return list(rows.all())
