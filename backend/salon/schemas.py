from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from .models import Reservation, ReservationStatus, Service, Slot, User, UserRole


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    duration_minutes: int = Field(gt=0)
    price: Decimal = Field(gt=0, max_digits=7, decimal_places=2)
    max_capacity: int = Field(default=1, ge=1)
    active: bool = True


class ServiceUpdate(ServiceCreate):
    pass


class ServiceActiveUpdate(BaseModel):
    active: bool


class ServiceRead(BaseModel):
    service_id: int
    name: str
    description: Optional[str]
    duration_minutes: int
    price: Decimal
    max_capacity: int
    active: bool
    created_at: datetime

    @field_serializer("price")
    def _ser_price(self, value: Decimal) -> str:
        return f"{value:.2f}"

    @classmethod
    def from_db(cls, *, service: Service) -> "ServiceRead":
        return cls(
            service_id=service.id,
            name=service.name,
            description=service.description,
            duration_minutes=service.duration_minutes,
            price=service.price,
            max_capacity=service.max_capacity,
            active=service.active,
            created_at=service.created_at,
        )


class SlotCreate(BaseModel):
    service_id: int = Field(ge=1)
    date: date
    start_time: time
    capacity: Optional[int] = Field(default=None, ge=1)


class SlotUpdate(SlotCreate):
    pass


class SlotRead(BaseModel):
    slot_id: int
    service_id: int
    date: date
    start_time: time
    end_time: time
    total_capacity: int
    remaining_capacity: int
    available: bool

    @field_serializer("start_time", "end_time")
    def _ser_time(self, value: time) -> str:
        return value.strftime("%H:%M")

    @classmethod
    def from_db(cls, *, slot: Slot) -> "SlotRead":
        return cls(
            slot_id=slot.id,
            service_id=slot.service_id,
            date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            total_capacity=slot.total_capacity,
            remaining_capacity=slot.remaining_capacity,
            available=slot.remaining_capacity > 0,
        )


class ReservationCreate(BaseModel):
    slot_id: int = Field(ge=1)
    note: Optional[str] = Field(default=None, max_length=1000)


class ReservationEdit(BaseModel):
    slot_id: int = Field(ge=1)
    note: Optional[str] = Field(default=None, max_length=1000)


class ManualReservationCreate(BaseModel):
    email: str = Field(min_length=3, max_length=150, pattern=r"^[^@\s]+@[^@\s]+$")
    display_name: Optional[str] = Field(default=None, max_length=100)
    slot_id: int = Field(ge=1)
    note: Optional[str] = Field(default=None, max_length=1000)


class ReservationRead(BaseModel):
    reservation_id: int
    user_id: int
    service_id: int
    service_name: str
    slot_id: Optional[int]
    date: date
    start_time: time
    end_time: time
    status: ReservationStatus
    final_price: Optional[Decimal]
    note: Optional[str]
    created_at: datetime

    @field_serializer("start_time", "end_time")
    def _ser_time(self, value: time) -> str:
        return value.strftime("%H:%M")

    @field_serializer("final_price")
    def _ser_price(self, value: Optional[Decimal]) -> Optional[str]:
        return None if value is None else f"{value:.2f}"

    @classmethod
    def from_db(cls, *, reservation: Reservation, service: Service) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            user_id=reservation.user_id,
            service_id=reservation.service_id,
            service_name=service.name,
            slot_id=reservation.slot_id,
            date=reservation.date,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            status=reservation.status,
            final_price=reservation.final_price,
            note=reservation.note,
            created_at=reservation.created_at,
        )


class UserRead(BaseModel):
    user_id: int
    email: str
    name: str
    phone: Optional[str]
    role: UserRole
    active: bool
    created_at: datetime

    @classmethod
    def from_db(cls, *, user: User) -> "UserRead":
        return cls(
            user_id=user.id,
            email=user.email,
            name=user.name,
            phone=user.phone,
            role=user.role,
            active=user.active,
            created_at=user.created_at,
        )


class MessageRead(BaseModel):
    message: str
