from enum import StrEnum


class ErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    OUT_OF_HOURS = "out_of_hours"
    NO_CAPACITY = "no_capacity"
    CAPACITY_OVERFLOW = "capacity_overflow"
    DUPLICATE_BOOKING = "duplicate_booking"
    SCHEDULE_CONFLICT = "schedule_conflict"
    DUPLICATE_SLOT = "duplicate_slot"
    SLOT_OCCUPIED = "slot_occupied"
    INVALID_STATE = "invalid_state"
    INVALID_RANGE = "invalid_range"
    CAPACITY_BELOW_OCCUPIED = "capacity_below_occupied"
    FORBIDDEN = "forbidden"
    TRANSIENT_CONFLICT = "transient_conflict"


class DomainError(Exception):
    """Base for every failure the core reports. Callers branch on ``kind``."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ResourceNotFoundError(DomainError):
    kind = ErrorKind.NOT_FOUND


class BusinessRuleViolation(DomainError):
    """Deterministic rejection; retrying the same request fails the same way."""


class OutOfHoursError(BusinessRuleViolation):
    kind = ErrorKind.OUT_OF_HOURS


class NoCapacityError(BusinessRuleViolation):
    kind = ErrorKind.NO_CAPACITY


class CapacityExhaustedError(NoCapacityError):
    """Raised by the ledger when a decrement would drop below zero."""


class CapacityOverflowError(BusinessRuleViolation):
    kind = ErrorKind.CAPACITY_OVERFLOW


class DuplicateBookingError(BusinessRuleViolation):
    kind = ErrorKind.DUPLICATE_BOOKING


class ScheduleConflictError(BusinessRuleViolation):
    kind = ErrorKind.SCHEDULE_CONFLICT


class DuplicateSlotError(BusinessRuleViolation):
    kind = ErrorKind.DUPLICATE_SLOT


class SlotOccupiedError(BusinessRuleViolation):
    kind = ErrorKind.SLOT_OCCUPIED


class InvalidStateError(BusinessRuleViolation):
    kind = ErrorKind.INVALID_STATE


class IllegalTransitionError(InvalidStateError):
    pass


class InvalidRangeError(BusinessRuleViolation):
    kind = ErrorKind.INVALID_RANGE


class CapacityBelowOccupiedError(BusinessRuleViolation):
    kind = ErrorKind.CAPACITY_BELOW_OCCUPIED


class ForbiddenError(DomainError):
    kind = ErrorKind.FORBIDDEN


class TransientConflictError(DomainError):
    """Lock wait timeout or deadlock in storage. Safe to retry."""

    kind = ErrorKind.TRANSIENT_CONFLICT
