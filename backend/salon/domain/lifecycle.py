from types import MappingProxyType

from ..models import ReservationStatus
from .errors import IllegalTransitionError

TRANSITIONS = MappingProxyType(
    {
        ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
        ReservationStatus.CONFIRMED: frozenset({ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}),
        ReservationStatus.COMPLETED: frozenset(),
        ReservationStatus.CANCELLED: frozenset(),
    }
)

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: ReservationStatus, target: ReservationStatus) -> ReservationStatus:
    """Return ``target`` if the edge exists, otherwise raise IllegalTransitionError."""
    if not can_transition(current, target):
        raise IllegalTransitionError(f"cannot move a {current.value} reservation to {target.value}")
    return target
