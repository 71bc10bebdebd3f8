from fastapi import HTTPException, status

from ..domain.errors import DomainError, ErrorKind

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.OUT_OF_HOURS: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_RANGE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CAPACITY_BELOW_OCCUPIED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NO_CAPACITY: status.HTTP_409_CONFLICT,
    ErrorKind.CAPACITY_OVERFLOW: status.HTTP_409_CONFLICT,
    ErrorKind.DUPLICATE_BOOKING: status.HTTP_409_CONFLICT,
    ErrorKind.SCHEDULE_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.DUPLICATE_SLOT: status.HTTP_409_CONFLICT,
    ErrorKind.SLOT_OCCUPIED: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.TRANSIENT_CONFLICT: status.HTTP_503_SERVICE_UNAVAILABLE,
}

RETRY_AFTER_SECONDS = "1"


def to_http_exception(exc: DomainError) -> HTTPException:
    code = _STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)
    headers = {"Retry-After": RETRY_AFTER_SECONDS} if exc.kind == ErrorKind.TRANSIENT_CONFLICT else None
    return HTTPException(
        status_code=code,
        detail={"kind": exc.kind.value, "message": exc.message},
        headers=headers,
    )
