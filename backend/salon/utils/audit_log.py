from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "reservation.created",
    "reservation.cancelled",
    "reservation.confirmed",
    "reservation.completed",
    "reservation.edited",
    "slot.created",
    "slot.updated",
    "slot.deleted",
]
AuditInitiator = Literal["client", "admin", "system"]

AUDIT_LOGGER_NAME = "salon.audit"


def _build_audit_logger() -> logging.Logger:
    # One bare JSON document per line, kept out of the application log.
    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    audit.setLevel(logging.INFO)
    if not audit.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter("%(message)s"))
        audit.addHandler(stream)
    audit.propagate = False
    return audit


_audit_logger = _build_audit_logger()


def _plain(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(getattr(value, "value", value))


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    actor_id: Optional[int],
    reservation_id: Optional[int] = None,
    slot_id: Optional[int] = None,
    service_id: Optional[int] = None,
    user_id: Optional[int] = None,
    status_from: Any = None,
    status_to: Any = None,
    remaining: Optional[int] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit one structured JSON audit line. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "actor_id": actor_id,
        "request_id": get_request_id(),
        "reservation_id": reservation_id,
        "slot_id": slot_id,
        "service_id": service_id,
        "user_id": user_id,
        "status_from": _plain(status_from),
        "status_to": _plain(status_to),
        "remaining": remaining,
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True, default=str))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
