from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import DuplicateSlotError, TransientConflictError

logger = logging.getLogger(__name__)

# MySQL: 1205 lock wait timeout, 1213 deadlock. PostgreSQL: 40P01 deadlock, 55P03 lock not available.
_MYSQL_LOCK_CODES = frozenset({1205, 1213})
_PG_LOCK_CODES = frozenset({"40P01", "55P03"})

_SLOT_UNIQUE_KEY = "uq_slots_service_date_start"
_USER_EMAIL_KEY = "uq_users_email"


def is_lock_contention(exc: OperationalError) -> bool:
    orig = exc.orig
    if orig is None:
        return False
    code = orig.args[0] if orig.args else None
    if code in _MYSQL_LOCK_CODES:
        return True
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate in _PG_LOCK_CODES


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    One all-or-nothing transaction. Row locks taken inside are released on
    exit; any exception rolls back every write made inside the block.

    Storage contention surfaces as TransientConflictError and a race on the
    slot unique key as DuplicateSlotError. A race on the user email key is
    transient too; other storage errors propagate.
    """
    try:
        async with session.begin():
            yield session
    except OperationalError as exc:
        if not is_lock_contention(exc):
            raise
        logger.warning("lock contention, transaction rolled back: %s", exc.orig)
        raise TransientConflictError("resource is busy, retry later") from exc
    except IntegrityError as exc:
        detail = str(exc.orig)
        if _SLOT_UNIQUE_KEY in detail:
            raise DuplicateSlotError("a slot already exists for this service, date and start time") from exc
        if _USER_EMAIL_KEY in detail:
            # A concurrent phone-in booking registered the same email; a retry reuses that account.
            logger.warning("account created concurrently, transaction rolled back")
            raise TransientConflictError("account was created concurrently, retry") from exc
        raise
