from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..infrastructure.repositories import SqlAlchemySlotRepository
from ..schemas import SlotRead
from ..usecases import slots as slot_usecase

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=List[SlotRead])
async def list_available_slots(
    service_id: int = Query(..., ge=1),
    day: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> list[SlotRead]:
    slot_repo = SqlAlchemySlotRepository(session)
    slots = await slot_usecase.list_available_slots(slot_repo, service_id=service_id, day=day)
    return [SlotRead.from_db(slot=slot) for slot in slots]


@router.get("", response_model=List[SlotRead])
async def list_slots(
    service_id: int = Query(..., ge=1),
    day: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> list[SlotRead]:
    slot_repo = SqlAlchemySlotRepository(session)
    slots = await slot_usecase.list_slots(slot_repo, service_id=service_id, day=day)
    return [SlotRead.from_db(slot=slot) for slot in slots]
