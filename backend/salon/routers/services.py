from typing import List

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemyServiceRepository
from ..schemas import ServiceRead
from ..usecases import catalog as catalog_usecase
from .errors import to_http_exception

router = APIRouter(prefix="/services", tags=["services"])


@router.get("", response_model=List[ServiceRead])
async def list_active_services(session: AsyncSession = Depends(get_session)) -> list[ServiceRead]:
    services = await catalog_usecase.list_services(SqlAlchemyServiceRepository(session), active_only=True)
    return [ServiceRead.from_db(service=s) for s in services]


@router.get("/search", response_model=List[ServiceRead])
async def search_services(
    name: str = Query(..., min_length=1, max_length=150),
    session: AsyncSession = Depends(get_session),
) -> list[ServiceRead]:
    services = await catalog_usecase.search_services(SqlAlchemyServiceRepository(session), name=name)
    return [ServiceRead.from_db(service=s) for s in services]


@router.get("/{service_id}", response_model=ServiceRead)
async def get_service(
    service_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> ServiceRead:
    try:
        service = await catalog_usecase.get_service(SqlAlchemyServiceRepository(session), service_id=service_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return ServiceRead.from_db(service=service)
