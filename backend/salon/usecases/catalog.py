from decimal import Decimal
from typing import List, Optional

from ..domain.errors import ResourceNotFoundError
from ..domain.repositories import ServiceRepository
from ..models import Service


async def get_service(service_repo: ServiceRepository, *, service_id: int) -> Service:
    service = await service_repo.get(service_id)
    if service is None:
        raise ResourceNotFoundError(f"service {service_id} not found")
    return service


async def list_services(service_repo: ServiceRepository, *, active_only: bool = True) -> List[Service]:
    return await service_repo.list_services(active_only=active_only)


async def search_services(service_repo: ServiceRepository, *, name: str) -> List[Service]:
    return await service_repo.search_by_name(name.strip())


async def create_service(
    service_repo: ServiceRepository,
    *,
    name: str,
    description: Optional[str],
    duration_minutes: int,
    price: Decimal,
    max_capacity: int,
    active: bool = True,
) -> Service:
    return await service_repo.create(
        name=name,
        description=description,
        duration_minutes=duration_minutes,
        price=price,
        max_capacity=max_capacity,
        active=active,
    )


async def update_service(
    service_repo: ServiceRepository,
    *,
    service_id: int,
    name: str,
    description: Optional[str],
    duration_minutes: int,
    price: Decimal,
    max_capacity: int,
    active: bool,
) -> Service:
    """Existing slots keep the duration and capacity they were created with."""
    service = await get_service(service_repo, service_id=service_id)
    service.name = name
    service.description = description
    service.duration_minutes = duration_minutes
    service.price = price
    service.max_capacity = max_capacity
    service.active = active
    return await service_repo.save(service)


async def set_service_active(service_repo: ServiceRepository, *, service_id: int, active: bool) -> Service:
    service = await get_service(service_repo, service_id=service_id)
    service.active = active
    return await service_repo.save(service)


async def deactivate_service(service_repo: ServiceRepository, *, service_id: int) -> Service:
    # Soft delete: slots and reservations keep pointing at the row.
    return await set_service_active(service_repo, service_id=service_id, active=False)
