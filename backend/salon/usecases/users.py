from typing import List

from ..domain.errors import ResourceNotFoundError
from ..domain.repositories import UserRepository
from ..models import User


async def get_user(user_repo: UserRepository, *, user_id: int) -> User:
    user = await user_repo.get(user_id)
    if user is None:
        raise ResourceNotFoundError(f"user {user_id} not found")
    return user


async def list_users(user_repo: UserRepository) -> List[User]:
    return await user_repo.list_users()
