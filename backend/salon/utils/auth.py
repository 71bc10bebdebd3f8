import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError

from ..models import UserRole

# Same convention as Django's set_unusable_password: no hasher ever yields "!".
UNUSABLE_PASSWORD_PREFIX = "!"


@dataclass(frozen=True)
class TokenIdentity:
    user_id: int
    role: UserRole


def create_access_token(
    *,
    user_id: int,
    secret: str,
    role: UserRole = UserRole.CLIENT,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=30))
    payload = {"sub": str(user_id), "role": role.value, "iat": now, "exp": exp}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> TokenIdentity:
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms))
    except InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise ValueError("invalid token") from exc

    sub = payload.get("sub")
    if sub is None:
        raise ValueError("token missing sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError) as exc:
        raise ValueError("token sub is not an integer") from exc
    try:
        role = UserRole(payload.get("role", UserRole.CLIENT.value))
    except ValueError as exc:
        raise ValueError("token role is unknown") from exc
    return TokenIdentity(user_id=user_id, role=role)


def make_unusable_password() -> str:
    """Placeholder credential for accounts created on someone's behalf."""
    return UNUSABLE_PASSWORD_PREFIX + secrets.token_urlsafe(32)


def is_password_usable(password_hash: str) -> bool:
    return not password_hash.startswith(UNUSABLE_PASSWORD_PREFIX)
