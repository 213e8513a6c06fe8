import uuid
from typing import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from daysheet.core.security import decode_token
from daysheet.db.models import User
from daysheet.db.session import get_db

bearer_scheme = HTTPBearer(auto_error=False)


async def user_from_token(
    db: AsyncSession, token: str | None, token_type: str
) -> User | None:
    """Resolve a JWT of the given type ("access" / "refresh") to a stored user."""
    if not token:
        return None
    try:
        payload = decode_token(token)
    except JWTError:
        return None

    if payload.get("type") != token_type:
        return None

    try:
        user_id = uuid.UUID(payload.get("sub") or "")
    except ValueError:
        return None

    return await db.get(User, user_id)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    token = credentials.credentials if credentials is not None else None
    user = await user_from_token(db, token, "access")
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return user


def require_role(*roles: str) -> Callable:
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {', '.join(roles)}",
            )
        return current_user

    return role_checker


def ensure_can_view(employee_id: uuid.UUID, current_user: User) -> None:
    """
    Admins and managers may read any employee's attendance.
    Regular employees only their own.
    """
    if current_user.role in ("admin", "manager"):
        return
    if current_user.id != employee_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own attendance",
        )
