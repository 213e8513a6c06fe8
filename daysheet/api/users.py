import math
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from daysheet.core.middleware import get_current_user, require_role
from daysheet.core.security import hash_password
from daysheet.db.models import Shift, User
from daysheet.db.session import get_db
from daysheet.schemas.user import UserCreate, UserResponse, UserUpdate
from daysheet.services.schedule import resolve_timezone

router = APIRouter()


async def _check_shift(db: AsyncSession, shift_id: int | None) -> None:
    if shift_id is None:
        return
    if await db.get(Shift, shift_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Shift {shift_id} not found",
        )


def _check_timezone(name: str | None) -> None:
    if name is None:
        return
    try:
        resolve_timezone(name)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )


@router.post(
    "/",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new user (admin only)",
)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    _current_user: User = Depends(require_role("admin")),
) -> UserResponse:
    existing = await db.execute(select(User).where(User.username == body.username))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Username '{body.username}' is already taken",
        )
    _check_timezone(body.timezone)
    await _check_shift(db, body.shift_id)

    user = User(
        username=body.username,
        password_hash=hash_password(body.password),
        role=body.role,
        full_name=body.full_name,
        email=body.email,
        shift_id=body.shift_id,
        timezone=body.timezone,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)


@router.get("/", summary="List users with pagination and optional name search")
async def list_users(
    search: str | None = Query(default=None, description="Filter by name (partial, case-insensitive)"),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    _current_user: User = Depends(require_role("admin", "manager")),
) -> dict:
    q = select(User)
    if search:
        q = q.where(
            User.full_name.ilike(f"%{search}%")
            | User.username.ilike(f"%{search}%")
        )
    q = q.order_by(User.full_name)

    result = await db.execute(q)
    all_users = result.scalars().all()
    total = len(all_users)
    offset = (page - 1) * per_page
    page_users = all_users[offset : offset + per_page]

    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "pages": math.ceil(total / per_page) if total > 0 else 1,
        "items": [UserResponse.model_validate(u) for u in page_users],
    }


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current authenticated user profile",
)
async def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update role, status, shift or time zone (admin only)",
)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    _current_user: User = Depends(require_role("admin")),
) -> UserResponse:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    changes = body.model_dump(exclude_unset=True)
    if "timezone" in changes:
        _check_timezone(changes["timezone"])
    if "shift_id" in changes:
        await _check_shift(db, changes["shift_id"])

    for field, value in changes.items():
        if value is None and field in ("role", "is_active"):
            continue
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)
