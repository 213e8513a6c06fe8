import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from daysheet.core.middleware import get_current_user, require_role
from daysheet.db.models import Shift, User
from daysheet.db.session import get_db
from daysheet.schemas.shift import ShiftCreate, ShiftResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/",
    response_model=ShiftResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a shift (admin only)",
)
async def create_shift(
    body: ShiftCreate,
    db: AsyncSession = Depends(get_db),
    _current_user: User = Depends(require_role("admin")),
) -> ShiftResponse:
    existing = await db.execute(select(Shift).where(Shift.name == body.name))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Shift '{body.name}' already exists",
        )

    shift = Shift(**body.model_dump())
    db.add(shift)
    await db.commit()
    await db.refresh(shift)
    logger.info("Shift created: '%s' %s-%s", shift.name, shift.start_time, shift.end_time)
    return ShiftResponse.model_validate(shift)


@router.get("/", response_model=list[ShiftResponse], summary="List shifts")
async def list_shifts(
    active_only: bool = Query(default=True),
    db: AsyncSession = Depends(get_db),
    _current_user: User = Depends(get_current_user),
) -> list[ShiftResponse]:
    q = select(Shift).order_by(Shift.start_time, Shift.name)
    if active_only:
        q = q.where(Shift.is_active == True)  # noqa: E712
    result = await db.execute(q)
    return [ShiftResponse.model_validate(s) for s in result.scalars().all()]


@router.get("/{shift_id}", response_model=ShiftResponse, summary="Get one shift")
async def get_shift(
    shift_id: int,
    db: AsyncSession = Depends(get_db),
    _current_user: User = Depends(get_current_user),
) -> ShiftResponse:
    shift = await db.get(Shift, shift_id)
    if shift is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shift not found")
    return ShiftResponse.model_validate(shift)
