"""
Attendance API routes.

Punches are stored raw in attendance_logs; day summaries are never
persisted and are rebuilt from the logs on every request.
"""

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from daysheet.core.config import settings
from daysheet.core.middleware import ensure_can_view, get_current_user
from daysheet.db.models import AttendanceLog, Shift, User
from daysheet.db.session import get_db
from daysheet.schemas.attendance import (
    AttendanceLogResponse,
    AttendanceStatusResponse,
    ClockEvent,
    ClockRequest,
    ComputeDaysRequest,
    DaysResponse,
)
from daysheet.services.schedule import (
    Schedule,
    employee_schedule,
    resolve_shift_start,
    resolve_timezone,
)
from daysheet.services.segments import (
    assemble_range,
    month_window,
    parse_clock_time,
    rolling_window,
    summarize_range,
)
from daysheet.services.timeline import build_day_report

logger = logging.getLogger(__name__)

router = APIRouter()

_MAX_RANGE_DAYS = 366


# ---------------------------------------------------------------------------
# Data access
# ---------------------------------------------------------------------------


async def _get_employee(db: AsyncSession, employee_id: uuid.UUID) -> User:
    user = await db.get(User, employee_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")
    return user


async def _get_shift(db: AsyncSession, shift_id: int | None) -> Shift | None:
    if shift_id is None:
        return None
    return await db.get(Shift, shift_id)


async def _last_log(db: AsyncSession, employee_id: uuid.UUID) -> AttendanceLog | None:
    result = await db.execute(
        _logs_query(employee_id, None, None)
        .order_by(AttendanceLog.timestamp.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def _logs_query(
    employee_id: uuid.UUID, dt_from: datetime | None, dt_to: datetime | None
) -> Select:
    """Non-deleted logs of one employee in [dt_from, dt_to)."""
    q = select(AttendanceLog).where(
        AttendanceLog.employee_id == employee_id,
        AttendanceLog.is_deleted.is_(False),
    )
    if dt_from is not None:
        q = q.where(AttendanceLog.timestamp >= dt_from)
    if dt_to is not None:
        q = q.where(AttendanceLog.timestamp < dt_to)
    return q


async def _load_logs(
    db: AsyncSession,
    employee_id: uuid.UUID,
    dt_from: datetime | None,
    dt_to: datetime | None,
) -> list[AttendanceLog]:
    result = await db.execute(
        _logs_query(employee_id, dt_from, dt_to).order_by(AttendanceLog.timestamp)
    )
    return list(result.scalars().all())


def _to_event(log: AttendanceLog) -> ClockEvent:
    return ClockEvent(
        timestamp=log.timestamp,
        event=log.event,
        has_address=log.has_address,
        location_address=log.location_address if log.has_address else None,
    )


def _aware(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts


def _local_bounds(start: date, end: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """UTC instants covering local days [start, end]."""
    dt_from = datetime.combine(start, time(0, 0), tzinfo=tz)
    dt_to = datetime.combine(end + timedelta(days=1), time(0, 0), tzinfo=tz)
    return dt_from.astimezone(timezone.utc), dt_to.astimezone(timezone.utc)


def _build_days(
    events: list[ClockEvent],
    start: date,
    end: date,
    now: datetime,
    schedule: Schedule,
    employee_id: uuid.UUID | None = None,
) -> DaysResponse:
    tz = schedule.tz
    summaries = assemble_range(
        events, start, end, now=now, tz=tz, shift_start=schedule.shift_start
    )
    return DaysResponse(
        employee_id=employee_id,
        start=start,
        end=end,
        timezone=str(tz),
        shift_start=schedule.shift_start.strftime("%H:%M"),
        shift_end=schedule.shift_end.strftime("%H:%M") if schedule.shift_end else None,
        shift_break_minutes=schedule.break_minutes,
        days=[build_day_report(s, tz, schedule.break_minutes) for s in summaries],
        stats=summarize_range(summaries),
    )


def _unprocessable(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


# ---------------------------------------------------------------------------
# Clock in / out
# ---------------------------------------------------------------------------


async def _record_punch(
    event: Literal["IN", "OUT"],
    body: ClockRequest,
    request: Request,
    db: AsyncSession,
    user: User,
) -> AttendanceLog:
    last = await _last_log(db, user.id)
    if event == "IN" and last is not None and last.event == "IN":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You are already clocked in. Please clock out first.",
        )
    if event == "OUT" and (last is None or last.event == "OUT"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You are not clocked in. Please clock in first.",
        )

    addr = body.location_address
    has_address = (
        addr is not None and addr.latitude is not None and addr.longitude is not None
    )
    log = AttendanceLog(
        employee_id=user.id,
        event=event,
        timestamp=datetime.now(timezone.utc),
        punch_type="web",
        has_address=has_address,
        location_address=addr.model_dump(exclude_none=True) if has_address else None,
        latitude=addr.latitude if has_address else None,
        longitude=addr.longitude if has_address else None,
        # no coordinates means the punch came from outside a known premise
        is_remote=not has_address,
        ip_address=request.client.host if request.client else None,
        note=body.note,
        is_deleted=False,
    )
    db.add(log)
    await db.commit()
    await db.refresh(log)

    logger.info(
        "Clock %s: employee=%s at %s (remote=%s)",
        event, user.id, log.timestamp.isoformat(), log.is_remote,
    )
    return log


@router.post(
    "/clock-in",
    response_model=AttendanceLogResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Clock in the current user",
)
async def clock_in(
    body: ClockRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AttendanceLogResponse:
    log = await _record_punch("IN", body, request, db, current_user)
    return AttendanceLogResponse.model_validate(log)


@router.post(
    "/clock-out",
    response_model=AttendanceLogResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Clock out the current user",
)
async def clock_out(
    body: ClockRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AttendanceLogResponse:
    log = await _record_punch("OUT", body, request, db, current_user)
    return AttendanceLogResponse.model_validate(log)


# ---------------------------------------------------------------------------
# Raw logs
# ---------------------------------------------------------------------------


@router.get(
    "/status/{employee_id}",
    response_model=AttendanceStatusResponse,
    summary="Whether the employee is currently clocked in",
)
async def get_status(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AttendanceStatusResponse:
    ensure_can_view(employee_id, current_user)
    last = await _last_log(db, employee_id)
    if last is None:
        return AttendanceStatusResponse(
            status=None, last_punch_time=None, message="No attendance record found"
        )
    return AttendanceStatusResponse(
        status=last.event,
        last_punch_time=last.timestamp,
        message="Currently clocked in" if last.event == "IN" else "Currently clocked out",
    )


@router.get(
    "/today/{employee_id}",
    response_model=list[AttendanceLogResponse],
    summary="Today's punches in the employee's local time zone",
)
async def get_today(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[AttendanceLogResponse]:
    ensure_can_view(employee_id, current_user)
    employee = await _get_employee(db, employee_id)
    try:
        tz = resolve_timezone(employee.timezone)
    except ValueError as exc:
        raise _unprocessable(exc)
    today = datetime.now(timezone.utc).astimezone(tz).date()
    dt_from, dt_to = _local_bounds(today, today, tz)
    logs = await _load_logs(db, employee_id, dt_from, dt_to)
    return [AttendanceLogResponse.model_validate(log) for log in logs]


@router.get("/logs/{employee_id}", summary="Raw punches with optional date filters")
async def get_logs(
    employee_id: uuid.UUID,
    start: datetime | None = Query(default=None, description="ISO-8601 instant"),
    end: datetime | None = Query(default=None, description="ISO-8601 instant"),
    limit: int = Query(default=100, ge=1, le=1000),
    skip: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    ensure_can_view(employee_id, current_user)
    dt_from = _aware(start) if start is not None else None
    # end is inclusive on this endpoint
    dt_to = _aware(end) + timedelta(microseconds=1) if end is not None else None
    q = _logs_query(employee_id, dt_from, dt_to)

    count_result = await db.execute(select(func.count()).select_from(q.subquery()))
    total = count_result.scalar_one()
    result = await db.execute(
        q.order_by(AttendanceLog.timestamp.desc(), AttendanceLog.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return {
        "logs": [AttendanceLogResponse.model_validate(log) for log in result.scalars().all()],
        "total": total,
        "limit": limit,
        "skip": skip,
    }


# ---------------------------------------------------------------------------
# Day summaries
# ---------------------------------------------------------------------------


@router.get(
    "/days/{employee_id}",
    response_model=DaysResponse,
    summary="Per-day attendance summaries, most recent day first",
)
async def get_days(
    employee_id: uuid.UUID,
    mode: Literal["rolling", "month"] = Query(default="rolling"),
    days: int | None = Query(default=None, ge=1, le=_MAX_RANGE_DAYS),
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DaysResponse:
    ensure_can_view(employee_id, current_user)
    employee = await _get_employee(db, employee_id)
    shift = await _get_shift(db, employee.shift_id)
    try:
        schedule = employee_schedule(employee, shift)
    except ValueError as exc:
        raise _unprocessable(exc)

    tz = schedule.tz
    now = datetime.now(timezone.utc)
    today = now.astimezone(tz).date()
    if mode == "month":
        start, end = month_window(year or today.year, month or today.month)
    else:
        start, end = rolling_window(today, days or settings.ROLLING_WINDOW_DAYS)

    dt_from, dt_to = _local_bounds(start, end, tz)
    logs = await _load_logs(db, employee_id, dt_from, dt_to)
    logger.debug(
        "Day summaries: employee=%s %s..%s tz=%s logs=%d",
        employee_id, start, end, tz, len(logs),
    )
    return _build_days(
        [_to_event(log) for log in logs], start, end, now, schedule, employee_id
    )


@router.post(
    "/days/compute",
    response_model=DaysResponse,
    summary="Per-day summaries for punches supplied in the request body",
)
async def compute_days(
    body: ComputeDaysRequest,
    _current_user: User = Depends(get_current_user),
) -> DaysResponse:
    if body.start > body.end:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="start must not be after end",
        )
    if (body.end - body.start).days + 1 > _MAX_RANGE_DAYS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Range is limited to {_MAX_RANGE_DAYS} days",
        )
    try:
        tz = resolve_timezone(body.timezone)
        if body.shift_start is not None:
            shift_start = parse_clock_time(body.shift_start)
        else:
            shift_start = resolve_shift_start(None)
    except ValueError as exc:
        raise _unprocessable(exc)

    schedule = Schedule(
        tz,
        shift_start,
        parse_clock_time(body.shift_end) if body.shift_end else None,
        body.shift_break_minutes,
    )
    now = _aware(body.now) if body.now is not None else datetime.now(timezone.utc)

    return _build_days(body.events, body.start, body.end, now, schedule)
