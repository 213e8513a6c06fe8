import io
import logging
import math
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, status
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from daysheet.core.middleware import require_role
from daysheet.db.models import AttendanceLog, ImportHistory, User
from daysheet.db.session import get_db
from daysheet.schemas.attendance import ImportResultResponse, PunchRecord
from daysheet.services.employee_matcher import clean_name, match_employee
from daysheet.services.punch_import import parse_punches
from daysheet.services.schedule import resolve_timezone

logger = logging.getLogger(__name__)

router = APIRouter()

_ALLOWED_EXTENSIONS = {".xlsx"}
_INSERT_CHUNK_ROWS = 1000


def _file_extension(filename: str | None) -> str:
    if not filename:
        return ""
    idx = filename.rfind(".")
    return filename[idx:].lower() if idx != -1 else ""


def import_status(total: int, inserted: int, error_count: int, skipped: int) -> str:
    if inserted == 0 and total > 0:
        return "failed"
    if error_count > 0 or skipped > 0:
        return "partial"
    return "success"


async def _employee_candidates(db: AsyncSession) -> list[tuple]:
    result = await db.execute(
        select(User.id, User.full_name, User.timezone).where(User.is_active == True)  # noqa: E712
    )
    return list(result.all())


def _localize(record: PunchRecord, tz_name: str | None) -> datetime:
    """Device exports carry wall-clock time of the employee's zone."""
    ts = record.timestamp
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=resolve_timezone(tz_name))
    return ts.astimezone(timezone.utc)


async def _insert_punches(db: AsyncSession, rows: list[dict]) -> int:
    """Insert in chunks; asyncpg caps a single query at 32767 bind parameters."""
    inserted = 0
    for offset in range(0, len(rows), _INSERT_CHUNK_ROWS):
        stmt = pg_insert(AttendanceLog).values(rows[offset : offset + _INSERT_CHUNK_ROWS])
        stmt = stmt.on_conflict_do_nothing(constraint="uq_attendance_punch")
        result = await db.execute(stmt)
        inserted += result.rowcount
    return inserted


@router.post(
    "/upload",
    response_model=ImportResultResponse,
    summary="Upload a biometric punch export",
)
async def upload_file(
    file: UploadFile,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role("admin")),
) -> ImportResultResponse:
    ext = _file_extension(file.filename)
    logger.info("Upload: '%s' (extension '%s', user %s)", file.filename, ext, current_user.id)

    if ext not in _ALLOWED_EXTENSIONS:
        logger.warning("Rejected '%s': unsupported extension '%s'", file.filename, ext)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type '{ext}'. Allowed: {', '.join(sorted(_ALLOWED_EXTENSIONS))}",
        )

    content = await file.read()
    records, errors = parse_punches(io.BytesIO(content))
    total = len(records) + len(errors)

    candidates = await _employee_candidates(db)
    zones = {emp_id: tz_name for emp_id, _, tz_name in candidates}
    name_cache: dict[str, object] = {}

    rows: list[dict] = []
    for rec in records:
        key = clean_name(rec.raw_name)
        if key not in name_cache:
            name_cache[key] = match_employee(
                key, [(emp_id, name) for emp_id, name, _ in candidates]
            )
        emp_id = name_cache[key]
        if emp_id is None:
            errors.append(f"No employee matches '{key}'")
            continue
        rows.append(
            {
                "employee_id": emp_id,
                "event": rec.event,
                "timestamp": _localize(rec, zones.get(emp_id)),
                "punch_type": "biometric",
                "device": rec.device or None,
                "has_address": False,
                "is_remote": False,
                "is_deleted": False,
            }
        )

    inserted = await _insert_punches(db, rows) if rows else 0
    skipped = len(rows) - inserted
    if skipped > 0:
        logger.info("Duplicates in '%s': %d punches already stored", file.filename, skipped)

    error_count = len(errors)
    result_status = import_status(total, inserted, error_count, skipped)
    logger.info(
        "Import finished [%s]: status=%s, total=%d, inserted=%d, duplicates=%d, errors=%d",
        file.filename, result_status, total, inserted, skipped, error_count,
    )

    history = ImportHistory(
        filename=file.filename or "unknown",
        uploaded_by=current_user.id,
        uploaded_at=datetime.now(timezone.utc),
        status=result_status,
        logs={
            "total": total,
            "inserted": inserted,
            "skipped": skipped,
            "errors": errors[:100],
        },
    )
    db.add(history)
    await db.commit()

    return ImportResultResponse(
        filename=file.filename or "unknown",
        total=total,
        inserted_count=inserted,
        skipped=skipped,
        error_count=error_count,
        errors=errors,
        status=result_status,
    )


@router.get("/history", summary="List import history (paginated)")
async def list_history(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _current_user: User = Depends(require_role("admin")),
) -> dict:
    stmt = (
        select(ImportHistory)
        .options(selectinload(ImportHistory.uploader))
        .order_by(ImportHistory.uploaded_at.desc())
    )
    result = await db.execute(stmt)
    all_rows = result.scalars().all()
    total = len(all_rows)
    offset = (page - 1) * per_page
    page_rows = all_rows[offset : offset + per_page]

    items = [
        {
            "id": h.id,
            "filename": h.filename,
            "uploaded_by": str(h.uploaded_by) if h.uploaded_by else None,
            "uploaded_by_name": (h.uploader.full_name or h.uploader.username) if h.uploader else None,
            "uploaded_at": h.uploaded_at.isoformat(),
            "status": h.status,
            "logs": h.logs,
        }
        for h in page_rows
    ]

    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "pages": math.ceil(total / per_page) if total > 0 else 1,
        "items": items,
    }
