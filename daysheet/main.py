import logging
import subprocess
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from daysheet.api.attendance import router as attendance_router
from daysheet.api.auth import router as auth_router
from daysheet.api.files import router as files_router
from daysheet.api.shifts import router as shifts_router
from daysheet.api.users import router as users_router
from daysheet.core.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run Alembic migrations on startup."""
    if settings.RUN_MIGRATIONS:
        logger.info("Running Alembic migrations...")
        try:
            result = subprocess.run(
                ["alembic", "upgrade", "head"],
                capture_output=True,
                text=True,
                cwd=_PROJECT_ROOT,
            )
            if result.returncode != 0:
                logger.error("Alembic migration failed:\n%s", result.stderr)
            else:
                logger.info("Migrations applied successfully:\n%s", result.stdout)
        except OSError as exc:
            logger.exception("Failed to run migrations: %s", exc)

    yield

    logger.info("Shutting down daysheet backend.")


app = FastAPI(
    title="daysheet API",
    description="Employee punches and per-day attendance summaries.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
app.include_router(users_router, prefix="/api/users", tags=["Users"])
app.include_router(shifts_router, prefix="/api/shifts", tags=["Shifts"])
app.include_router(attendance_router, prefix="/api/attendance", tags=["Attendance"])
app.include_router(files_router, prefix="/api/files", tags=["Files"])


@app.get("/health", tags=["System"])
async def health_check() -> dict:
    return {"status": "ok"}
