# trakly/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import exc as sa_exc
from starlette.middleware.sessions import SessionMiddleware

from trakly.config import settings
from trakly.core.errors import StoreUnavailable, TraklyError
from trakly.database import AsyncSessionLocal, Base, engine
from trakly.models import task as _task_models, user as _user_models  # noqa: F401  register tables
from trakly.routers import auth, task, users
from trakly.services.mailer import SmtpSender
from trakly.services.reminders import ReminderScheduler, ReminderSweeper
from trakly.services.storage import get_file_store

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=settings.LOG_LEVEL.upper(),
)
logger = logging.getLogger(__name__)


async def create_tables() -> None:
    # create tables (async). ignore duplicate-object errors from previous partial runs.
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except sa_exc.IntegrityError as e:
            msg = str(getattr(e, "orig", e))
            if "duplicate key value violates unique constraint" in msg or "already exists" in msg:
                logger.warning("Ignored duplicate DDL error during create_all: %s", msg)
            else:
                raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    get_file_store().ensure_root()

    sender = SmtpSender.from_settings()
    if not sender.configured:
        logger.warning("SMTP is not configured; reminders stay armed until it is.")
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY missing; question extraction is disabled.")

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        sweeper = ReminderSweeper(AsyncSessionLocal, sender)
        scheduler = ReminderScheduler(sweeper, settings.REMINDER_INTERVAL_MINUTES)
        scheduler.start()
    app.state.reminder_scheduler = scheduler

    yield

    if scheduler is not None:
        scheduler.shutdown()
    await engine.dispose()


app = FastAPI(title="Trakly - College Assignment Tracker", version="1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# Holds the OAuth state between /google and /google/callback
app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY, same_site="lax")


@app.exception_handler(TraklyError)
async def trakly_error_handler(request: Request, exc: TraklyError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(sa_exc.OperationalError)
async def store_unavailable_handler(request: Request, exc: sa_exc.OperationalError):
    logger.error("Database unavailable: %s", exc)
    return JSONResponse(
        status_code=503,
        content=StoreUnavailable("Database unavailable, try again shortly").to_dict(),
    )


# Include Routers
app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(task.router, prefix="/api")


@app.get("/")
def read_root():
    return {"message": "Assignment Tracker API is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("trakly.main:app", host="0.0.0.0", port=8000, reload=True)
