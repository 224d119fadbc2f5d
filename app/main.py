# app/main.py

import asyncio
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.core.clock import system_clock
from app.core.config import settings
from app.core.database import test_connection, init_db, AsyncSessionLocal
from app.core.locks import KeyedLock
from app.core.rate_limiter import limiter
from app.services.auth_service import ensure_super_admin
from app.services.overdue_job import overdue_sweep_loop
from app.services.system_service import PolicyStore

from app.api.endpoints import (
    auth as auth_router,
    users as users_router,
    outpasses as outpasses_router,
    warden as warden_router,
    security as security_router,
    notifications as notifications_router,
    system as system_router,
    jobs as jobs_router,
    metrics as metrics_router,
)

# ------------------------------------------------------------
# LOGURU
# ------------------------------------------------------------
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
           "<level>{level: <8}</level> | "
           "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
           "<level>{message}</level>",
    colorize=True,
    backtrace=True,
    diagnose=settings.ENV != "prod",
)

app = FastAPI(
    title="Campus Outpass Backend",
    version="1.0.0",
    description="Outpass requests, warden approval and gate check-out/check-in.",
)

# Set at import so that dependencies work even when startup hooks don't run
app.state.limiter = limiter
app.state.clock = system_clock
app.state.policy_store = PolicyStore()
app.state.subject_locks = KeyedLock()
app.state.sweep_task = None

app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list({settings.FRONTEND_URL, "http://localhost:5173"}),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

for module in (
    auth_router,
    users_router,
    outpasses_router,
    warden_router,
    security_router,
    notifications_router,
    system_router,
    jobs_router,
    metrics_router,
):
    app.include_router(module.router)


# ------------------------------------------------------------
# LIFECYCLE
# ------------------------------------------------------------
async def _prepare_database():
    try:
        await test_connection()
    except Exception:
        logger.exception("Database unreachable; skipping table setup and seeding.")
        return

    await init_db()
    async with AsyncSessionLocal() as session:
        await ensure_super_admin(session)
        await app.state.policy_store.reload(session)


@app.on_event("startup")
async def on_startup():
    logger.info("Starting Campus Outpass Backend...")
    await _prepare_database()

    interval = settings.OVERDUE_SWEEP_INTERVAL_SECONDS
    if interval > 0:
        app.state.sweep_task = asyncio.create_task(overdue_sweep_loop(interval))
    else:
        logger.info("Overdue sweep timer disabled.")

    logger.success("Backend ready.")


@app.on_event("shutdown")
async def on_shutdown():
    task, app.state.sweep_task = app.state.sweep_task, None
    if task:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    logger.info("Backend shut down.")


@app.get("/", tags=["System"])
async def root():
    return {"status": "ok", "service": app.title, "version": app.version}
