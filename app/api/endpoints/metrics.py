# app/api/endpoints/metrics.py

import time

import psutil
from fastapi import APIRouter, Request
from loguru import logger

from app.core.database import test_connection

router = APIRouter(prefix="/api/metrics", tags=["System"])

# Uptime is measured from module import
START_TIME = time.time()


def _disk_percent() -> float:
    try:
        return psutil.disk_usage("/").percent
    except OSError:
        return 0


@router.get("")
async def metrics(request: Request):
    db_status = "Disconnected"
    db_latency = 0
    started = time.perf_counter()
    try:
        await test_connection()
        db_status = "Connected"
        db_latency = round((time.perf_counter() - started) * 1000, 2)
    except Exception:
        logger.exception("Metrics: database ping failed")
        db_status = "Error"

    state = request.app.state
    policy = state.policy_store.current
    sweep = state.sweep_task

    return {
        "status": "Online",
        "version": request.app.version,
        "cpu": psutil.cpu_percent(interval=None),
        "ram": psutil.virtual_memory().percent,
        "disk": _disk_percent(),
        "uptime": int(time.time() - START_TIME),
        "database": db_status,
        "db_latency": db_latency,
        "requests_allowed": policy.allow_requests,
        "overdue_threshold": policy.overdue_threshold,
        "policy_updated_at": policy.updated_at,
        "overdue_sweep": "running" if sweep and not sweep.done() else "disabled",
    }
