from fastapi import APIRouter, HTTPException, status
from loguru import logger

from app.core.config import settings
from app.schemas.outpass import SweepResult
from app.services.overdue_job import sweep_once

router = APIRouter(prefix="/api/jobs", tags=["Background Jobs"])

@router.post("/sweep-overdue", response_model=SweepResult)
async def sweep_overdue(secret_key: str):
    """
    CRON JOB ENDPOINT.
    Marks every checked-out outpass past its return time as overdue and
    notifies the students. Same work as the in-process timer.
    """
    # 1. Security Check
    if not settings.JOB_SECRET or secret_key != settings.JOB_SECRET:
        logger.warning("Unauthorized access attempt to background job.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or missing Job Secret Key."
        )

    # 2. Sweep
    swept = await sweep_once()

    if not swept:
        return SweepResult(status="skipped", swept=0)

    return SweepResult(swept=len(swept), outpass_numbers=swept)
