"""
Scheduler Status API Endpoints

Provides endpoints to monitor the background metrics refresh.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as http_status

from leaderboard.api.deps import get_scheduler
from leaderboard.core.scheduler import BackgroundScheduler
from leaderboard.schemas.common import DataResponse, ErrorResponse

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.get(
    "/status",
    response_model=DataResponse,
    responses={
        200: {"description": "Scheduler status retrieved successfully"},
        500: {"description": "Internal server error", "model": ErrorResponse}
    }
)
async def get_scheduler_status(scheduler: BackgroundScheduler = Depends(get_scheduler)):
    """Get status of the background scheduler and its jobs"""
    job_status = scheduler.get_job_status()

    return DataResponse(data={
        "scheduler": job_status,
        "system_health": "healthy" if job_status["status"] == "running" else "degraded",
        "message": (
            "Background processing is active"
            if job_status["status"] == "running"
            else "Background processing is not running"
        )
    })


@router.get(
    "/history",
    response_model=DataResponse,
    responses={
        200: {"description": "Job history retrieved successfully"},
        500: {"description": "Internal server error", "model": ErrorResponse}
    }
)
async def get_job_history(
    limit: int = Query(10, ge=1, le=100),
    scheduler: BackgroundScheduler = Depends(get_scheduler)
):
    """Most recent metrics refresh runs, newest first"""
    try:
        logs = await scheduler.get_recent_job_logs(limit=limit)
    except Exception:
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get job history"
        )
    return DataResponse(data=logs)
