"""
Cron API Endpoints

Entry point for an external scheduler (e.g. Vercel Cron) to run the daily
metrics refresh.  Requests must carry `Authorization: Bearer <CRON_SECRET>`.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi import status as http_status

from leaderboard.api.deps import get_scheduler, get_settings
from leaderboard.core.config import Settings
from leaderboard.core.exceptions import RefreshInProgressError
from leaderboard.core.scheduler import BackgroundScheduler
from leaderboard.core.security import create_credentials_exception, verify_bearer_token
from leaderboard.schemas.common import DataResponse, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


def require_cron_secret(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings)
) -> None:
    """Reject the request before any work unless the bearer token matches"""
    if not verify_bearer_token(authorization, settings.CRON_SECRET):
        logger.warning("Rejected metrics refresh trigger with missing or invalid token")
        raise create_credentials_exception()


@router.api_route(
    "/update-metrics",
    methods=["GET", "POST"],
    response_model=DataResponse,
    dependencies=[Depends(require_cron_secret)],
    responses={
        200: {"description": "Metrics refresh completed"},
        401: {"description": "Missing or invalid cron secret", "model": ErrorResponse},
        409: {"description": "A refresh is already running", "model": ErrorResponse},
        500: {"description": "Internal server error", "model": ErrorResponse}
    }
)
async def update_metrics(scheduler: BackgroundScheduler = Depends(get_scheduler)):
    """
    Refresh metrics for every startup

    Returns counts of refreshed, failed and removed startups together with
    the per-startup errors.  Startups whose API key RevenueCat rejects are
    removed from the leaderboard.
    """
    try:
        report = await scheduler.run_refresh_job(triggered_manually=True)
    except RefreshInProgressError as e:
        raise HTTPException(
            status_code=http_status.HTTP_409_CONFLICT,
            detail=e.message
        )
    except Exception as e:
        logger.error(f"Cron job error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update metrics"
        )

    message = "No startups to update" if report.total == 0 else "Metrics update completed"
    return DataResponse(message=message, data=report.model_dump())
