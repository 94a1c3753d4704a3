"""
Startup API endpoints: the public leaderboard and registration
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from leaderboard.api.deps import get_rate_limiter, get_registration_service
from leaderboard.core.database import get_db
from leaderboard.core.exceptions import RegistrationError
from leaderboard.core.rate_limit import FixedWindowRateLimiter, get_client_identifier
from leaderboard.schemas.common import ErrorResponse, ListResponse
from leaderboard.schemas.startup import (
    MetricsResponse,
    RegistrationResponse,
    SortBy,
    StartupCreate,
    StartupSummary,
)
from leaderboard.services.registration_service import RegistrationService
from leaderboard.services.startup_repository import StartupRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/startups", tags=["startups"])


def enforce_registration_rate_limit(
    request: Request,
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter)
) -> None:
    """Limit registrations per client to slow down spam"""
    client_id = get_client_identifier(request)
    result = limiter.check(client_id)
    if result.allowed:
        return

    logger.warning(f"Rate limit exceeded for {client_id}")
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=f"Rate limit exceeded. Please try again in {result.retry_after} seconds.",
        headers={
            "Retry-After": str(result.retry_after),
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": datetime.fromtimestamp(result.reset_at, tz=timezone.utc).isoformat(),
        }
    )


@router.get(
    "",
    response_model=ListResponse,
    responses={
        200: {"description": "Leaderboard retrieved successfully"},
        500: {"description": "Internal server error", "model": ErrorResponse}
    }
)
async def get_leaderboard(
    sort_by: SortBy = Query(SortBy.REVENUE, description="Rank by total revenue or MRR"),
    db: AsyncSession = Depends(get_db)
):
    """Startups ranked by revenue or MRR, highest first"""
    try:
        entries = await StartupRepository(db).list_leaderboard(sort_by)
    except Exception as e:
        logger.error(f"Error loading leaderboard: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load leaderboard"
        )

    return ListResponse(
        data=[entry.model_dump(mode="json") for entry in entries],
        count=len(entries),
        sort_by=sort_by.value
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=RegistrationResponse,
    dependencies=[Depends(enforce_registration_rate_limit)],
    responses={
        201: {"description": "Startup registered"},
        400: {"description": "Invalid input or rejected API key", "model": ErrorResponse},
        409: {"description": "RevenueCat project already registered", "model": ErrorResponse},
        429: {"description": "Too many requests", "model": ErrorResponse},
        500: {"description": "Internal server error", "model": ErrorResponse}
    }
)
async def add_startup(
    request: StartupCreate,
    registration_service: RegistrationService = Depends(get_registration_service)
):
    """
    Register a startup with a read-only RevenueCat API key

    The key is checked against RevenueCat, encrypted and stored; the first
    metrics snapshot is returned.
    """
    try:
        result = await registration_service.register(request)
    except RegistrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        # Internal details stay in the logs
        logger.error(f"Error adding startup: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add startup. Please try again."
        )

    return RegistrationResponse(
        startup=StartupSummary(id=result.startup_id, name=result.name),
        metrics=MetricsResponse(mrr=result.metrics.mrr, revenue=result.metrics.revenue)
    )
