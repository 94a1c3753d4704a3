"""
Main API router that includes all endpoint routers
"""

from fastapi import APIRouter

from leaderboard.api import appstore, cron, scheduler_status, startups

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# Include all route modules
api_router.include_router(startups.router)
api_router.include_router(cron.router)
api_router.include_router(scheduler_status.router)
api_router.include_router(appstore.router)


@api_router.get("/health")
async def api_health():
    """API health check endpoint"""
    return {
        "status": "healthy",
        "message": "Leaderboard API is running",
        "endpoints": {
            "startups": "/api/v1/startups",
            "cron": "/api/v1/cron/update-metrics",
            "scheduler": "/api/v1/scheduler",
            "appstore": "/api/v1/appstore/icon"
        }
    }
