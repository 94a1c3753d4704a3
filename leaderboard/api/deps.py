"""
Shared FastAPI dependencies

Every process-wide object is created in the application lifespan and kept
on app.state; tests swap them through app.dependency_overrides.
"""

from fastapi import Request

from leaderboard.core.config import Settings
from leaderboard.core.rate_limit import FixedWindowRateLimiter
from leaderboard.core.scheduler import BackgroundScheduler
from leaderboard.services.registration_service import RegistrationService
from leaderboard.services.revenuecat_service import RevenueCatService


def get_settings(request: Request) -> Settings:
    """Dependency to get the settings resolved at startup"""
    return request.app.state.settings


def get_revenuecat_service(request: Request) -> RevenueCatService:
    """Dependency to get the RevenueCat client"""
    return request.app.state.revenuecat_service


def get_registration_service(request: Request) -> RegistrationService:
    """Dependency to get the registration service"""
    return request.app.state.registration_service


def get_scheduler(request: Request) -> BackgroundScheduler:
    """Dependency to get the background scheduler"""
    return request.app.state.scheduler


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    """Dependency to get the registration rate limiter"""
    return request.app.state.rate_limiter
