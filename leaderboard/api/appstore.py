"""
App Store icon redirect, so the leaderboard can show app artwork
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
import logging

from leaderboard.api.deps import get_revenuecat_service
from leaderboard.services.revenuecat_service import RevenueCatService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appstore", tags=["appstore"])


@router.get("/icon")
async def get_app_icon(
    id: str = Query(default="", description="Numeric App Store app id"),
    rc_service: RevenueCatService = Depends(get_revenuecat_service)
):
    """Redirect to the app's 100px App Store artwork"""
    if not id:
        raise HTTPException(status_code=400, detail="Missing id")
    if not id.isdigit():
        raise HTTPException(status_code=400, detail="App Store ID must contain only numbers")

    artwork = await rc_service.lookup_app_icon(id)
    if not artwork:
        raise HTTPException(status_code=404, detail="Artwork not found")

    return RedirectResponse(
        url=artwork,
        status_code=302,
        headers={'Cache-Control': 'public, max-age=3600'}
    )
