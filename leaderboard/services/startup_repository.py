"""
Persistence operations for startups, their API keys and metrics

The repository works on a caller-provided AsyncSession and never commits;
the refresh job and the registration flow decide transaction boundaries.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leaderboard.core.exceptions import DuplicateProjectError
from leaderboard.models.api_key import ApiKey
from leaderboard.models.revenue_metrics import RevenueMetrics
from leaderboard.models.startup import Startup
from leaderboard.schemas.startup import LeaderboardEntry, SortBy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntryCredential:
    """Everything the refresh job needs for one startup"""
    startup_id: int
    encrypted_api_key: str
    project_id: Optional[str]


def _to_decimal(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


class StartupRepository:
    """CRUD for the startups, api_keys and revenue_metrics tables"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_entry(
        self,
        name: str,
        website_url: Optional[str] = None,
        founder_username: Optional[str] = None,
        app_store_id: Optional[str] = None
    ) -> Startup:
        startup = Startup(
            name=name,
            website_url=website_url,
            founder_username=founder_username,
            app_store_id=app_store_id
        )
        self.db.add(startup)
        await self.db.flush()
        return startup

    async def get_entry(self, startup_id: int) -> Optional[Startup]:
        result = await self.db.execute(select(Startup).where(Startup.id == startup_id))
        return result.scalar_one_or_none()

    async def is_project_id_taken(self, project_id: Optional[str]) -> bool:
        """Whether another startup already uses this RevenueCat project"""
        normalized = (project_id or "").strip()
        if not normalized:
            return False

        result = await self.db.execute(
            select(func.count(ApiKey.id)).where(ApiKey.revenuecat_project_id == normalized)
        )
        return (result.scalar() or 0) > 0

    async def upsert_credential(
        self,
        startup_id: int,
        encrypted_api_key: str,
        project_id: Optional[str]
    ) -> None:
        """Store the encrypted key for a startup, replacing any previous one"""
        project_id = (project_id or "").strip() or None

        if project_id:
            owner = await self.db.execute(
                select(ApiKey.startup_id).where(ApiKey.revenuecat_project_id == project_id)
            )
            owner_id = owner.scalar_one_or_none()
            if owner_id is not None and owner_id != startup_id:
                raise DuplicateProjectError()

        result = await self.db.execute(select(ApiKey).where(ApiKey.startup_id == startup_id))
        api_key = result.scalar_one_or_none()
        if api_key is None:
            api_key = ApiKey(startup_id=startup_id)
            self.db.add(api_key)

        api_key.revenuecat_api_key = encrypted_api_key
        api_key.revenuecat_project_id = project_id
        await self.db.flush()

    async def upsert_metrics(
        self,
        startup_id: int,
        total_revenue,
        mrr,
        timestamp: Optional[datetime] = None
    ) -> None:
        """Overwrite the metrics snapshot for a startup"""
        timestamp = timestamp or datetime.now(timezone.utc)

        result = await self.db.execute(
            select(RevenueMetrics).where(RevenueMetrics.startup_id == startup_id)
        )
        metrics = result.scalar_one_or_none()
        if metrics is None:
            metrics = RevenueMetrics(startup_id=startup_id)
            self.db.add(metrics)

        metrics.total_revenue = _to_decimal(total_revenue)
        metrics.mrr = _to_decimal(mrr)
        metrics.last_updated = timestamp
        await self.db.flush()

        logger.debug(
            f"Updated metrics for startup {startup_id}: "
            f"total_revenue={metrics.total_revenue}, mrr={metrics.mrr}"
        )

    async def get_metrics(self, startup_id: int) -> Optional[RevenueMetrics]:
        result = await self.db.execute(
            select(RevenueMetrics).where(RevenueMetrics.startup_id == startup_id)
        )
        return result.scalar_one_or_none()

    async def get_credential(self, startup_id: int) -> Optional[ApiKey]:
        result = await self.db.execute(select(ApiKey).where(ApiKey.startup_id == startup_id))
        return result.scalar_one_or_none()

    async def list_entries_with_credentials(self) -> List[EntryCredential]:
        """All stored API keys, including rows that lack a project id"""
        result = await self.db.execute(
            select(
                ApiKey.startup_id,
                ApiKey.revenuecat_api_key,
                ApiKey.revenuecat_project_id
            ).order_by(ApiKey.startup_id)
        )
        return [
            EntryCredential(
                startup_id=row.startup_id,
                encrypted_api_key=row.revenuecat_api_key,
                project_id=row.revenuecat_project_id
            )
            for row in result
        ]

    async def delete_entry(self, startup_id: int) -> bool:
        """
        Delete a startup with its API key and metrics.

        Children are deleted explicitly so no secret is orphaned even where
        the database does not enforce ON DELETE CASCADE.
        """
        await self.db.execute(delete(RevenueMetrics).where(RevenueMetrics.startup_id == startup_id))
        await self.db.execute(delete(ApiKey).where(ApiKey.startup_id == startup_id))
        result = await self.db.execute(delete(Startup).where(Startup.id == startup_id))
        return (result.rowcount or 0) > 0

    async def list_leaderboard(self, sort_by: SortBy = SortBy.REVENUE) -> List[LeaderboardEntry]:
        """Startups with their metrics, highest first; missing metrics read as zero"""
        total_revenue = func.coalesce(RevenueMetrics.total_revenue, 0)
        mrr = func.coalesce(RevenueMetrics.mrr, 0)
        primary = mrr if sort_by == SortBy.MRR else total_revenue

        result = await self.db.execute(
            select(
                Startup,
                total_revenue.label("total_revenue"),
                mrr.label("mrr"),
                RevenueMetrics.last_updated
            )
            .outerjoin(RevenueMetrics, RevenueMetrics.startup_id == Startup.id)
            .order_by(primary.desc(), Startup.id.asc())
        )

        return [
            LeaderboardEntry(
                id=row.Startup.id,
                name=row.Startup.name,
                website_url=row.Startup.website_url,
                founder_username=row.Startup.founder_username,
                app_store_id=row.Startup.app_store_id,
                total_revenue=_to_decimal(row.total_revenue),
                mrr=_to_decimal(row.mrr),
                last_updated=row.last_updated,
                created_at=row.Startup.created_at
            )
            for row in result
        ]
