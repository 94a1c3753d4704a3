"""
Registration of new leaderboard startups
"""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leaderboard.core.encryption import CredentialCipher
from leaderboard.core.exceptions import (
    CredentialRejectedError,
    DuplicateProjectError,
    MetricsSourceError,
)
from leaderboard.schemas.startup import StartupCreate
from leaderboard.services.revenuecat_service import ParsedMetrics, RevenueCatService
from leaderboard.services.startup_repository import StartupRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationResult:
    startup_id: int
    name: str
    metrics: ParsedMetrics


class RegistrationService:
    """Validates a RevenueCat key, then stores the startup, its encrypted key and metrics"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        metrics_source: RevenueCatService,
        cipher: CredentialCipher
    ):
        self.session_factory = session_factory
        self.metrics_source = metrics_source
        self.cipher = cipher

    async def register(self, request: StartupCreate) -> RegistrationResult:
        """
        Register a startup.

        Raises:
            DuplicateProjectError: the RevenueCat project already backs a startup
            CredentialRejectedError: the key cannot read the project's metrics
        """
        async with self.session_factory() as db:
            repository = StartupRepository(db)

            # Checked before the key is validated, encrypted or stored
            if await repository.is_project_id_taken(request.project_id):
                raise DuplicateProjectError()

            is_valid = await self.metrics_source.validate_credentials(
                request.revenuecat_api_key, request.project_id
            )
            if not is_valid:
                raise CredentialRejectedError()

            try:
                metrics = await self.metrics_source.fetch_metrics(
                    request.revenuecat_api_key, request.project_id
                )
            except MetricsSourceError as e:
                logger.warning(f"Initial metrics fetch failed for project {request.project_id}: {e}")
                raise CredentialRejectedError() from e

            try:
                startup = await repository.create_entry(
                    name=request.name,
                    website_url=request.website_url,
                    founder_username=request.founder_username,
                    app_store_id=request.app_store_id
                )

                loop = asyncio.get_running_loop()
                encrypted_api_key = await loop.run_in_executor(
                    None, self.cipher.encrypt, request.revenuecat_api_key
                )
                await repository.upsert_credential(startup.id, encrypted_api_key, request.project_id)
                await repository.upsert_metrics(startup.id, metrics.revenue, metrics.mrr)

                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                # Only a project claimed between check and commit is a duplicate
                if await self._is_project_id_taken(request.project_id):
                    logger.warning(f"Project {request.project_id} registered concurrently")
                    raise DuplicateProjectError() from e
                logger.error(
                    f"Failed to store startup for project {request.project_id}: {type(e).__name__}",
                    exc_info=True
                )
                raise
            except Exception:
                await db.rollback()
                raise

            logger.info(f"Registered startup {startup.id} ({startup.name})")
            return RegistrationResult(startup_id=startup.id, name=startup.name, metrics=metrics)

    async def _is_project_id_taken(self, project_id: str) -> bool:
        async with self.session_factory() as db:
            return await StartupRepository(db).is_project_id_taken(project_id)
