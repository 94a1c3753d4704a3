"""
Metrics Refresh Service

Re-fetches RevenueCat metrics for every registered startup.  It runs once a
day from the scheduler or the cron endpoint and:

1. Loads every stored API key with its project id
2. Decrypts each key and fetches the latest overview metrics
3. Overwrites the startup's metrics snapshot on success
4. Deletes the startup when RevenueCat rejects its key outright
5. Records every other failure and leaves the startup for the next run

Key Features:
- One startup's failure never stops the batch
- Bounded concurrency, each startup in its own session and transaction
- A decryption failure is never treated as a revoked key, so a wrong
  ENCRYPTION_KEY cannot wipe the leaderboard
- One run at a time per process
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leaderboard.core.encryption import CredentialCipher
from leaderboard.core.exceptions import (
    CipherError,
    InvalidCredentialError,
    MalformedResponseError,
    RefreshInProgressError,
    TransientError,
)
from leaderboard.schemas.refresh import RefreshError, RefreshReport
from leaderboard.services.revenuecat_service import RevenueCatService
from leaderboard.services.startup_repository import EntryCredential, StartupRepository

logger = logging.getLogger(__name__)


class EntryOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REMOVED = "removed"


@dataclass(frozen=True)
class EntryResult:
    """What happened to one startup during a run"""
    startup_id: int
    outcome: EntryOutcome
    message: Optional[str] = None


def build_report(results: List[EntryResult]) -> RefreshReport:
    """Fold per-entry results into the run report"""
    report = RefreshReport()
    for result in results:
        if result.outcome == EntryOutcome.SUCCEEDED:
            report.succeeded += 1
        elif result.outcome == EntryOutcome.REMOVED:
            report.removed += 1
        else:
            report.failed += 1
            report.errors.append(
                RefreshError(
                    startup_id=result.startup_id,
                    message=result.message or "Unknown error"
                )
            )
    return report


class MetricsRefreshService:
    """Daily reconciliation of stored metrics against RevenueCat"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        metrics_source: RevenueCatService,
        cipher: CredentialCipher,
        max_concurrency: int = 4,
        repository_class: Callable[[AsyncSession], StartupRepository] = StartupRepository
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.session_factory = session_factory
        self.metrics_source = metrics_source
        self.cipher = cipher
        self.max_concurrency = max_concurrency
        self.repository_class = repository_class
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run(self) -> RefreshReport:
        """
        Refresh every startup.

        Raises:
            RefreshInProgressError: another run is still going in this process
        """
        if self._lock.locked():
            raise RefreshInProgressError()

        async with self._lock:
            return await self._run()

    async def _run(self) -> RefreshReport:
        start_time = time.monotonic()
        logger.info("Starting metrics refresh for all startups")

        entries = await self._load_entries()
        logger.info(f"Found {len(entries)} startups with stored API keys")

        if not entries:
            return RefreshReport()

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(entry: EntryCredential) -> EntryResult:
            async with semaphore:
                return await self._refresh_entry(entry)

        results = await asyncio.gather(*(bounded(entry) for entry in entries))
        report = build_report(results)

        processing_time = time.monotonic() - start_time
        logger.info(
            f"Metrics refresh completed in {processing_time:.1f}s: "
            f"{report.succeeded} succeeded, {report.failed} failed, {report.removed} removed"
        )
        return report

    async def _load_entries(self) -> List[EntryCredential]:
        async with self.session_factory() as db:
            return await self.repository_class(db).list_entries_with_credentials()

    async def _refresh_entry(self, entry: EntryCredential) -> EntryResult:
        """Decrypt, fetch and store one startup; never raises"""
        startup_id = entry.startup_id

        if not entry.project_id:
            logger.error(f"Startup {startup_id} has no RevenueCat project ID; skipping")
            return EntryResult(startup_id, EntryOutcome.FAILED, "Project ID is missing")

        try:
            try:
                api_key = await self._decrypt(entry.encrypted_api_key)
            except CipherError as e:
                logger.error(f"Could not decrypt API key for startup {startup_id}: {e.message}")
                return EntryResult(
                    startup_id, EntryOutcome.FAILED, f"Failed to decrypt API key: {e.message}"
                )

            try:
                metrics = await self.metrics_source.fetch_metrics(api_key, entry.project_id)
            except InvalidCredentialError:
                logger.warning(
                    f"Invalid API key detected for startup {startup_id}. Deleting startup..."
                )
                return await self._remove_entry(startup_id)
            except (TransientError, MalformedResponseError) as e:
                logger.error(f"Failed to fetch metrics for startup {startup_id}: {e.message}")
                return EntryResult(startup_id, EntryOutcome.FAILED, e.message)

            return await self._store_metrics(startup_id, metrics.revenue, metrics.mrr)

        except Exception as e:
            logger.error(f"Unexpected error refreshing startup {startup_id}: {e}", exc_info=True)
            return EntryResult(startup_id, EntryOutcome.FAILED, f"Unexpected error: {type(e).__name__}")

    async def _decrypt(self, token: str) -> str:
        # PBKDF2 is deliberately slow; keep it off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.cipher.decrypt, token)

    async def _store_metrics(self, startup_id: int, total_revenue: float, mrr: float) -> EntryResult:
        async with self.session_factory() as db:
            try:
                await self.repository_class(db).upsert_metrics(
                    startup_id,
                    total_revenue,
                    mrr,
                    timestamp=datetime.now(timezone.utc)
                )
                await db.commit()
            except Exception as e:
                await db.rollback()
                logger.error(f"Failed to store metrics for startup {startup_id}: {e}", exc_info=True)
                return EntryResult(
                    startup_id, EntryOutcome.FAILED, f"Failed to store metrics: {type(e).__name__}"
                )

        logger.debug(f"Refreshed metrics for startup {startup_id}")
        return EntryResult(startup_id, EntryOutcome.SUCCEEDED)

    async def _remove_entry(self, startup_id: int) -> EntryResult:
        async with self.session_factory() as db:
            try:
                deleted = await self.repository_class(db).delete_entry(startup_id)
                await db.commit()
            except Exception as e:
                await db.rollback()
                logger.error(f"Failed to delete startup {startup_id}: {e}", exc_info=True)
                return EntryResult(
                    startup_id, EntryOutcome.FAILED, f"Failed to delete startup: {type(e).__name__}"
                )

        if deleted:
            logger.info(f"Deleted startup {startup_id} due to invalid API key")
        else:
            logger.info(f"Startup {startup_id} was already gone when removing its invalid API key")
        return EntryResult(startup_id, EntryOutcome.REMOVED)
