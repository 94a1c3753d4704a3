"""
Pytest configuration and fixtures for the leaderboard tests

Provides a throwaway SQLite database per test, a cipher bound to a test
master secret, a mocked RevenueCat client and helpers to seed startups.
"""

import pytest
from typing import Optional, Tuple
from unittest.mock import AsyncMock, Mock

from leaderboard.core.config import Settings
from leaderboard.core.database import Database
from leaderboard.core.encryption import CredentialCipher
from leaderboard.services.revenuecat_service import ParsedMetrics, RevenueCatService
from leaderboard.services.startup_repository import StartupRepository

MASTER_SECRET = "test-master-secret-for-leaderboard"
CRON_SECRET = "test-cron-secret"
VALID_API_KEY = "sk_test_valid_key_123"


@pytest.fixture
async def database(tmp_path):
    """Fresh SQLite database with all tables"""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'leaderboard_test.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def session_factory(database):
    return database.session_factory


@pytest.fixture
def cipher():
    return CredentialCipher(MASTER_SECRET)


@pytest.fixture
def fake_cipher():
    """Skips key derivation; every token decrypts to the same key"""
    fake = Mock(spec=CredentialCipher)
    fake.decrypt.return_value = "sk_test_shared"
    fake.encrypt.return_value = "encrypted-token"
    return fake


@pytest.fixture
def metrics_source():
    """RevenueCat client double; tests set fetch_metrics behaviour"""
    service = Mock(spec=RevenueCatService)
    service.fetch_metrics = AsyncMock(return_value=ParsedMetrics(mrr=10.0, revenue=100.0))
    service.validate_credentials = AsyncMock(return_value=True)
    service.lookup_app_icon = AsyncMock(return_value=None)
    return service


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        ENCRYPTION_KEY=MASTER_SECRET,
        CRON_SECRET=CRON_SECRET,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'api_test.db'}",
        SCHEDULER_ENABLED=False,
        REGISTRATION_RATE_LIMIT=3,
        LOG_LEVEL="DEBUG"
    )


@pytest.fixture
def seed_startup(session_factory, cipher):
    """Insert a startup with an encrypted key and optional metrics; returns its id"""

    async def _seed(
        name: str,
        project_id: Optional[str],
        api_key: str = VALID_API_KEY,
        metrics: Optional[Tuple[float, float]] = (100.0, 10.0),
        token: Optional[str] = None
    ) -> int:
        async with session_factory() as db:
            repository = StartupRepository(db)
            startup = await repository.create_entry(name=name, app_store_id="123456")
            await repository.upsert_credential(
                startup.id,
                token if token is not None else cipher.encrypt(api_key),
                project_id
            )
            if metrics is not None:
                total_revenue, mrr = metrics
                await repository.upsert_metrics(startup.id, total_revenue, mrr)
            await db.commit()
            return startup.id

    return _seed
