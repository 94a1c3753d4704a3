"""
Tests for startup registration
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from leaderboard.core.exceptions import (
    CredentialRejectedError,
    DuplicateProjectError,
    TransientError,
)
from leaderboard.schemas.startup import StartupCreate
from leaderboard.services.registration_service import RegistrationService
from leaderboard.services.revenuecat_service import ParsedMetrics
from leaderboard.services.startup_repository import StartupRepository

VALID_API_KEY = "sk_test_registration_key"


def registration(**overrides):
    data = {
        "name": "Acme Apps",
        "appStoreId": "284882215",
        "websiteUrl": "https://acme.example.com",
        "founderUsername": "@acme",
        "revenuecatApiKey": VALID_API_KEY,
        "projectId": "proj1a2b3c",
    }
    data.update(overrides)
    return StartupCreate(**data)


async def count_startups(session_factory):
    async with session_factory() as db:
        return len(await StartupRepository(db).list_leaderboard())


@pytest.mark.asyncio
async def test_register_stores_encrypted_key_and_metrics(session_factory, metrics_source, cipher):
    metrics_source.fetch_metrics.return_value = ParsedMetrics(mrr=250.0, revenue=4200.5)
    service = RegistrationService(session_factory, metrics_source, cipher)

    result = await service.register(registration())

    assert result.name == "Acme Apps"
    assert result.metrics == ParsedMetrics(mrr=250.0, revenue=4200.5)

    async with session_factory() as db:
        repository = StartupRepository(db)
        startup = await repository.get_entry(result.startup_id)
        credential = await repository.get_credential(result.startup_id)
        metrics = await repository.get_metrics(result.startup_id)

    assert startup.founder_username == "acme"
    assert startup.app_store_id == "284882215"
    assert credential.revenuecat_project_id == "proj1a2b3c"
    assert VALID_API_KEY not in credential.revenuecat_api_key
    assert cipher.decrypt(credential.revenuecat_api_key) == VALID_API_KEY
    assert metrics.total_revenue == Decimal("4200.50")
    assert metrics.mrr == Decimal("250.00")


@pytest.mark.asyncio
async def test_duplicate_project_rejected_before_validation(session_factory, metrics_source, cipher, seed_startup):
    await seed_startup("Existing", "proj1a2b3c")
    service = RegistrationService(session_factory, metrics_source, cipher)

    with pytest.raises(DuplicateProjectError) as exc_info:
        await service.register(registration(name="Copycat"))

    assert exc_info.value.status_code == 409
    metrics_source.validate_credentials.assert_not_called()
    metrics_source.fetch_metrics.assert_not_called()
    assert await count_startups(session_factory) == 1


@pytest.mark.asyncio
async def test_rejected_credentials(session_factory, metrics_source, cipher):
    metrics_source.validate_credentials.return_value = False
    service = RegistrationService(session_factory, metrics_source, cipher)

    with pytest.raises(CredentialRejectedError) as exc_info:
        await service.register(registration())

    assert exc_info.value.status_code == 400
    assert "Invalid RevenueCat API key or Project ID" in exc_info.value.message
    metrics_source.fetch_metrics.assert_not_called()
    assert await count_startups(session_factory) == 0


@pytest.mark.asyncio
async def test_initial_fetch_failure_stores_nothing(session_factory, metrics_source, cipher):
    metrics_source.fetch_metrics.side_effect = TransientError("Request timed out")
    service = RegistrationService(session_factory, metrics_source, cipher)

    with pytest.raises(CredentialRejectedError):
        await service.register(registration())

    assert await count_startups(session_factory) == 0


@pytest.mark.asyncio
async def test_failure_mid_transaction_rolls_back(session_factory, metrics_source, fake_cipher):
    fake_cipher.encrypt.side_effect = RuntimeError("entropy source unavailable")
    service = RegistrationService(session_factory, metrics_source, fake_cipher)

    with pytest.raises(RuntimeError):
        await service.register(registration())

    assert await count_startups(session_factory) == 0


@pytest.mark.asyncio
async def test_same_project_cannot_register_twice(session_factory, metrics_source, cipher):
    service = RegistrationService(session_factory, metrics_source, cipher)
    await service.register(registration())

    with pytest.raises(DuplicateProjectError):
        await service.register(registration(name="Second Try", revenuecatApiKey="sk_test_other_key"))

    assert await count_startups(session_factory) == 1


@pytest.mark.asyncio
async def test_registration_race_is_reported_as_duplicate(session_factory, metrics_source, cipher, seed_startup):
    service = RegistrationService(session_factory, metrics_source, cipher)

    async def claim_project(api_key, project_id):
        # Another registration commits the same project after the duplicate check
        await seed_startup("Winner", project_id)
        return True

    metrics_source.validate_credentials.side_effect = claim_project

    with pytest.raises(DuplicateProjectError):
        await service.register(registration(name="Loser"))

    async with session_factory() as db:
        names = [entry.name for entry in await StartupRepository(db).list_leaderboard()]
    assert names == ["Winner"]


@pytest.mark.asyncio
async def test_constraint_violation_is_not_a_duplicate(session_factory, metrics_source, fake_cipher):
    # Negative revenue trips the metrics check constraint, not the project index
    metrics_source.fetch_metrics.return_value = ParsedMetrics(mrr=5.0, revenue=-12.5)
    service = RegistrationService(session_factory, metrics_source, fake_cipher)

    with pytest.raises(IntegrityError):
        await service.register(registration())

    assert await count_startups(session_factory) == 0
    async with session_factory() as db:
        assert await StartupRepository(db).is_project_id_taken("proj1a2b3c") is False
