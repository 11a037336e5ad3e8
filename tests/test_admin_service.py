"""Tests for the AdminService policy bounds and cleanup."""

import pytest
from pydantic import ValidationError

from conftest import ALICE_ID, BOB_ID
from otp_gateway.config import settings
from otp_gateway.exceptions import InvalidPolicy
from otp_gateway.services.admin_service import AdminService, PolicyUpdate


@pytest.fixture
def admin_service(otp_service) -> AdminService:
    return AdminService(otp_service)


@pytest.mark.asyncio
async def test_update_within_bounds(admin_service):
    policy = await admin_service.update_policy(4, 60)
    assert (policy.length, policy.ttl_seconds) == (4, 60)

    policy = await admin_service.get_policy()
    assert (policy.length, policy.ttl_seconds) == (4, 60)


@pytest.mark.asyncio
@pytest.mark.parametrize(("length", "ttl"), [(3, 300), (6, 59), (11, 300), (6, 86_401)])
async def test_update_out_of_bounds_is_rejected(admin_service, length, ttl):
    with pytest.raises(InvalidPolicy):
        await admin_service.update_policy(length, ttl)

    policy = await admin_service.get_policy()
    assert (policy.length, policy.ttl_seconds) == (6, 300)


@pytest.mark.asyncio
async def test_purge_principal_codes(admin_service, otp_service, code_repo):
    alice_code = await otp_service.generate(ALICE_ID, "op")
    bob_code = await otp_service.generate(BOB_ID, "op")

    assert await admin_service.purge_principal_codes(ALICE_ID) == 1
    assert await code_repo.find_by_code(alice_code) is None
    assert await code_repo.find_by_code(bob_code) is not None


def test_policy_update_schema_uses_configured_bounds():
    PolicyUpdate(length=settings.otp_min_length, ttl_seconds=settings.otp_max_ttl_seconds)
    PolicyUpdate(length=settings.otp_max_length, ttl_seconds=settings.otp_min_ttl_seconds)

    with pytest.raises(ValidationError):
        PolicyUpdate(length=settings.otp_max_length + 1, ttl_seconds=300)
    with pytest.raises(ValidationError):
        PolicyUpdate(length=6, ttl_seconds=settings.otp_min_ttl_seconds - 1)


@pytest.mark.asyncio
async def test_invalid_policy_chains_validation_error(admin_service):
    with pytest.raises(InvalidPolicy) as exc_info:
        await admin_service.update_policy(2, 10)
    assert isinstance(exc_info.value.__cause__, ValidationError)
