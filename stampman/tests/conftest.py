"""Pytest fixtures for Stampman tests."""

import pytest

from stampman.models import RewardDefinition, RewardType
from stampman.services.ledger import LedgerService
from stampman.services.stamps import StampCardService

TENANT = "tenant-a"


@pytest.fixture
def account(db):
    """Enrolled account with zero balance."""
    return LedgerService.enroll(TENANT, "cust-001")


@pytest.fixture
def account_b(db):
    """Second account in the same tenant."""
    return LedgerService.enroll(TENANT, "cust-002")


@pytest.fixture
def funded_account(account):
    """Account holding 100 points."""
    return LedgerService.earn(account.pk, 100, "Opening balance")


@pytest.fixture
def card(account):
    """Ten-stamp coffee card."""
    return StampCardService.issue_card(
        account.pk,
        card_name="Coffee Card",
        total_stamps=10,
        reward_description="Free coffee",
    )


@pytest.fixture
def reward(db):
    """Unlimited 50-point discount reward."""
    return RewardDefinition.objects.create(
        tenant_id=TENANT,
        name="£5 off",
        points_cost=50,
        reward_type=RewardType.DISCOUNT,
        discount_amount="5.00",
    )


@pytest.fixture
def limited_reward(db):
    """50-point reward that can be redeemed once."""
    return RewardDefinition.objects.create(
        tenant_id=TENANT,
        name="Limited mug",
        points_cost=50,
        reward_type=RewardType.FREE_ITEM,
        max_redemptions=1,
    )


@pytest.fixture
def stamp_reward(db):
    """Reward earned through the QR flow after three scans."""
    return RewardDefinition.objects.create(
        tenant_id=TENANT,
        name="Free smoothie",
        points_cost=3,
        reward_type=RewardType.FREE_ITEM,
    )
