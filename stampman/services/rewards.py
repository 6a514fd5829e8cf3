"""Reward redemption coordinator — reward inventory + points debit in one unit."""

import logging
from dataclasses import dataclass

from django.db.models import F
from django.utils import timezone

from stampman.exceptions import StampmanError
from stampman.gates import Gates
from stampman.models import (
    LoyaltyAccount,
    LoyaltyTransaction,
    RedemptionStatus,
    RewardDefinition,
    RewardRedemption,
)
from stampman.services.ledger import LedgerService
from stampman.services.store import LedgerStore, get_store
from stampman.signals import reward_redeemed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedemptionResult:
    """Everything a successful redemption produced."""

    reward: RewardDefinition
    account: LoyaltyAccount
    ledger_transaction: LoyaltyTransaction
    redemption: RewardRedemption


class RedemptionService:
    """
    Redeem rewards with points.

    Lock order is global and fixed: reward row first, then account row.
    Two coordinators racing on the same (reward, account) therefore queue
    on the reward lock instead of deadlocking.
    """

    @classmethod
    def redeem(
        cls,
        reward_id: int,
        account_id: int,
        store_id: str = "",
        actor_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> RedemptionResult:
        """
        Redeem a reward for an account.

        Steps (one unit of work, all or nothing):
            1. Lock reward, check availability
            2. Lock account, check balance
            3. Increment reward.current_redemptions
            4. Debit points with reason "Redeemed: <name>"
            5. Create RewardRedemption (status ACTIVE)

        Raises:
            StampmanError: REWARD_NOT_FOUND, REWARD_UNAVAILABLE,
                ACCOUNT_NOT_FOUND, INSUFFICIENT_POINTS, CONCURRENT_MODIFICATION
        """
        store = get_store(store)

        with store.unit_of_work():
            reward = cls.lock_reward(reward_id, store=store)
            try:
                Gates.reward_available(reward, timezone.now())
            except StampmanError:
                logger.warning("Reward %s unavailable for account %s", reward_id, account_id)
                raise

            account = LedgerService.lock_account(account_id, store=store)
            if reward.tenant_id != account.tenant_id:
                raise StampmanError(
                    "REWARD_NOT_FOUND", pk=reward_id, tenant_id=account.tenant_id
                )
            Gates.sufficient_points(account, reward.points_cost)

            reward.current_redemptions += 1
            reward.save(using=store.using, update_fields=["current_redemptions", "updated_at"])

            tx = LedgerService.debit(
                store,
                account,
                reward.points_cost,
                f"Redeemed: {reward.name}",
                store_id,
                actor_id,
            )

            redemption = store.create(
                RewardRedemption,
                tenant_id=account.tenant_id,
                account=account,
                reward=reward,
                ledger_transaction=tx,
                points_spent=reward.points_cost,
                status=RedemptionStatus.ACTIVE,
                store_id=store_id or "",
                actor_id=actor_id or "",
            )
            store.on_commit(
                lambda: reward_redeemed.send(sender=RewardRedemption, redemption=redemption)
            )

        logger.info(
            "Reward %s redeemed by account %s for %s pts (redemption %s)",
            reward.pk, account.pk, reward.points_cost, redemption.pk,
        )
        return RedemptionResult(
            reward=reward,
            account=account,
            ledger_transaction=tx,
            redemption=redemption,
        )

    @classmethod
    def mark_used(
        cls,
        redemption_id: int,
        store_id: str = "",
        actor_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> RewardRedemption:
        """
        ACTIVE -> USED, single winner.

        Raises:
            StampmanError: REDEMPTION_NOT_ACTIVE if already used or unknown
        """
        store = get_store(store)
        with store.unit_of_work():
            updated = store.conditional_update(
                store.filter(RewardRedemption, pk=redemption_id, status=RedemptionStatus.ACTIVE),
                status=RedemptionStatus.USED,
                used_at=timezone.now(),
                used_store_id=store_id or "",
                used_by=actor_id or "",
            )
            if updated == 0:
                logger.warning("Redemption %s not active, use rejected", redemption_id)
                raise StampmanError("REDEMPTION_NOT_ACTIVE", redemption_id=redemption_id)
            redemption = store.load(RewardRedemption, "REDEMPTION_NOT_ACTIVE", pk=redemption_id)

        logger.info("Redemption %s used at store %s", redemption_id, store_id or "-")
        return redemption

    @classmethod
    def lock_reward(cls, reward_id: int, *, store: LedgerStore) -> RewardDefinition:
        """Reward under row lock. MUST be called inside store.unit_of_work()."""
        return store.lock_and_load(RewardDefinition, "REWARD_NOT_FOUND", pk=reward_id)

    # ======================================================================
    # Reads
    # ======================================================================

    @classmethod
    def get_reward(cls, reward_id: int) -> RewardDefinition | None:
        try:
            return RewardDefinition.objects.get(pk=reward_id)
        except RewardDefinition.DoesNotExist:
            return None

    @classmethod
    def available_rewards(cls, tenant_id: str, points: int | None = None) -> list[RewardDefinition]:
        """
        Rewards redeemable right now, optionally limited to those a balance
        of `points` can afford.
        """
        now = timezone.now()
        qs = RewardDefinition.objects.filter(tenant_id=tenant_id, is_active=True).exclude(
            max_redemptions__isnull=False,
            current_redemptions__gte=F("max_redemptions"),
        )
        if points is not None:
            qs = qs.filter(points_cost__lte=points)
        return [reward for reward in qs if reward.is_available(now)]

    @classmethod
    def redemptions_for_account(
        cls,
        account_id: int,
        status: str | None = None,
    ) -> list[RewardRedemption]:
        qs = RewardRedemption.objects.filter(account_id=account_id).select_related("reward")
        if status:
            qs = qs.filter(status=status)
        return list(qs)
