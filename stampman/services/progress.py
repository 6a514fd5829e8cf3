"""Reward progress state machine — in_progress -> ready_to_redeem -> availed."""

import logging

from django.db import IntegrityError
from django.utils import timezone

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.models import (
    ProgressStatus,
    RewardDefinition,
    UserRewardProgress,
    sources_for,
)
from stampman.services.store import LedgerStore, get_store
from stampman.signals import progress_ready, progress_redeemed

logger = logging.getLogger(__name__)

OPEN_STATUSES = [ProgressStatus.IN_PROGRESS, ProgressStatus.READY_TO_REDEEM]


def stamps_required_for(reward: RewardDefinition) -> int:
    """Stamps needed for a reward: its points_cost, or the configured default."""
    if reward.points_cost and reward.points_cost > 0:
        return reward.points_cost
    return stampman_settings.DEFAULT_STAMPS_REQUIRED


class ProgressService:
    """
    Per (customer, reward) accrual driven by the QR-scan flow.

    Shares the locked-counter-with-threshold algorithm with stamp cards but
    has its own lifecycle: a cycle ends when redeemed, and the next cycle is
    a new row.
    """

    @classmethod
    def start_cycle(
        cls,
        customer_id: str,
        reward_id: int,
        *,
        store: LedgerStore | None = None,
    ) -> UserRewardProgress:
        """
        Open a new IN_PROGRESS record.

        Raises:
            StampmanError: REWARD_NOT_FOUND, PROGRESS_ALREADY_OPEN
        """
        store = get_store(store)
        reward = store.load(RewardDefinition, "REWARD_NOT_FOUND", pk=reward_id)
        try:
            with store.unit_of_work():
                progress = store.create(
                    UserRewardProgress,
                    tenant_id=reward.tenant_id,
                    customer_id=customer_id,
                    reward=reward,
                    stamps_required=stamps_required_for(reward),
                )
        except IntegrityError:
            raise StampmanError(
                "PROGRESS_ALREADY_OPEN", customer_id=customer_id, reward_id=reward_id
            )
        logger.info("Opened progress %s for %s on reward %s", progress.pk, customer_id, reward_id)
        return progress

    @classmethod
    def open_or_start(
        cls,
        customer_id: str,
        reward_id: int,
        *,
        store: LedgerStore | None = None,
    ) -> UserRewardProgress:
        """Open record for the pair, starting a cycle when there is none."""
        store = get_store(store)
        progress = cls.get_open(customer_id, reward_id, store=store)
        if progress is not None:
            return progress
        try:
            return cls.start_cycle(customer_id, reward_id, store=store)
        except StampmanError as exc:
            if exc.code != "PROGRESS_ALREADY_OPEN":
                raise
            # Concurrent scan opened it first
            return cls.get_open(customer_id, reward_id, store=store)

    @classmethod
    def add_stamp(
        cls,
        customer_id: str,
        reward_id: int,
        *,
        store: LedgerStore | None = None,
    ) -> UserRewardProgress:
        """
        Add one stamp to the IN_PROGRESS record for the pair.

        Reaching stamps_required flips it to READY_TO_REDEEM and sets
        completed_at in the same unit.

        Raises:
            StampmanError: PROGRESS_NOT_FOUND when no IN_PROGRESS record
                exists (data carries the status of a READY_TO_REDEEM one)
        """
        store = get_store(store)

        with store.unit_of_work():
            progress = (
                store.filter(
                    UserRewardProgress,
                    customer_id=customer_id,
                    reward_id=reward_id,
                    status=ProgressStatus.IN_PROGRESS,
                )
                .select_for_update()
                .first()
            )
            if progress is None:
                ready = store.filter(
                    UserRewardProgress,
                    customer_id=customer_id,
                    reward_id=reward_id,
                    status=ProgressStatus.READY_TO_REDEEM,
                ).exists()
                raise StampmanError(
                    "PROGRESS_NOT_FOUND",
                    customer_id=customer_id,
                    reward_id=reward_id,
                    status=ProgressStatus.READY_TO_REDEEM.value if ready else None,
                )

            progress.stamps_collected += 1
            update_fields = ["stamps_collected", "updated_at"]
            if (
                progress.stamps_collected >= progress.stamps_required
                and progress.can_transition_to(ProgressStatus.READY_TO_REDEEM)
            ):
                progress.status = ProgressStatus.READY_TO_REDEEM
                progress.completed_at = timezone.now()
                update_fields += ["status", "completed_at"]
                store.on_commit(
                    lambda: progress_ready.send(sender=UserRewardProgress, progress=progress)
                )
            progress.save(using=store.using, update_fields=update_fields)

        logger.info(
            "Progress %s stamped: %s/%s [%s]",
            progress.pk, progress.stamps_collected, progress.stamps_required, progress.status,
        )
        return progress

    @classmethod
    def redeem(
        cls,
        progress_id: int,
        *,
        store: LedgerStore | None = None,
    ) -> UserRewardProgress:
        """
        READY_TO_REDEEM -> AVAILED, single winner via conditional update.

        The predicate admits only statuses with a transition into AVAILED.

        Raises:
            StampmanError: PROGRESS_NOT_FOUND (unknown id),
                CODE_EXPIRED_OR_CONSUMED (not ready, or another caller
                redeemed it first)
        """
        store = get_store(store)
        now = timezone.now()

        with store.unit_of_work():
            updated = store.conditional_update(
                store.filter(
                    UserRewardProgress,
                    pk=progress_id,
                    status__in=sources_for(ProgressStatus.AVAILED),
                ),
                status=ProgressStatus.AVAILED,
                redeemed_at=now,
                updated_at=now,
            )
            progress = store.load(UserRewardProgress, "PROGRESS_NOT_FOUND", pk=progress_id)
            if updated == 0:
                logger.warning(
                    "Progress %s redeem rejected (status %s)", progress_id, progress.status
                )
                raise StampmanError(
                    "CODE_EXPIRED_OR_CONSUMED",
                    message="Reward progress is not ready or was already redeemed",
                    progress_id=progress_id,
                    status=progress.status,
                )
            store.on_commit(
                lambda: progress_redeemed.send(sender=UserRewardProgress, progress=progress)
            )

        logger.info("Progress %s redeemed", progress_id)
        return progress

    # ======================================================================
    # Administrative overrides
    # ======================================================================

    @classmethod
    def reset_progress(
        cls,
        customer_id: str,
        reward_id: int,
        *,
        store: LedgerStore | None = None,
    ) -> UserRewardProgress:
        """Zero the open record's counters and put it back IN_PROGRESS."""
        store = get_store(store)
        with store.unit_of_work():
            progress = (
                store.filter(
                    UserRewardProgress,
                    customer_id=customer_id,
                    reward_id=reward_id,
                    status__in=OPEN_STATUSES,
                )
                .select_for_update()
                .first()
            )
            if progress is None:
                raise StampmanError(
                    "PROGRESS_NOT_FOUND", customer_id=customer_id, reward_id=reward_id
                )
            progress.stamps_collected = 0
            progress.status = ProgressStatus.IN_PROGRESS
            progress.completed_at = None
            progress.save(
                using=store.using,
                update_fields=["stamps_collected", "status", "completed_at", "updated_at"],
            )
        logger.info("Progress %s reset by admin", progress.pk)
        return progress

    @classmethod
    def delete(
        cls,
        customer_id: str,
        reward_id: int,
        *,
        store: LedgerStore | None = None,
    ) -> int:
        """
        Remove the open record for the pair.

        Scan history rows survive with their progress link cleared.
        """
        store = get_store(store)
        with store.unit_of_work():
            deleted, _ = store.filter(
                UserRewardProgress,
                customer_id=customer_id,
                reward_id=reward_id,
                status__in=OPEN_STATUSES,
            ).delete()
        if not deleted:
            raise StampmanError(
                "PROGRESS_NOT_FOUND", customer_id=customer_id, reward_id=reward_id
            )
        logger.info("Progress for %s on reward %s deleted by admin", customer_id, reward_id)
        return deleted

    # ======================================================================
    # Reads
    # ======================================================================

    @classmethod
    def get_open(
        cls,
        customer_id: str,
        reward_id: int,
        *,
        store: LedgerStore | None = None,
    ) -> UserRewardProgress | None:
        store = get_store(store)
        return store.filter(
            UserRewardProgress,
            customer_id=customer_id,
            reward_id=reward_id,
            status__in=OPEN_STATUSES,
        ).first()

    @classmethod
    def get_progress(cls, customer_id: str, reward_id: int) -> UserRewardProgress | None:
        """Open record if any, else the most recent closed one."""
        return (
            cls.get_open(customer_id, reward_id)
            or UserRewardProgress.objects.filter(
                customer_id=customer_id, reward_id=reward_id
            ).first()
        )

    @classmethod
    def progress_for_customer(
        cls,
        customer_id: str,
        status: str | None = None,
    ) -> list[UserRewardProgress]:
        qs = UserRewardProgress.objects.filter(customer_id=customer_id).select_related("reward")
        if status:
            qs = qs.filter(status=status)
        return list(qs)
