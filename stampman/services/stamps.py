"""Stamp card engine — locked counter with a completion threshold."""

import logging
from datetime import datetime

from django.db.models import Avg, Count, Q, Sum
from django.utils import timezone

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.gates import Gates
from stampman.models import LoyaltyAccount, StampCard, StampTransaction
from stampman.services.store import LedgerStore, get_store
from stampman.signals import stamp_card_completed

logger = logging.getLogger(__name__)


class StampCardService:
    """
    Stamp card operations.

    Completion is derived from the counts but persisted in is_completed so a
    completed card is frozen: later add_stamps/complete_card calls fail with
    CARD_COMPLETED instead of racing on re-redemption.
    """

    @classmethod
    def issue_card(
        cls,
        account_id: int,
        card_name: str,
        total_stamps: int,
        reward_description: str = "",
        expires_at: datetime | None = None,
        *,
        store: LedgerStore | None = None,
    ) -> StampCard:
        """Create a new empty card for an active account."""
        Gates.positive_amount(total_stamps, field="total_stamps")
        store = get_store(store)
        account = store.load(LoyaltyAccount, "ACCOUNT_NOT_FOUND", pk=account_id, is_active=True)
        card = store.create(
            StampCard,
            account=account,
            tenant_id=account.tenant_id,
            card_name=card_name,
            total_stamps=total_stamps,
            reward_description=reward_description,
            expires_at=expires_at,
        )
        logger.info("Issued stamp card %s (%s stamps) to account %s", card.pk, total_stamps, account_id)
        return card

    @classmethod
    def add_stamps(
        cls,
        card_id: int,
        count: int,
        reason: str,
        store_id: str = "",
        actor_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> StampCard:
        """
        Add stamps to a card.

        When the raw total reaches total_stamps the card completes in the
        same unit: is_completed/completed_at are set and current_stamps is
        clamped to capacity. The audit row keeps the raw, unclamped count.

        Returns:
            Updated StampCard snapshot

        Raises:
            StampmanError: INVALID_AMOUNT, CARD_NOT_FOUND, CARD_COMPLETED,
                CARD_EXPIRED, CONCURRENT_MODIFICATION
        """
        Gates.positive_amount(count, field="stamps")
        store = get_store(store)

        with store.unit_of_work():
            card = cls.lock_card(card_id, store=store)
            now = timezone.now()
            try:
                Gates.card_mutable(card, now)
            except StampmanError as exc:
                logger.warning("Stamp card %s rejected +%s: %s", card_id, count, exc.code)
                raise

            stamps_before = card.current_stamps
            raw_total = stamps_before + count
            completed = raw_total >= card.total_stamps

            card.current_stamps = min(raw_total, card.total_stamps)
            update_fields = ["current_stamps", "updated_at"]
            if completed:
                card.is_completed = True
                card.completed_at = now
                update_fields += ["is_completed", "completed_at"]
            card.save(using=store.using, update_fields=update_fields)

            store.append_audit(
                StampTransaction,
                card=card,
                tenant_id=card.tenant_id,
                stamps_added=count,
                stamps_before=stamps_before,
                stamps_after=raw_total,
                reason=reason,
                store_id=store_id or "",
                actor_id=actor_id or "",
            )
            if completed:
                store.on_commit(
                    lambda: stamp_card_completed.send(sender=StampCard, card=card)
                )

        logger.info(
            "Stamp card %s +%s (%s -> %s/%s)%s",
            card.pk, count, stamps_before, card.current_stamps, card.total_stamps,
            " completed" if completed else "",
        )
        return card

    @classmethod
    def complete_card(
        cls,
        card_id: int,
        reward_description: str,
        store_id: str = "",
        actor_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> StampCard:
        """
        Explicitly complete a full card.

        Not idempotent on purpose: a retry fails with CARD_COMPLETED.

        Raises:
            StampmanError: CARD_NOT_FOUND, CARD_COMPLETED, CARD_EXPIRED,
                INSUFFICIENT_STAMPS, CONCURRENT_MODIFICATION
        """
        store = get_store(store)

        with store.unit_of_work():
            card = cls.lock_card(card_id, store=store)
            now = timezone.now()
            Gates.card_mutable(card, now)
            Gates.sufficient_stamps(card)

            card.is_completed = True
            card.completed_at = now
            card.save(using=store.using, update_fields=["is_completed", "completed_at", "updated_at"])

            store.append_audit(
                StampTransaction,
                card=card,
                tenant_id=card.tenant_id,
                stamps_added=0,
                stamps_before=card.current_stamps,
                stamps_after=card.current_stamps,
                reason=f"Card completed: {reward_description}",
                store_id=store_id or "",
                actor_id=actor_id or "",
            )
            store.on_commit(lambda: stamp_card_completed.send(sender=StampCard, card=card))

        logger.info("Stamp card %s completed: %s", card.pk, reward_description)
        return card

    @classmethod
    def lock_card(cls, card_id: int, *, store: LedgerStore) -> StampCard:
        """Active card under row lock. MUST be called inside store.unit_of_work()."""
        return store.lock_and_load(StampCard, "CARD_NOT_FOUND", pk=card_id, is_active=True)

    # ======================================================================
    # Reads
    # ======================================================================

    @classmethod
    def get_card(cls, card_id: int) -> StampCard | None:
        try:
            return StampCard.objects.get(pk=card_id, is_active=True)
        except StampCard.DoesNotExist:
            return None

    @classmethod
    def active_cards(cls, account_id: int) -> list[StampCard]:
        """Cards still accepting stamps: not completed and not expired."""
        now = timezone.now()
        return list(
            StampCard.objects.filter(
                account_id=account_id,
                is_active=True,
                is_completed=False,
            ).filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))
        )

    @classmethod
    def card_history(
        cls,
        card_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StampTransaction]:
        """Stamp transactions for a card (most recent first)."""
        qs = StampTransaction.objects.filter(card_id=card_id)
        if start:
            qs = qs.filter(created_at__gte=start)
        if end:
            qs = qs.filter(created_at__lte=end)
        limit = limit or stampman_settings.HISTORY_LIMIT
        return list(qs[offset:offset + limit])

    @classmethod
    def card_stats(cls, tenant_id: str) -> dict:
        now = timezone.now()
        stats = StampCard.objects.filter(tenant_id=tenant_id, is_active=True).aggregate(
            total_cards=Count("id"),
            completed_cards=Count("id", filter=Q(is_completed=True)),
            active_cards=Count("id", filter=Q(is_completed=False)),
            expired_cards=Count("id", filter=Q(expires_at__lt=now)),
            avg_stamps=Avg("current_stamps"),
            total_stamps=Sum("current_stamps"),
        )
        stats["avg_stamps"] = float(stats["avg_stamps"] or 0)
        stats["total_stamps"] = stats["total_stamps"] or 0
        return stats
