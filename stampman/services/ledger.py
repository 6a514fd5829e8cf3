"""Points ledger — earn/redeem with an append-only transaction trail."""

import logging
import secrets
import time
from datetime import datetime

from django.db import IntegrityError
from django.db.models import Avg, Count, Q, Sum
from django.utils import timezone

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.gates import Gates
from stampman.models import (
    LoyaltyAccount,
    LoyaltyLevel,
    LoyaltyTransaction,
    TransactionType,
)
from stampman.services.store import LedgerStore, get_store
from stampman.signals import points_earned, points_redeemed

logger = logging.getLogger(__name__)


# Level thresholds (total earned points)
_LEVEL_THRESHOLDS = [
    (5000, LoyaltyLevel.PLATINUM),
    (2000, LoyaltyLevel.GOLD),
    (500, LoyaltyLevel.SILVER),
    (0, LoyaltyLevel.BRONZE),
]


def level_for(total_earned: int) -> str:
    for threshold, level in _LEVEL_THRESHOLDS:
        if total_earned >= threshold:
            return level
    return LoyaltyLevel.BRONZE


def generate_loyalty_number(prefix: str | None = None) -> str:
    """
    Candidate loyalty number: PREFIX + last 6 digits of the ms clock +
    3 random digits. Uniqueness is enforced by the insert.
    """
    prefix = stampman_settings.LOYALTY_NUMBER_PREFIX if prefix is None else prefix
    clock = str(time.time_ns() // 1_000_000)[-6:]
    return f"{prefix}{clock}{secrets.randbelow(1000):03d}"


class LedgerService:
    """
    Points ledger operations.

    Uses @classmethod for extensibility (consistent with other services).
    All point mutations lock the account row inside one unit of work and
    append exactly one LoyaltyTransaction.
    """

    # ======================================================================
    # Enrollment
    # ======================================================================

    @classmethod
    def enroll(
        cls,
        tenant_id: str,
        customer_id: str,
        *,
        store: LedgerStore | None = None,
    ) -> LoyaltyAccount:
        """
        Enroll customer in the tenant's loyalty program.

        Idempotent — returns the existing account if already enrolled,
        including when a concurrent enrollment wins the insert. A loyalty
        number collision retries with a fresh number, up to
        LOYALTY_NUMBER_MAX_ATTEMPTS inserts.

        Raises:
            StampmanError: CODE_GENERATION_FAILED
        """
        store = get_store(store)
        lookup = {"tenant_id": tenant_id, "customer_id": customer_id}

        existing = store.filter(LoyaltyAccount, **lookup).first()
        if existing:
            return existing

        attempts = stampman_settings.LOYALTY_NUMBER_MAX_ATTEMPTS
        for _ in range(attempts):
            loyalty_number = generate_loyalty_number()
            try:
                with store.unit_of_work():
                    account = store.create(
                        LoyaltyAccount,
                        loyalty_number=loyalty_number,
                        last_activity_at=timezone.now(),
                        **lookup,
                    )
            except IntegrityError:
                existing = store.filter(LoyaltyAccount, **lookup).first()
                if existing:
                    return existing
                # Number taken within the tenant
                continue

            logger.info("Enrolled %s/%s as %s", tenant_id, customer_id, loyalty_number)
            return account

        logger.error("Loyalty number generation exhausted for tenant %s", tenant_id)
        raise StampmanError(
            "CODE_GENERATION_FAILED", tenant_id=tenant_id, attempts=attempts
        )

    @classmethod
    def deactivate(
        cls,
        account_id: int,
        *,
        store: LedgerStore | None = None,
    ) -> LoyaltyAccount:
        """Soft-deactivate an account. Ledger operations then treat it as not found."""
        store = get_store(store)
        with store.unit_of_work():
            account = store.lock_and_load(
                LoyaltyAccount, "ACCOUNT_NOT_FOUND", pk=account_id
            )
            account.is_active = False
            account.save(using=store.using, update_fields=["is_active", "updated_at"])
        logger.info("Deactivated loyalty account %s", account_id)
        return account

    # ======================================================================
    # Reads
    # ======================================================================

    @classmethod
    def get_account(cls, account_id: int) -> LoyaltyAccount | None:
        """Get active account by id."""
        try:
            return LoyaltyAccount.objects.get(pk=account_id, is_active=True)
        except LoyaltyAccount.DoesNotExist:
            return None

    @classmethod
    def get_account_for_customer(cls, tenant_id: str, customer_id: str) -> LoyaltyAccount | None:
        try:
            return LoyaltyAccount.objects.get(
                tenant_id=tenant_id, customer_id=customer_id, is_active=True
            )
        except LoyaltyAccount.DoesNotExist:
            return None

    @classmethod
    def get_balance(cls, account_id: int) -> int:
        """Current points balance. Returns 0 for unknown or inactive accounts."""
        account = cls.get_account(account_id)
        return account.current_points if account else 0

    @classmethod
    def get_transactions(
        cls,
        account_id: int,
        transaction_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[LoyaltyTransaction]:
        """Transaction history for an account (most recent first)."""
        qs = LoyaltyTransaction.objects.filter(account_id=account_id)
        if transaction_type:
            qs = qs.filter(transaction_type=transaction_type)
        if start:
            qs = qs.filter(created_at__gte=start)
        if end:
            qs = qs.filter(created_at__lte=end)
        limit = limit or stampman_settings.HISTORY_LIMIT
        return list(qs[offset:offset + limit])

    @classmethod
    def account_stats(cls, tenant_id: str) -> dict:
        """Aggregate points figures for a tenant."""
        stats = LoyaltyAccount.objects.filter(tenant_id=tenant_id).aggregate(
            total_customers=Count("id"),
            active_customers=Count("id", filter=Q(is_active=True)),
            avg_points=Avg("current_points"),
            total_points=Sum("current_points"),
            total_earned=Sum("total_earned"),
            total_redeemed=Sum("total_redeemed"),
        )
        return {
            "total_customers": stats["total_customers"],
            "active_customers": stats["active_customers"],
            "avg_points": float(stats["avg_points"] or 0),
            "total_points": stats["total_points"] or 0,
            "total_earned": stats["total_earned"] or 0,
            "total_redeemed": stats["total_redeemed"] or 0,
        }

    # ======================================================================
    # Mutations
    # ======================================================================

    @classmethod
    def earn(
        cls,
        account_id: int,
        points: int,
        reason: str,
        store_id: str = "",
        actor_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> LoyaltyAccount:
        """
        Award points.

        Args:
            account_id: LoyaltyAccount id
            points: Points to award (must be positive)
            reason: Reason for the award (audit description)
            store_id: Store where it happened
            actor_id: Staff/user who triggered it

        Returns:
            Updated LoyaltyAccount snapshot

        Raises:
            StampmanError: INVALID_AMOUNT, ACCOUNT_NOT_FOUND, CONCURRENT_MODIFICATION
        """
        Gates.positive_amount(points)
        store = get_store(store)

        with store.unit_of_work():
            account = cls.lock_account(account_id, store=store)
            tx = cls._post(
                store, account, TransactionType.EARN, points, reason, store_id, actor_id
            )
            store.on_commit(
                lambda: points_earned.send(
                    sender=LoyaltyAccount, account=account, transaction=tx
                )
            )

        logger.info(
            "Account %s earned %s pts (%s -> %s)",
            account.pk, points, tx.balance_before, tx.balance_after,
        )
        return account

    @classmethod
    def redeem(
        cls,
        account_id: int,
        points: int,
        reason: str,
        store_id: str = "",
        actor_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> LoyaltyAccount:
        """
        Redeem points from the balance.

        Returns:
            Updated LoyaltyAccount snapshot

        Raises:
            StampmanError: INVALID_AMOUNT, ACCOUNT_NOT_FOUND,
                INSUFFICIENT_POINTS, CONCURRENT_MODIFICATION
        """
        Gates.positive_amount(points)
        store = get_store(store)

        with store.unit_of_work():
            account = cls.lock_account(account_id, store=store)
            tx = cls.debit(store, account, points, reason, store_id, actor_id)

        logger.info(
            "Account %s redeemed %s pts (%s -> %s)",
            account.pk, points, tx.balance_before, tx.balance_after,
        )
        return account

    @classmethod
    def lock_account(cls, account_id: int, *, store: LedgerStore) -> LoyaltyAccount:
        """
        Active account under row lock.

        MUST be called inside store.unit_of_work().
        """
        return store.lock_and_load(
            LoyaltyAccount, "ACCOUNT_NOT_FOUND", pk=account_id, is_active=True
        )

    @classmethod
    def debit(
        cls,
        store: LedgerStore,
        account: LoyaltyAccount,
        points: int,
        reason: str,
        store_id: str = "",
        actor_id: str = "",
    ) -> LoyaltyTransaction:
        """
        Debit an account already locked by the caller's unit of work.

        Shared by redeem() and RedemptionService so both emit the same audit
        row and signal.

        Raises:
            StampmanError: INVALID_AMOUNT, INSUFFICIENT_POINTS
        """
        Gates.positive_amount(points)
        try:
            Gates.sufficient_points(account, points)
        except StampmanError:
            logger.warning(
                "Account %s redeem of %s pts rejected (balance %s)",
                account.pk, points, account.current_points,
            )
            raise

        tx = cls._post(
            store, account, TransactionType.REDEEM, points, reason, store_id, actor_id
        )
        store.on_commit(
            lambda: points_redeemed.send(
                sender=LoyaltyAccount, account=account, transaction=tx
            )
        )
        return tx

    @classmethod
    def _post(
        cls,
        store: LedgerStore,
        account: LoyaltyAccount,
        transaction_type: str,
        points: int,
        reason: str,
        store_id: str,
        actor_id: str,
    ) -> LoyaltyTransaction:
        """Apply the delta to the locked account and append its audit row."""
        balance_before = account.current_points
        update_fields = ["current_points", "last_activity_at", "updated_at"]

        if transaction_type == TransactionType.EARN:
            delta = points
            account.total_earned += points
            update_fields.append("total_earned")
            new_level = level_for(account.total_earned)
            if new_level != account.level:
                account.level = new_level
                update_fields.append("level")
        else:
            delta = -points
            account.total_redeemed += points
            update_fields.append("total_redeemed")

        account.current_points = balance_before + delta
        account.last_activity_at = timezone.now()
        account.save(using=store.using, update_fields=update_fields)

        return store.append_audit(
            LoyaltyTransaction,
            account=account,
            tenant_id=account.tenant_id,
            transaction_type=transaction_type,
            points=delta,
            balance_before=balance_before,
            balance_after=account.current_points,
            description=reason,
            store_id=store_id or "",
            actor_id=actor_id or "",
        )
