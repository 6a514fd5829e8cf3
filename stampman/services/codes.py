"""
Stamp transaction codes — issue, consume once, cancel, sweep.

Every status change out of PENDING is a conditional UPDATE whose predicate
includes status=PENDING (and, for consume, expires_at > now). Whichever of
consume / cancel / sweep updates the row first wins; the others see zero
rows affected. No row lock is taken.
"""

import logging
import secrets
from datetime import timedelta

from django.db import IntegrityError
from django.utils import timezone

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.models import CodeStatus, RewardDefinition, StampTransactionCode
from stampman.services.store import LedgerStore, get_store

logger = logging.getLogger(__name__)


def generate_code(length: int | None = None, alphabet: str | None = None) -> str:
    """Cryptographically random code from the configured alphabet."""
    length = length or stampman_settings.CODE_LENGTH
    alphabet = alphabet or stampman_settings.CODE_ALPHABET
    return "".join(secrets.choice(alphabet) for _ in range(length))


class StampCodeService:
    """Single-use QR transaction codes."""

    @classmethod
    def issue(
        cls,
        customer_id: str,
        reward_id: int,
        store_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> StampTransactionCode:
        """
        Issue a pending code binding (customer, reward) to a future scan.

        A code collision fails the insert and retries with a fresh code,
        up to CODE_MAX_ATTEMPTS inserts.

        Raises:
            StampmanError: REWARD_NOT_FOUND, REWARD_UNAVAILABLE,
                CODE_GENERATION_FAILED
        """
        store = get_store(store)
        reward = store.load(RewardDefinition, "REWARD_NOT_FOUND", pk=reward_id)
        if not reward.is_active:
            raise StampmanError("REWARD_UNAVAILABLE", reward_id=reward_id, is_active=False)

        attempts = stampman_settings.CODE_MAX_ATTEMPTS
        ttl = timedelta(minutes=stampman_settings.CODE_TTL_MINUTES)
        for _ in range(attempts):
            candidate = generate_code()
            try:
                with store.unit_of_work():
                    code = store.create(
                        StampTransactionCode,
                        code=candidate,
                        tenant_id=reward.tenant_id,
                        customer_id=customer_id,
                        reward=reward,
                        store_id=store_id or "",
                        status=CodeStatus.PENDING,
                        expires_at=timezone.now() + ttl,
                    )
            except IntegrityError:
                continue
            break
        else:
            logger.error("Stamp code generation exhausted after %s attempts", attempts)
            raise StampmanError("CODE_GENERATION_FAILED", attempts=attempts)

        logger.info("Issued stamp code for customer %s, reward %s", customer_id, reward_id)
        return code

    @classmethod
    def consume(
        cls,
        code: str,
        staff_id: str,
        store_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> StampTransactionCode:
        """
        PENDING -> COMPLETED, only while unexpired. Exactly one caller wins.

        Runs inside the caller's unit of work when there is one, so a failure
        later in the scan rolls the consumption back too.

        Raises:
            StampmanError: CODE_EXPIRED_OR_CONSUMED (lost race, expired,
                cancelled, or unknown code)
        """
        store = get_store(store)
        now = timezone.now()

        with store.unit_of_work():
            updated = store.conditional_update(
                store.filter(
                    StampTransactionCode,
                    code=code,
                    status=CodeStatus.PENDING,
                    expires_at__gt=now,
                ),
                status=CodeStatus.COMPLETED,
                consumed_at=now,
                consumed_by=staff_id,
                consumed_store_id=store_id or "",
                updated_at=now,
            )
            if updated == 0:
                logger.warning("Stamp code consume rejected by %s at store %s", staff_id, store_id or "-")
                raise StampmanError("CODE_EXPIRED_OR_CONSUMED", code=code)
            consumed = store.load(StampTransactionCode, "CODE_NOT_FOUND", code=code)

        return consumed

    @classmethod
    def cancel(
        cls,
        code: str,
        owner_id: str,
        *,
        store: LedgerStore | None = None,
    ) -> StampTransactionCode:
        """
        Customer-initiated abort, only while PENDING and only by its owner.

        Raises:
            StampmanError: CODE_NOT_FOUND (unknown or not owned),
                CODE_NOT_CANCELLABLE (no longer pending)
        """
        store = get_store(store)
        now = timezone.now()

        with store.unit_of_work():
            updated = store.conditional_update(
                store.filter(
                    StampTransactionCode,
                    code=code,
                    customer_id=owner_id,
                    status=CodeStatus.PENDING,
                ),
                status=CodeStatus.CANCELLED,
                cancelled_at=now,
                updated_at=now,
            )
            if updated == 0:
                exists = store.filter(StampTransactionCode, code=code, customer_id=owner_id).exists()
                raise StampmanError(
                    "CODE_NOT_CANCELLABLE" if exists else "CODE_NOT_FOUND", code=code
                )
            cancelled = store.load(StampTransactionCode, "CODE_NOT_FOUND", code=code)

        logger.info("Stamp code cancelled by owner %s", owner_id)
        return cancelled

    @classmethod
    def sweep_expired(cls, *, store: LedgerStore | None = None) -> int:
        """
        Move every PENDING code past expires_at to EXPIRED.

        Idempotent and safe to run concurrently: a second run finds nothing
        matching the predicate.

        Returns:
            Number of codes expired by this run
        """
        store = get_store(store)
        now = timezone.now()
        with store.unit_of_work():
            count = store.conditional_update(
                store.filter(
                    StampTransactionCode,
                    status=CodeStatus.PENDING,
                    expires_at__lte=now,
                ),
                status=CodeStatus.EXPIRED,
                updated_at=now,
            )
        if count:
            logger.info("Swept %s expired stamp codes", count)
        else:
            logger.debug("Stamp code sweep: nothing to expire")
        return count

    @classmethod
    def purge_stale(cls, days: int | None = None, *, store: LedgerStore | None = None) -> int:
        """Delete non-pending codes older than N days (CODE_RETENTION_DAYS)."""
        store = get_store(store)
        if days is None:
            days = stampman_settings.CODE_RETENTION_DAYS
        cutoff = timezone.now() - timedelta(days=days)
        deleted, _ = (
            store.filter(StampTransactionCode, created_at__lt=cutoff)
            .exclude(status=CodeStatus.PENDING)
            .delete()
        )
        return deleted

    @classmethod
    def get(cls, code: str) -> StampTransactionCode | None:
        try:
            return StampTransactionCode.objects.select_related("reward").get(code=code)
        except StampTransactionCode.DoesNotExist:
            return None
