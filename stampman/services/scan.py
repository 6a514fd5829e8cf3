"""
Staff-side scan flow.

A stamp scan is one unit of work: consume the code, make sure a progress
record is open, add the stamp, append the scan history row. If any step
fails the code goes back to PENDING with everything else.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.db.models import Count, Q, Sum
from django.utils import timezone

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.models import (
    ProgressStatus,
    ScanAction,
    ScanHistoryRecord,
    StampTransactionCode,
    UserRewardProgress,
)
from stampman.services.codes import StampCodeService
from stampman.services.progress import ProgressService
from stampman.services.store import LedgerStore, get_store
from stampman.signals import stamp_code_consumed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanResult:
    """Outcome of a scan: the progress record it touched and its audit row."""

    progress: UserRewardProgress
    scan: ScanHistoryRecord
    code: StampTransactionCode | None = None


class ScanService:
    """Scan-driven stamping and redemption of reward progress."""

    @classmethod
    def process_scan(
        cls,
        code: str,
        staff_id: str,
        store_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> ScanResult:
        """
        Consume a transaction code and stamp the customer's progress.

        A duplicate scan of the same code loses on the consume guard, so it
        never adds a second stamp or a second ScanHistoryRecord.

        Raises:
            StampmanError: CODE_EXPIRED_OR_CONSUMED, PROGRESS_NOT_FOUND
                (progress is ready to redeem, redeem it first),
                CONCURRENT_MODIFICATION
        """
        store = get_store(store)

        with store.unit_of_work():
            consumed = StampCodeService.consume(code, staff_id, store_id, store=store)
            ProgressService.open_or_start(
                consumed.customer_id, consumed.reward_id, store=store
            )
            progress = ProgressService.add_stamp(
                consumed.customer_id, consumed.reward_id, store=store
            )
            scan = store.append_audit(
                ScanHistoryRecord,
                progress=progress,
                tenant_id=consumed.tenant_id,
                customer_id=consumed.customer_id,
                reward_id=consumed.reward_id,
                transaction_code=consumed.code,
                scanned_by=staff_id,
                store_id=store_id or "",
                action=ScanAction.STAMP,
                stamps_added=1,
                stamps_before=progress.stamps_collected - 1,
                stamps_after=progress.stamps_collected,
            )
            store.on_commit(
                lambda: stamp_code_consumed.send(
                    sender=StampTransactionCode, code=consumed, progress=progress, scan=scan
                )
            )

        logger.info(
            "Scan by %s at %s: customer %s reward %s -> %s/%s",
            staff_id, store_id or "-", consumed.customer_id, consumed.reward_id,
            progress.stamps_collected, progress.stamps_required,
        )
        return ScanResult(progress=progress, scan=scan, code=consumed)

    @classmethod
    def process_redemption_scan(
        cls,
        customer_id: str,
        reward_id: int,
        staff_id: str,
        store_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> ScanResult:
        """
        Redeem the customer's ready progress for a reward at the counter.

        Raises:
            StampmanError: PROGRESS_NOT_FOUND, CODE_EXPIRED_OR_CONSUMED (not ready,
                or redeemed by a concurrent scan)
        """
        store = get_store(store)

        with store.unit_of_work():
            progress = ProgressService.get_open(customer_id, reward_id, store=store)
            if progress is None:
                raise StampmanError(
                    "PROGRESS_NOT_FOUND", customer_id=customer_id, reward_id=reward_id
                )
            progress = ProgressService.redeem(progress.pk, store=store)
            scan = store.append_audit(
                ScanHistoryRecord,
                progress=progress,
                tenant_id=progress.tenant_id,
                customer_id=customer_id,
                reward_id=reward_id,
                scanned_by=staff_id,
                store_id=store_id or "",
                action=ScanAction.REDEMPTION,
                stamps_added=0,
                stamps_before=progress.stamps_collected,
                stamps_after=progress.stamps_collected,
                notes="Reward redeemed",
            )

        logger.info(
            "Redemption scan by %s at %s: customer %s reward %s",
            staff_id, store_id or "-", customer_id, reward_id,
        )
        return ScanResult(progress=progress, scan=scan)

    # ======================================================================
    # Reads
    # ======================================================================

    @classmethod
    def _filtered(
        cls,
        tenant_id: str | None = None,
        customer_id: str | None = None,
        reward_id: int | None = None,
        store_id: str | None = None,
        scanned_by: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ):
        qs = ScanHistoryRecord.objects.all()
        if tenant_id:
            qs = qs.filter(tenant_id=tenant_id)
        if customer_id:
            qs = qs.filter(customer_id=customer_id)
        if reward_id:
            qs = qs.filter(reward_id=reward_id)
        if store_id:
            qs = qs.filter(store_id=store_id)
        if scanned_by:
            qs = qs.filter(scanned_by=scanned_by)
        if start:
            qs = qs.filter(created_at__gte=start)
        if end:
            qs = qs.filter(created_at__lte=end)
        return qs

    @classmethod
    def scan_history(
        cls,
        tenant_id: str | None = None,
        customer_id: str | None = None,
        reward_id: int | None = None,
        store_id: str | None = None,
        scanned_by: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ScanHistoryRecord]:
        """Scan records matching every given filter (most recent first)."""
        qs = cls._filtered(
            tenant_id, customer_id, reward_id, store_id, scanned_by, start, end
        ).select_related("reward", "progress")
        limit = limit or stampman_settings.HISTORY_LIMIT
        return list(qs[offset:offset + limit])

    @classmethod
    def scan_statistics(
        cls,
        tenant_id: str | None = None,
        store_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict:
        now = timezone.now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        stats = cls._filtered(
            tenant_id=tenant_id, store_id=store_id, start=start, end=end
        ).aggregate(
            total_scans=Count("id"),
            stamp_scans=Count("id", filter=Q(action=ScanAction.STAMP)),
            redemption_scans=Count("id", filter=Q(action=ScanAction.REDEMPTION)),
            unique_customers=Count("customer_id", distinct=True),
            rewards_scanned=Count("reward", distinct=True),
            staff_members=Count("scanned_by", distinct=True),
            total_stamps_added=Sum("stamps_added"),
            scans_today=Count("id", filter=Q(created_at__gte=today)),
            scans_this_week=Count("id", filter=Q(created_at__gte=today - timedelta(days=7))),
        )
        stats["total_stamps_added"] = stats["total_stamps_added"] or 0
        stats["ready_to_redeem"] = UserRewardProgress.objects.filter(
            status=ProgressStatus.READY_TO_REDEEM,
            **({"tenant_id": tenant_id} if tenant_id else {}),
        ).count()
        return stats
