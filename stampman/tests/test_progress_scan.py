"""
Tests for the QR-scan flow:
- Reward progress state machine
- Scan processing (consume + stamp + history in one unit)
- Scan history reads and statistics
"""

import threading

import pytest
from django.db import connection

from stampman.exceptions import StampmanError
from stampman.models import (
    PROGRESS_TRANSITIONS,
    CodeStatus,
    ProgressStatus,
    RewardDefinition,
    ScanAction,
    ScanHistoryRecord,
    StampTransactionCode,
    UserRewardProgress,
    sources_for,
)
from stampman.services.codes import StampCodeService
from stampman.services.progress import ProgressService, stamps_required_for
from stampman.services.scan import ScanService
from stampman.signals import progress_ready, stamp_code_consumed

from stampman.tests.conftest import TENANT


pytestmark = pytest.mark.django_db


def _scan(customer_id, reward, staff_id="staff-1", store_id="S1"):
    code = StampCodeService.issue(customer_id, reward.pk, store_id=store_id)
    return ScanService.process_scan(code.code, staff_id, store_id)


# ═══════════════════════════════════════════════════════════════════
# Progress state machine
# ═══════════════════════════════════════════════════════════════════


class TestProgressStateMachine:
    def test_transitions_are_forward_only(self):
        assert PROGRESS_TRANSITIONS[ProgressStatus.IN_PROGRESS] == {ProgressStatus.READY_TO_REDEEM}
        assert PROGRESS_TRANSITIONS[ProgressStatus.AVAILED] == set()

        progress = UserRewardProgress(status=ProgressStatus.IN_PROGRESS, stamps_required=3)
        assert progress.can_transition_to(ProgressStatus.READY_TO_REDEEM)
        assert not progress.can_transition_to(ProgressStatus.AVAILED)

    def test_sources_for(self):
        assert sources_for(ProgressStatus.AVAILED) == [ProgressStatus.READY_TO_REDEEM]
        assert sources_for(ProgressStatus.IN_PROGRESS) == []

    def test_services_follow_transition_table(self, stamp_reward, monkeypatch):
        """Stamping and redeeming move only along PROGRESS_TRANSITIONS."""
        monkeypatch.setitem(PROGRESS_TRANSITIONS, ProgressStatus.IN_PROGRESS, set())
        progress = ProgressService.start_cycle("cust-001", stamp_reward.pk)
        for _ in range(3):
            progress = ProgressService.add_stamp("cust-001", stamp_reward.pk)
        assert progress.status == ProgressStatus.IN_PROGRESS
        assert progress.completed_at is None

        monkeypatch.setitem(
            PROGRESS_TRANSITIONS, ProgressStatus.IN_PROGRESS, {ProgressStatus.AVAILED}
        )
        redeemed = ProgressService.redeem(progress.pk)
        assert redeemed.status == ProgressStatus.AVAILED

    def test_stamps_required_falls_back(self, settings):
        settings.STAMPMAN = {"DEFAULT_STAMPS_REQUIRED": 7}
        assert stamps_required_for(RewardDefinition(points_cost=0)) == 7
        assert stamps_required_for(RewardDefinition(points_cost=4)) == 4

    def test_start_cycle_once(self, stamp_reward):
        progress = ProgressService.start_cycle("cust-001", stamp_reward.pk)
        assert progress.status == ProgressStatus.IN_PROGRESS
        assert progress.stamps_required == 3
        assert progress.tenant_id == TENANT

        with pytest.raises(StampmanError, match="PROGRESS_ALREADY_OPEN"):
            ProgressService.start_cycle("cust-001", stamp_reward.pk)

    def test_add_stamp_until_ready(self, stamp_reward, django_capture_on_commit_callbacks):
        ProgressService.start_cycle("cust-001", stamp_reward.pk)
        ready = []

        def on_ready(sender, progress, **kwargs):
            ready.append(progress.pk)

        progress_ready.connect(on_ready)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                for _ in range(3):
                    progress = ProgressService.add_stamp("cust-001", stamp_reward.pk)
        finally:
            progress_ready.disconnect(on_ready)

        assert progress.status == ProgressStatus.READY_TO_REDEEM
        assert progress.completed_at is not None
        assert progress.is_ready_for_redemption
        assert progress.completion_percentage == 100.0
        assert progress.remaining_stamps == 0
        assert ready == [progress.pk]

    def test_add_stamp_without_open_record(self, stamp_reward):
        with pytest.raises(StampmanError) as exc:
            ProgressService.add_stamp("cust-001", stamp_reward.pk)
        assert exc.value.code == "PROGRESS_NOT_FOUND"
        assert exc.value.data["status"] is None

    def test_add_stamp_when_ready_reports_status(self, stamp_reward):
        progress = ProgressService.start_cycle("cust-001", stamp_reward.pk)
        UserRewardProgress.objects.filter(pk=progress.pk).update(
            stamps_collected=3, status=ProgressStatus.READY_TO_REDEEM
        )
        with pytest.raises(StampmanError) as exc:
            ProgressService.add_stamp("cust-001", stamp_reward.pk)
        assert exc.value.data["status"] == "ready_to_redeem"

    def test_redeem_single_winner(self, stamp_reward):
        progress = ProgressService.start_cycle("cust-001", stamp_reward.pk)
        for _ in range(3):
            ProgressService.add_stamp("cust-001", stamp_reward.pk)

        redeemed = ProgressService.redeem(progress.pk)
        assert redeemed.status == ProgressStatus.AVAILED
        assert redeemed.redeemed_at is not None

        with pytest.raises(StampmanError) as exc:
            ProgressService.redeem(progress.pk)
        assert exc.value.code == "CODE_EXPIRED_OR_CONSUMED"
        assert exc.value.data["status"] == ProgressStatus.AVAILED

    def test_redeem_not_ready(self, stamp_reward):
        progress = ProgressService.start_cycle("cust-001", stamp_reward.pk)
        with pytest.raises(StampmanError, match="CODE_EXPIRED_OR_CONSUMED"):
            ProgressService.redeem(progress.pk)

    def test_redeem_unknown(self, db):
        with pytest.raises(StampmanError, match="PROGRESS_NOT_FOUND"):
            ProgressService.redeem(31337)

    def test_new_cycle_after_availed(self, stamp_reward):
        first = ProgressService.start_cycle("cust-001", stamp_reward.pk)
        UserRewardProgress.objects.filter(pk=first.pk).update(
            stamps_collected=3, status=ProgressStatus.READY_TO_REDEEM
        )
        ProgressService.redeem(first.pk)

        second = ProgressService.start_cycle("cust-001", stamp_reward.pk)
        assert second.pk != first.pk
        assert second.stamps_collected == 0
        assert UserRewardProgress.objects.filter(customer_id="cust-001").count() == 2

    def test_reset_keeps_in_progress(self, stamp_reward):
        ProgressService.start_cycle("cust-001", stamp_reward.pk)
        for _ in range(3):
            ProgressService.add_stamp("cust-001", stamp_reward.pk)

        reset = ProgressService.reset_progress("cust-001", stamp_reward.pk)
        assert reset.status == ProgressStatus.IN_PROGRESS
        assert reset.stamps_collected == 0
        assert reset.completed_at is None

    def test_delete_keeps_scan_history(self, stamp_reward):
        _scan("cust-001", stamp_reward)

        assert ProgressService.delete("cust-001", stamp_reward.pk) == 1
        scan = ScanHistoryRecord.objects.get(customer_id="cust-001")
        assert scan.progress_id is None
        with pytest.raises(StampmanError, match="PROGRESS_NOT_FOUND"):
            ProgressService.delete("cust-001", stamp_reward.pk)

    def test_progress_for_customer(self, stamp_reward, reward):
        ProgressService.start_cycle("cust-001", stamp_reward.pk)
        ProgressService.start_cycle("cust-001", reward.pk)
        ProgressService.start_cycle("cust-002", reward.pk)

        assert len(ProgressService.progress_for_customer("cust-001")) == 2
        assert ProgressService.progress_for_customer("cust-001", status="availed") == []
        assert ProgressService.get_progress("cust-002", reward.pk).stamps_required == 50


# ═══════════════════════════════════════════════════════════════════
# Scan flow
# ═══════════════════════════════════════════════════════════════════


class TestProcessScan:
    def test_first_scan_opens_progress(self, stamp_reward, django_capture_on_commit_callbacks):
        consumed = []

        def on_consumed(sender, code, progress, scan, **kwargs):
            consumed.append(code.code)

        stamp_code_consumed.connect(on_consumed)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                result = _scan("cust-001", stamp_reward)
        finally:
            stamp_code_consumed.disconnect(on_consumed)

        assert result.code.status == CodeStatus.COMPLETED
        assert result.progress.stamps_collected == 1
        assert result.progress.stamps_required == 3
        assert result.scan.action == ScanAction.STAMP
        assert (result.scan.stamps_before, result.scan.stamps_after) == (0, 1)
        assert result.scan.transaction_code == result.code.code
        assert result.scan.scanned_by == "staff-1"
        assert result.scan.scan_method == "qr_code"
        assert consumed == [result.code.code]

    def test_duplicate_scan_single_stamp(self, stamp_reward):
        """Two scans of one code from different stores: one stamp, one history row."""
        code = StampCodeService.issue("cust-001", stamp_reward.pk)

        ScanService.process_scan(code.code, "staff-1", "S1")
        with pytest.raises(StampmanError) as exc:
            ScanService.process_scan(code.code, "staff-2", "S2")
        assert exc.value.code == "CODE_EXPIRED_OR_CONSUMED"

        assert ScanHistoryRecord.objects.filter(transaction_code=code.code).count() == 1
        progress = ProgressService.get_open("cust-001", stamp_reward.pk)
        assert progress.stamps_collected == 1

    def test_third_scan_makes_ready(self, stamp_reward):
        for _ in range(3):
            result = _scan("cust-001", stamp_reward)
        assert result.progress.status == ProgressStatus.READY_TO_REDEEM

    def test_scan_on_ready_progress_rolls_back_consume(self, stamp_reward):
        for _ in range(3):
            _scan("cust-001", stamp_reward)
        code = StampCodeService.issue("cust-001", stamp_reward.pk)

        with pytest.raises(StampmanError, match="PROGRESS_NOT_FOUND"):
            ScanService.process_scan(code.code, "staff-1", "S1")

        code.refresh_from_db()
        assert code.status == CodeStatus.PENDING
        assert ScanHistoryRecord.objects.count() == 3

    def test_redemption_scan(self, stamp_reward):
        for _ in range(3):
            _scan("cust-001", stamp_reward)

        result = ScanService.process_redemption_scan("cust-001", stamp_reward.pk, "staff-9", "S3")
        assert result.progress.status == ProgressStatus.AVAILED
        assert result.scan.action == ScanAction.REDEMPTION
        assert result.scan.stamps_added == 0
        assert result.scan.transaction_code == ""

        # Next scan starts a fresh cycle
        fresh = _scan("cust-001", stamp_reward)
        assert fresh.progress.pk != result.progress.pk
        assert fresh.progress.stamps_collected == 1

    def test_redemption_scan_not_ready(self, stamp_reward):
        _scan("cust-001", stamp_reward)
        with pytest.raises(StampmanError, match="CODE_EXPIRED_OR_CONSUMED"):
            ScanService.process_redemption_scan("cust-001", stamp_reward.pk, "staff-1")

    def test_redemption_scan_without_progress(self, stamp_reward):
        with pytest.raises(StampmanError, match="PROGRESS_NOT_FOUND"):
            ScanService.process_redemption_scan("cust-001", stamp_reward.pk, "staff-1")


class TestScanReads:
    def test_history_filters(self, stamp_reward):
        _scan("cust-001", stamp_reward, store_id="S1")
        _scan("cust-001", stamp_reward, store_id="S2")
        _scan("cust-002", stamp_reward, staff_id="staff-2", store_id="S1")

        assert len(ScanService.scan_history(tenant_id=TENANT)) == 3
        assert len(ScanService.scan_history(customer_id="cust-001")) == 2
        assert len(ScanService.scan_history(store_id="S1")) == 2
        assert len(ScanService.scan_history(scanned_by="staff-2")) == 1
        assert len(ScanService.scan_history(limit=1)) == 1

    def test_statistics(self, stamp_reward):
        for _ in range(3):
            _scan("cust-001", stamp_reward)
        _scan("cust-002", stamp_reward, staff_id="staff-2")

        stats = ScanService.scan_statistics(tenant_id=TENANT)
        assert stats["total_scans"] == 4
        assert stats["stamp_scans"] == 4
        assert stats["redemption_scans"] == 0
        assert stats["unique_customers"] == 2
        assert stats["staff_members"] == 2
        assert stats["total_stamps_added"] == 4
        assert stats["scans_today"] == 4
        assert stats["ready_to_redeem"] == 1


@pytest.mark.django_db(transaction=True)
@pytest.mark.skipif(connection.vendor != "postgresql", reason="needs row locks")
class TestConcurrentScan:
    def test_threads_race_on_one_code(self, stamp_reward):
        code = StampCodeService.issue("cust-001", stamp_reward.pk)
        barrier = threading.Barrier(2)
        outcomes = []

        def scan(store_id):
            barrier.wait()
            try:
                ScanService.process_scan(code.code, f"staff-{store_id}", store_id)
                outcomes.append("ok")
            except StampmanError as exc:
                outcomes.append(exc.code)
            finally:
                connection.close()

        threads = [threading.Thread(target=scan, args=(s,)) for s in ("S1", "S2")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["CODE_EXPIRED_OR_CONSUMED", "ok"]
        assert ScanHistoryRecord.objects.filter(transaction_code=code.code).count() == 1
        assert StampTransactionCode.objects.get(pk=code.pk).status == CodeStatus.COMPLETED
