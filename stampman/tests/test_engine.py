"""
Tests for the public surface:
- LoyaltyEngine facade
- Gates (raising + check_* twins)
- StampmanError structure
- LedgerStore unit of work
- Admin registration
- Initial migration in step with the models
"""

import importlib
from datetime import timedelta

import pytest
from django.apps import apps
from django.contrib import admin
from django.db import OperationalError
from django.test import RequestFactory
from django.utils import timezone

import stampman
from stampman.exceptions import BaseError, StampmanError
from stampman.gates import Gates, GateResult
from stampman.models import (
    LoyaltyTransaction,
    RewardDefinition,
    ScanHistoryRecord,
    StampCard,
    UserRewardProgress,
)
from stampman.service import LoyaltyEngine
from stampman.services.ledger import LedgerService
from stampman.services.store import LedgerStore, get_store

from stampman.tests.conftest import TENANT

initial_migration = importlib.import_module("stampman.migrations.0001_initial")


pytestmark = pytest.mark.django_db


# ═══════════════════════════════════════════════════════════════════
# Package / facade
# ═══════════════════════════════════════════════════════════════════


class TestPackageExports:
    def test_lazy_exports(self):
        assert stampman.LoyaltyEngine is LoyaltyEngine
        assert stampman.StampmanError is StampmanError
        assert stampman.Gates is Gates

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError):
            stampman.NotAThing


class TestLoyaltyEngine:
    def test_points_round_trip(self, account):
        LoyaltyEngine.earn_points(account.pk, 100, "Order", store_id="S1")
        updated = LoyaltyEngine.redeem_points(account.pk, 60, "Discount")

        assert updated.current_points == 40
        txs = LoyaltyEngine.transactions(account.pk)
        assert [tx.points for tx in txs] == [-60, 100]

    def test_stamp_card_flow(self, card):
        LoyaltyEngine.add_stamps(card.pk, 10, "Fill")
        history = LoyaltyEngine.card_history(card.pk)
        assert history[0].stamps_after == 10

        with pytest.raises(StampmanError, match="CARD_COMPLETED"):
            LoyaltyEngine.complete_card(card.pk, "Free coffee")

    def test_redeem_reward(self, funded_account, reward):
        result = LoyaltyEngine.redeem_reward(reward.pk, funded_account.pk)
        assert result.account.current_points == 50

    def test_qr_flow(self, stamp_reward):
        for _ in range(3):
            code = LoyaltyEngine.issue_stamp_code("cust-001", stamp_reward.pk)
            result = LoyaltyEngine.consume_stamp_code(code.code, "staff-1", "S1")

        redeemed = LoyaltyEngine.redeem_progress(result.progress.pk)
        assert redeemed.status == "availed"
        assert [p.status for p in LoyaltyEngine.progress("cust-001")] == ["availed"]

    def test_add_progress_stamp(self, stamp_reward):
        code = LoyaltyEngine.issue_stamp_code("cust-001", stamp_reward.pk)
        LoyaltyEngine.consume_stamp_code(code.code, "staff-1")

        progress = LoyaltyEngine.add_progress_stamp("cust-001", stamp_reward.pk)
        assert progress.stamps_collected == 2

    def test_summary(self, funded_account, card):
        summary = LoyaltyEngine.summary(TENANT, "cust-001")
        assert summary.valid is True
        assert summary.points == 100
        assert summary.loyalty_number == funded_account.loyalty_number
        assert summary.active_cards == 1

    def test_summary_not_enrolled(self, db):
        summary = LoyaltyEngine.summary(TENANT, "nobody")
        assert summary.valid is False
        assert summary.error_code == "ACCOUNT_NOT_FOUND"

    def test_statistics(self, funded_account, card):
        stats = LoyaltyEngine.statistics(TENANT)
        assert stats["points"]["total_points"] == 100
        assert stats["stamp_cards"]["total_cards"] == 1
        assert stats["scans"]["total_scans"] == 0


# ═══════════════════════════════════════════════════════════════════
# Gates
# ═══════════════════════════════════════════════════════════════════


class TestGates:
    def test_positive_amount(self):
        assert Gates.positive_amount(5) == GateResult(True, "G1_PositiveAmount")
        assert Gates.check_positive_amount(0) is False
        assert Gates.check_positive_amount(True) is False

    def test_sufficient_points(self, funded_account):
        assert Gates.check_sufficient_points(funded_account, 100) is True
        with pytest.raises(StampmanError) as exc:
            Gates.sufficient_points(funded_account, 101)
        assert exc.value.data == {"account_id": funded_account.pk, "available": 100, "requested": 101}

    def test_card_mutable_completed_wins_over_expired(self, card):
        card.is_completed = True
        card.expires_at = timezone.now() - timedelta(days=1)
        with pytest.raises(StampmanError, match="CARD_COMPLETED"):
            Gates.card_mutable(card)

    def test_card_mutable_expired(self, card):
        card.expires_at = timezone.now() - timedelta(seconds=1)
        assert Gates.check_card_mutable(card) is False
        assert Gates.check_card_mutable(card, now=card.expires_at - timedelta(seconds=1)) is True

    def test_sufficient_stamps(self, card):
        assert Gates.check_sufficient_stamps(card) is False
        card.current_stamps = card.total_stamps
        assert Gates.check_sufficient_stamps(card) is True

    def test_reward_available(self, reward):
        assert Gates.check_reward_available(reward) is True
        reward.ends_at = timezone.now() - timedelta(hours=1)
        assert Gates.check_reward_available(reward) is False


# ═══════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════


class TestStampmanError:
    def test_inherits_base_error(self):
        assert issubclass(StampmanError, BaseError)

    def test_default_message_and_dict(self):
        err = StampmanError("CARD_NOT_FOUND", pk=7)
        assert str(err) == "[CARD_NOT_FOUND] Stamp card not found"
        assert err.as_dict() == {
            "code": "CARD_NOT_FOUND",
            "message": "Stamp card not found",
            "data": {"pk": 7},
        }

    def test_custom_message(self):
        err = StampmanError("INVALID_AMOUNT", message="Stamps must be a positive integer")
        assert err.message == "Stamps must be a positive integer"

    def test_code_context_key_allowed(self):
        err = StampmanError("CODE_NOT_FOUND", code="ABC123")
        assert err.code == "CODE_NOT_FOUND"
        assert err.data == {"code": "ABC123"}


# ═══════════════════════════════════════════════════════════════════
# LedgerStore
# ═══════════════════════════════════════════════════════════════════


class TestLedgerStore:
    def test_get_store_default(self):
        store = LedgerStore(using="default")
        assert get_store(store) is store
        assert get_store().using == "default"

    def test_error_rolls_back_whole_unit(self, account):
        store = LedgerStore()
        with pytest.raises(StampmanError):
            with store.unit_of_work():
                locked = LedgerService.lock_account(account.pk, store=store)
                LedgerService.debit(store, locked, 10, "Would overdraw")

        assert not LoyaltyTransaction.objects.exists()

    def test_operational_error_becomes_concurrent_modification(self, db):
        store = LedgerStore()
        with pytest.raises(StampmanError) as exc:
            with store.unit_of_work():
                raise OperationalError("could not obtain lock")
        assert exc.value.code == "CONCURRENT_MODIFICATION"

    def test_lock_and_load_not_found(self, db):
        store = LedgerStore()
        with pytest.raises(StampmanError) as exc:
            with store.unit_of_work():
                store.lock_and_load(StampCard, "CARD_NOT_FOUND", pk=404)
        assert exc.value.data == {"pk": 404}

    def test_injected_store_is_used(self, account):
        store = LedgerStore(using="default")
        updated = LedgerService.earn(account.pk, 5, "Scoped", store=store)
        assert updated.current_points == 5


# ═══════════════════════════════════════════════════════════════════
# Admin
# ═══════════════════════════════════════════════════════════════════


class TestAdmin:
    @pytest.mark.parametrize("model", [LoyaltyTransaction, ScanHistoryRecord])
    def test_audit_trails_read_only(self, model):
        model_admin = admin.site._registry[model]
        request = RequestFactory().get("/")

        assert model_admin.has_add_permission(request) is False
        assert model_admin.has_change_permission(request) is False
        assert model_admin.has_delete_permission(request) is False

    def test_reward_admin_shows_cap(self, reward, limited_reward):
        model_admin = admin.site._registry[RewardDefinition]
        assert model_admin.redemptions_display(reward) == "0/∞"
        assert model_admin.redemptions_display(limited_reward) == "0/1"

    def test_progress_admin_display(self, stamp_reward):
        progress = UserRewardProgress(
            tenant_id=TENANT, customer_id="c", reward=stamp_reward, stamps_collected=1, stamps_required=3
        )
        model_admin = admin.site._registry[UserRewardProgress]
        assert model_admin.progress_display(progress) == "1/3 (33%)"


# ═══════════════════════════════════════════════════════════════════
# Migrations
# ═══════════════════════════════════════════════════════════════════


class TestInitialMigration:
    """Hand-written 0001_initial must describe the models exactly."""

    @pytest.mark.parametrize("operation", initial_migration.Migration.operations, ids=lambda op: op.name)
    def test_model_matches(self, operation):
        model = apps.get_model("stampman", operation.name)

        assert operation.options["verbose_name"] == model._meta.verbose_name
        assert operation.options["verbose_name_plural"] == model._meta.verbose_name_plural
        assert operation.options["db_table"] == model._meta.db_table

        declared = dict(operation.fields)
        assert set(declared) == {f.name for f in model._meta.concrete_fields}
        for name, field in declared.items():
            _, path, args, kwargs = field.deconstruct()
            _, model_path, model_args, model_kwargs = model._meta.get_field(name).deconstruct()
            assert (path, args, kwargs) == (model_path, model_args, model_kwargs), name
