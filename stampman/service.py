"""
Stampman public API.

MUTATIONS (each one unit of work, snapshot or StampmanError):
    LoyaltyEngine.earn_points(account_id, points, reason, ...)
    LoyaltyEngine.redeem_points(account_id, points, reason, ...)
    LoyaltyEngine.add_stamps(card_id, count, reason, ...)
    LoyaltyEngine.complete_card(card_id, reward_description, ...)
    LoyaltyEngine.redeem_reward(reward_id, account_id, ...)
    LoyaltyEngine.issue_stamp_code(customer_id, reward_id, ...)
    LoyaltyEngine.consume_stamp_code(code, staff_id, store_id)
    LoyaltyEngine.add_progress_stamp(customer_id, reward_id)
    LoyaltyEngine.redeem_progress(progress_id)

PROJECTIONS (plain queries, no locks):
    LoyaltyEngine.summary(tenant_id, customer_id)
    LoyaltyEngine.transactions(account_id, ...)
    LoyaltyEngine.card_history(card_id, ...)
    LoyaltyEngine.progress(customer_id)
    LoyaltyEngine.statistics(tenant_id)
"""

from dataclasses import dataclass
from datetime import datetime

from stampman.models import (
    LoyaltyAccount,
    LoyaltyTransaction,
    StampCard,
    StampTransaction,
    StampTransactionCode,
    UserRewardProgress,
)
from stampman.services.codes import StampCodeService
from stampman.services.ledger import LedgerService
from stampman.services.progress import ProgressService
from stampman.services.rewards import RedemptionResult, RedemptionService
from stampman.services.scan import ScanResult, ScanService
from stampman.services.stamps import StampCardService
from stampman.services.store import LedgerStore


@dataclass
class AccountSummary:
    """Loyalty snapshot of one customer, for checkout and customer screens."""

    valid: bool
    tenant_id: str
    customer_id: str
    account_id: int | None = None
    loyalty_number: str | None = None
    points: int = 0
    level: str | None = None
    active_cards: int = 0
    error_code: str | None = None
    message: str | None = None


class LoyaltyEngine:
    """
    Stampman public API.

    Uses @classmethod for extensibility. Every mutation accepts an optional
    `store` keyword to run against another database alias.
    """

    # ======================================================================
    # Points
    # ======================================================================

    @classmethod
    def earn_points(
        cls,
        account_id: int,
        points: int,
        reason: str,
        store_id: str = "",
        actor_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> LoyaltyAccount:
        return LedgerService.earn(account_id, points, reason, store_id, actor_id, store=store)

    @classmethod
    def redeem_points(
        cls,
        account_id: int,
        points: int,
        reason: str,
        store_id: str = "",
        actor_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> LoyaltyAccount:
        return LedgerService.redeem(account_id, points, reason, store_id, actor_id, store=store)

    # ======================================================================
    # Stamp cards
    # ======================================================================

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
        return StampCardService.add_stamps(card_id, count, reason, store_id, actor_id, store=store)

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
        return StampCardService.complete_card(
            card_id, reward_description, store_id, actor_id, store=store
        )

    # ======================================================================
    # Rewards
    # ======================================================================

    @classmethod
    def redeem_reward(
        cls,
        reward_id: int,
        account_id: int,
        store_id: str = "",
        actor_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> RedemptionResult:
        return RedemptionService.redeem(reward_id, account_id, store_id, actor_id, store=store)

    # ======================================================================
    # QR codes and reward progress
    # ======================================================================

    @classmethod
    def issue_stamp_code(
        cls,
        customer_id: str,
        reward_id: int,
        store_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> StampTransactionCode:
        return StampCodeService.issue(customer_id, reward_id, store_id, store=store)

    @classmethod
    def consume_stamp_code(
        cls,
        code: str,
        staff_id: str,
        store_id: str = "",
        *,
        store: LedgerStore | None = None,
    ) -> ScanResult:
        """Staff scan: consume the code and stamp the customer's progress."""
        return ScanService.process_scan(code, staff_id, store_id, store=store)

    @classmethod
    def add_progress_stamp(
        cls,
        customer_id: str,
        reward_id: int,
        *,
        store: LedgerStore | None = None,
    ) -> UserRewardProgress:
        return ProgressService.add_stamp(customer_id, reward_id, store=store)

    @classmethod
    def redeem_progress(
        cls,
        progress_id: int,
        *,
        store: LedgerStore | None = None,
    ) -> UserRewardProgress:
        return ProgressService.redeem(progress_id, store=store)

    # ======================================================================
    # Projections
    # ======================================================================

    @classmethod
    def summary(cls, tenant_id: str, customer_id: str) -> AccountSummary:
        """Account snapshot for a customer; valid=False if not enrolled."""
        account = LedgerService.get_account_for_customer(tenant_id, customer_id)
        if not account:
            return AccountSummary(
                valid=False,
                tenant_id=tenant_id,
                customer_id=customer_id,
                error_code="ACCOUNT_NOT_FOUND",
                message=f"Customer '{customer_id}' is not enrolled",
            )
        return AccountSummary(
            valid=True,
            tenant_id=tenant_id,
            customer_id=customer_id,
            account_id=account.pk,
            loyalty_number=account.loyalty_number,
            points=account.current_points,
            level=account.level,
            active_cards=len(StampCardService.active_cards(account.pk)),
        )

    @classmethod
    def transactions(
        cls,
        account_id: int,
        transaction_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[LoyaltyTransaction]:
        return LedgerService.get_transactions(
            account_id, transaction_type, start, end, limit, offset
        )

    @classmethod
    def card_history(
        cls,
        card_id: int,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StampTransaction]:
        return StampCardService.card_history(card_id, limit=limit, offset=offset)

    @classmethod
    def progress(cls, customer_id: str, status: str | None = None) -> list[UserRewardProgress]:
        return ProgressService.progress_for_customer(customer_id, status)

    @classmethod
    def statistics(cls, tenant_id: str) -> dict:
        """Tenant dashboard figures: points, stamp cards and scans."""
        return {
            "points": LedgerService.account_stats(tenant_id),
            "stamp_cards": StampCardService.card_stats(tenant_id),
            "scans": ScanService.scan_statistics(tenant_id=tenant_id),
        }
