"""
Stampman Gates - Invariant checks run inside a unit of work.

G1: PositiveAmount - point/stamp deltas must be positive integers
G2: SufficientPoints - a debit cannot exceed the current balance
G3: SufficientStamps - completion requires a full card
G4: CardMutable - completed or expired cards are frozen
G5: RewardAvailable - active, inside its window, under its cap

Each gate raises StampmanError with the matching code; the check_* twin
returns a bool instead.
"""

from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from stampman.exceptions import StampmanError


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


class Gates:
    """Stampman invariant gates."""

    # =========================================================================
    # G1: Positive Amount
    # =========================================================================

    @classmethod
    def positive_amount(cls, amount, field: str = "points") -> GateResult:
        """
        G1: Deltas must be positive integers.

        bool is rejected explicitly since True would pass as 1.

        Raises:
            StampmanError: INVALID_AMOUNT
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise StampmanError(
                "INVALID_AMOUNT",
                message=f"{field.capitalize()} must be a positive integer",
                field=field,
                value=amount,
            )
        return GateResult(True, "G1_PositiveAmount")

    @classmethod
    def check_positive_amount(cls, amount, field: str = "points") -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.positive_amount(amount, field)
            return True
        except StampmanError:
            return False

    # =========================================================================
    # G2: Sufficient Points
    # =========================================================================

    @classmethod
    def sufficient_points(cls, account, points: int) -> GateResult:
        """
        G2: current_points must cover the debit.

        Raises:
            StampmanError: INSUFFICIENT_POINTS
        """
        if account.current_points < points:
            raise StampmanError(
                "INSUFFICIENT_POINTS",
                account_id=account.pk,
                available=account.current_points,
                requested=points,
            )
        return GateResult(True, "G2_SufficientPoints")

    @classmethod
    def check_sufficient_points(cls, account, points: int) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.sufficient_points(account, points)
            return True
        except StampmanError:
            return False

    # =========================================================================
    # G3: Sufficient Stamps
    # =========================================================================

    @classmethod
    def sufficient_stamps(cls, card) -> GateResult:
        """
        G3: A card can only be completed when full.

        Raises:
            StampmanError: INSUFFICIENT_STAMPS
        """
        if card.current_stamps < card.total_stamps:
            raise StampmanError(
                "INSUFFICIENT_STAMPS",
                card_id=card.pk,
                current=card.current_stamps,
                required=card.total_stamps,
            )
        return GateResult(True, "G3_SufficientStamps")

    @classmethod
    def check_sufficient_stamps(cls, card) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.sufficient_stamps(card)
            return True
        except StampmanError:
            return False

    # =========================================================================
    # G4: Card Mutable
    # =========================================================================

    @classmethod
    def card_mutable(cls, card, now: datetime | None = None) -> GateResult:
        """
        G4: Completed cards are frozen; expired cards accept nothing.

        Completion is checked first so a completed card that later passes
        its expiry still reports CARD_COMPLETED.

        Raises:
            StampmanError: CARD_COMPLETED or CARD_EXPIRED
        """
        if card.is_completed:
            raise StampmanError("CARD_COMPLETED", card_id=card.pk)
        if card.is_expired(now or timezone.now()):
            raise StampmanError(
                "CARD_EXPIRED",
                card_id=card.pk,
                expires_at=card.expires_at.isoformat(),
            )
        return GateResult(True, "G4_CardMutable")

    @classmethod
    def check_card_mutable(cls, card, now: datetime | None = None) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.card_mutable(card, now)
            return True
        except StampmanError:
            return False

    # =========================================================================
    # G5: Reward Available
    # =========================================================================

    @classmethod
    def reward_available(cls, reward, now: datetime | None = None) -> GateResult:
        """
        G5: Reward must be active, within its window and under its cap.

        Raises:
            StampmanError: REWARD_UNAVAILABLE
        """
        if not reward.is_available(now or timezone.now()):
            raise StampmanError(
                "REWARD_UNAVAILABLE",
                reward_id=reward.pk,
                is_active=reward.is_active,
                current_redemptions=reward.current_redemptions,
                max_redemptions=reward.max_redemptions,
            )
        return GateResult(True, "G5_RewardAvailable")

    @classmethod
    def check_reward_available(cls, reward, now: datetime | None = None) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.reward_available(reward, now)
            return True
        except StampmanError:
            return False
