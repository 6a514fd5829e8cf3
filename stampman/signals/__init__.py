"""
Stampman signals — public event API.

All signals are sent after the unit of work that produced them commits.

Emitted signals:
- points_earned: LedgerService.earn()             sender=LoyaltyAccount, account, transaction
- points_redeemed: LedgerService.redeem()         sender=LoyaltyAccount, account, transaction
- stamp_card_completed: StampCardService          sender=StampCard, card
- reward_redeemed: RedemptionService.redeem()     sender=RewardRedemption, redemption
- stamp_code_consumed: ScanService.process_scan() sender=StampTransactionCode, code, progress, scan
- progress_ready: ProgressService.add_stamp()     sender=UserRewardProgress, progress
- progress_redeemed: ProgressService.redeem()     sender=UserRewardProgress, progress
"""

from django.dispatch import Signal

points_earned = Signal()
points_redeemed = Signal()
stamp_card_completed = Signal()
reward_redeemed = Signal()
stamp_code_consumed = Signal()
progress_ready = Signal()
progress_redeemed = Signal()
