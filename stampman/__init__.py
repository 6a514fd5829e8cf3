"""
Django Stampman - Loyalty points, stamp cards and QR stamp codes.

Usage:
    from stampman import LoyaltyEngine, StampmanError
    from stampman.gates import Gates, GateResult

    account = LoyaltyEngine.earn_points(account.pk, 100, "Purchase #42")
    result = LoyaltyEngine.redeem_reward(reward.pk, account.pk, store_id="S1")
    scan = LoyaltyEngine.consume_stamp_code("K7QX2M9P", staff_id="staff-1")

    # Gates validation
    Gates.sufficient_points(account, 250)
"""


def __getattr__(name):
    if name == "LoyaltyEngine":
        from stampman.service import LoyaltyEngine

        return LoyaltyEngine
    if name == "StampmanError":
        from stampman.exceptions import StampmanError

        return StampmanError
    if name == "Gates":
        from stampman.gates import Gates

        return Gates
    if name == "GateResult":
        from stampman.gates import GateResult

        return GateResult
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["LoyaltyEngine", "StampmanError", "Gates", "GateResult"]
__version__ = "0.1.0"
